# services/mail.py
"""
Mail transport for order notifications.

Configuration (from app.config):
  MAIL_BACKEND   "smtp" (default) | "console"
  MAIL_HOST      default smtp.gmail.com
  MAIL_PORT      default 465
  MAIL_USE_SSL   default true (SMTP_SSL); false -> plain SMTP + STARTTLS
  MAIL_USER / MAIL_PASS   account credentials
  MAIL_FROM      sender address, defaults to MAIL_USER

Every failure is raised as DeliveryError; callers decide whether to swallow it.
"""

from __future__ import annotations
import logging
import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any, Mapping, Protocol

from services.errors import DeliveryError

log = logging.getLogger(__name__)

SENDER_NAME = "Tierra de Calma"


@dataclass
class MailMessage:
    to: str
    subject: str
    html: str


class Mailer(Protocol):
    def send(self, message: MailMessage) -> None:
        ...


class SmtpMailer:
    def __init__(self, host: str, port: int, user: str | None, password: str | None,
                 sender: str | None = None, use_ssl: bool = True, timeout: float = 30) -> None:
        self.host = host
        self.port = port
        self.user = user or ""
        self.password = password or ""
        self.sender = sender or self.user
        self.use_ssl = use_ssl
        self.timeout = timeout

    def _build(self, message: MailMessage) -> MIMEText:
        mime = MIMEText(message.html, "html", "utf-8")
        mime["Subject"] = message.subject
        mime["From"] = formataddr((SENDER_NAME, self.sender))
        mime["To"] = message.to
        return mime

    def send(self, message: MailMessage) -> None:
        if not self.user or not self.password:
            raise DeliveryError(
                "Mail credentials missing: set MAIL_USER and MAIL_PASS")

        mime = self._build(message)
        try:
            if self.use_ssl:
                server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            with server:
                if not self.use_ssl:
                    server.starttls()
                server.login(self.user, self.password)
                server.sendmail(self.sender, [message.to], mime.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP delivery to {message.to} failed: {e}") from e

        log.info("Mail sent to %s: %s", message.to, message.subject)


class ConsoleMailer:
    """Dev backend: logs the message instead of sending it."""

    def send(self, message: MailMessage) -> None:
        log.info("[console mail] to=%s subject=%s\n%s",
                 message.to, message.subject, message.html)


def get_mailer(cfg: Mapping[str, Any]) -> Mailer:
    name = (cfg.get("MAIL_BACKEND") or "smtp").lower()
    if name == "smtp":
        return SmtpMailer(
            host=cfg.get("MAIL_HOST") or "smtp.gmail.com",
            port=int(cfg.get("MAIL_PORT") or 465),
            user=cfg.get("MAIL_USER"),
            password=cfg.get("MAIL_PASS"),
            sender=cfg.get("MAIL_FROM"),
            use_ssl=bool(cfg.get("MAIL_USE_SSL", True)),
        )
    if name == "console":
        return ConsoleMailer()
    raise RuntimeError(f"Unknown MAIL_BACKEND: {name}")

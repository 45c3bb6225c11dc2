# services/notifier.py
"""
Webhook Notifier: payment id -> dedupe -> status lookup -> two emails.

State per payment id is just membership in the dedupe store:
  unseen -> first notification marks it seen and processes it
  seen   -> every later notification is a no-op

handle() never raises for expected failures (lookup errors, mail errors);
it returns an outcome label so the caller can log/count it.
"""

from __future__ import annotations
import logging
from typing import Any, Mapping, Optional

from markupsafe import escape

from services.dedupe import DedupeStore
from services.errors import MalformedNotification, UpstreamError
from services.mail import Mailer, MailMessage
from services.metrics import EMAILS_SENT
from services.payments.base import PaymentProvider, PaymentRecord

log = logging.getLogger(__name__)

NO_EMAIL_PLACEHOLDER = "(sin email)"

OUTCOME_DUPLICATE = "duplicate"
OUTCOME_LOOKUP_FAILED = "lookup_failed"
OUTCOME_NOT_APPROVED = "not_approved"
OUTCOME_NOTIFIED = "notified"


def _clean_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = int(value) if float(value).is_integer() else value
    s = str(value).strip()
    return s or None


def extract_payment_id(query: Mapping[str, Any], body: Any) -> Optional[str]:
    """
    MercadoPago sends the id in one of:
      ?data.id=123  /  ?id=123
      {"data": {"id": "123"}}
      {"id": "123"}
    """
    for key in ("data.id", "id"):
        pid = _clean_id(query.get(key))
        if pid:
            return pid

    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if isinstance(data, dict):
        pid = _clean_id(data.get("id"))
        if pid:
            return pid
    return _clean_id(body.get("id"))


def require_payment_id(query: Mapping[str, Any], body: Any) -> str:
    pid = extract_payment_id(query, body)
    if not pid:
        raise MalformedNotification()
    return pid


def format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"


def compose_merchant_email(payment: PaymentRecord, to: str) -> MailMessage:
    order_id = payment.external_reference or "-"
    buyer = payment.payer_email or NO_EMAIL_PLACEHOLDER
    total = format_amount(payment.transaction_amount)
    html = (
        "<h2>Nueva compra confirmada</h2>"
        f"<p><b>Pedido:</b> {escape(order_id)}</p>"
        f"<p><b>Comprador:</b> {escape(buyer)}</p>"
        f"<p><b>Total:</b> ${escape(total)}</p>"
        f"<p><b>ID de pago:</b> {escape(payment.id)}</p>"
    )
    return MailMessage(to=to, subject=f"Nueva compra - Pedido {order_id}", html=html)


def compose_buyer_email(payment: PaymentRecord) -> MailMessage:
    order_id = payment.external_reference or "-"
    total = format_amount(payment.transaction_amount)
    html = (
        "<h2>¡Gracias por tu compra!</h2>"
        "<p>Recibimos tu pago correctamente.</p>"
        f"<p><b>Pedido:</b> {escape(order_id)}</p>"
        f"<p><b>Total:</b> ${escape(total)}</p>"
        "<p>Tierra de Calma</p>"
    )
    return MailMessage(to=payment.payer_email,
                       subject=f"Confirmación de tu compra - Pedido {order_id}", html=html)


class WebhookNotifier:
    def __init__(self, provider: PaymentProvider, mailer: Mailer, store: DedupeStore,
                 merchant_email: Optional[str] = None,
                 release_unapproved: bool = False) -> None:
        self.provider = provider
        self.mailer = mailer
        self.store = store
        self.merchant_email = merchant_email or None
        self.release_unapproved = release_unapproved

    def handle(self, payment_id: str) -> str:
        if not self.store.add_if_absent(payment_id):
            log.info("Payment %s already seen, skipping", payment_id)
            return OUTCOME_DUPLICATE

        try:
            payment = self.provider.get_payment(payment_id)
        except UpstreamError as e:
            log.error("Payment lookup failed for %s: %s (status=%s details=%s)",
                      payment_id, e, e.status, e.details)
            self._release(payment_id)
            return OUTCOME_LOOKUP_FAILED

        if not payment.approved:
            log.info("Payment %s has status %r, no notification",
                     payment_id, payment.status)
            self._release(payment_id)
            return OUTCOME_NOT_APPROVED

        log.info("Payment %s approved (order=%s, amount=%s)",
                 payment_id, payment.external_reference, payment.transaction_amount)
        self.notify_merchant(payment)
        self.notify_buyer(payment)
        return OUTCOME_NOTIFIED

    def _release(self, payment_id: str) -> None:
        if self.release_unapproved:
            self.store.discard(payment_id)

    def _deliver(self, kind: str, message: MailMessage) -> bool:
        try:
            self.mailer.send(message)
        except Exception:
            # DeliveryError or anything else; one send must never stop the other
            log.exception("%s email to %s failed", kind, message.to)
            EMAILS_SENT.labels(kind=kind, outcome="failed").inc()
            return False
        EMAILS_SENT.labels(kind=kind, outcome="ok").inc()
        return True

    def notify_merchant(self, payment: PaymentRecord) -> bool:
        if not self.merchant_email:
            log.warning("MERCHANT_EMAIL not set; merchant email for payment %s skipped",
                        payment.id)
            EMAILS_SENT.labels(kind="merchant", outcome="skipped").inc()
            return False
        return self._deliver("merchant", compose_merchant_email(payment, self.merchant_email))

    def notify_buyer(self, payment: PaymentRecord) -> bool:
        if not payment.payer_email:
            log.info("Payment %s has no payer email; buyer email skipped", payment.id)
            EMAILS_SENT.labels(kind="buyer", outcome="skipped").inc()
            return False
        return self._deliver("buyer", compose_buyer_email(payment))

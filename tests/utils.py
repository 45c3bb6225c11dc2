# tests/utils.py
import threading

from services.errors import DeliveryError

MERCHANT = "ventas@tierradecalma.com"


class RecordingMailer:
    def __init__(self):
        self.sent = []
        self._lock = threading.Lock()

    def send(self, message):
        with self._lock:
            self.sent.append(message)

    def to(self, address):
        return [m for m in self.sent if m.to == address]


class FailingMailer(RecordingMailer):
    """Raises DeliveryError for the given recipients, records the rest."""

    def __init__(self, fail_for=()):
        super().__init__()
        self.fail_for = set(fail_for)

    def send(self, message):
        if message.to in self.fail_for:
            raise DeliveryError(f"SMTP down for {message.to}")
        super().send(message)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ""

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def approved_payment(pid="123", email="a@b.com", amount=3000, order_id="TDC-999", status="approved"):
    data = {
        "id": pid,
        "status": status,
        "transaction_amount": amount,
        "external_reference": order_id,
        "payer": {"email": email} if email else {},
    }
    return data

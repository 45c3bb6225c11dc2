import pytest
from werkzeug.datastructures import MultiDict
from services.dedupe import MemoryDedupeStore
from services.errors import DeliveryError, MalformedNotification
from services.notifier import (
    WebhookNotifier,
    compose_buyer_email,
    compose_merchant_email,
    extract_payment_id,
    format_amount,
    require_payment_id,
)
from services.payments.base import PaymentRecord
from services.payments.dummy_provider import DummyProvider
from tests.utils import RecordingMailer, approved_payment


@pytest.mark.parametrize("query, body, expected", [
    ({"data.id": "1"}, None, "1"),
    ({"id": "2"}, {"data": {"id": "99"}}, "2"),
    ({}, {"data": {"id": 3}}, "3"),
    ({}, {"id": "4"}, "4"),
    ({}, {"data": {"id": ""}, "id": "5"}, "5"),
    ({}, {"data": "x"}, None),
    ({}, ["not", "a", "dict"], None),
    ({}, {"id": True}, None),
    ({"data.id": "  "}, {}, None),
])
def test_extract_payment_id_shapes(query, body, expected):
    assert extract_payment_id(MultiDict(query), body) == expected


def test_require_payment_id_raises_when_absent():
    with pytest.raises(MalformedNotification):
        require_payment_id({}, {"type": "payment"})


def test_format_amount():
    assert format_amount(3000) == "3000"
    assert format_amount(3000.0) == "3000"
    assert format_amount(12.5) == "12.50"


def test_merchant_email_content_and_escaping():
    rec = PaymentRecord.from_api(approved_payment(email="<b>x@y.com</b>"))
    msg = compose_merchant_email(rec, "shop@example.com")
    assert msg.to == "shop@example.com"
    assert "TDC-999" in msg.subject
    assert "&lt;b&gt;x@y.com&lt;/b&gt;" in msg.html
    assert "<b>x@y.com</b>" not in msg.html


def test_buyer_email_goes_to_payer():
    rec = PaymentRecord.from_api(approved_payment(email="a@b.com"))
    msg = compose_buyer_email(rec)
    assert msg.to == "a@b.com"
    assert "TDC-999" in msg.subject
    assert "3000" in msg.html


def test_notify_buyer_skips_without_payer_email():
    mailer = RecordingMailer()
    notifier = WebhookNotifier(DummyProvider(), mailer, MemoryDedupeStore())
    rec = PaymentRecord.from_api(approved_payment(email=None))

    assert notifier.notify_buyer(rec) is False
    assert mailer.sent == []


def test_handle_outcomes():
    provider = DummyProvider()
    mailer = RecordingMailer()
    n = WebhookNotifier(provider, mailer, MemoryDedupeStore(), merchant_email="shop@example.com")

    provider.add_payment(approved_payment(pid="1"))
    provider.add_payment(approved_payment(pid="2", status="rejected"))

    assert n.handle("1") == "notified"
    assert n.handle("1") == "duplicate"
    assert n.handle("2") == "not_approved"
    assert n.handle("3") == "lookup_failed"
    assert len(mailer.sent) == 2


@pytest.mark.parametrize("error", [DeliveryError("SMTP down"), OSError("connection reset")])
def test_any_send_failure_is_logged_and_other_email_still_goes(error, caplog):
    class BrokenForMerchant(RecordingMailer):
        def send(self, message):
            if message.to == "shop@example.com":
                raise error
            super().send(message)

    provider = DummyProvider()
    provider.add_payment(approved_payment())
    mailer = BrokenForMerchant()
    notifier = WebhookNotifier(provider, mailer, MemoryDedupeStore(),
                               merchant_email="shop@example.com")

    assert notifier.handle("123") == "notified"
    assert [m.to for m in mailer.sent] == ["a@b.com"]
    failed = [r for r in caplog.records if "merchant email to shop@example.com failed" in r.getMessage()]
    assert failed and failed[0].exc_info is not None

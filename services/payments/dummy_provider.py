# services/payments/dummy_provider.py
"""
A development-only provider that keeps everything in memory.
Useful to exercise the checkout and webhook flows without touching MercadoPago.

How it works:
- create_preference(...) records the preference and returns a local
  "dummy-pref-N" id with a fake hosted checkout URL.
- add_payment(...) registers a payment record that get_payment(...) will
  later return, the way MercadoPago would after the buyer pays.
- get_payment(...) on an unknown id raises UpstreamError(404).
"""

from __future__ import annotations
import itertools
import threading
from typing import Any, Dict, List

from services.errors import UpstreamError
from services.payments.base import CheckoutResult, PaymentRecord


class DummyProvider:
    name = "dummy"

    def __init__(self, checkout_base: str = "http://localhost:3000/dummy-checkout") -> None:
        self.checkout_base = checkout_base.rstrip("/")
        self.preferences: List[Dict[str, Any]] = []
        self.lookups: List[str] = []
        self._payments: Dict[str, Dict[str, Any]] = {}
        self._seq = itertools.count(1)
        self._lock = threading.Lock()

    def add_payment(self, data: Dict[str, Any]) -> None:
        with self._lock:
            self._payments[str(data["id"])] = dict(data)

    def create_preference(self, preference: Dict[str, Any]) -> CheckoutResult:
        with self._lock:
            self.preferences.append(preference)
            pref_id = f"dummy-pref-{next(self._seq)}"
        return CheckoutResult(
            preference_id=pref_id,
            init_point=f"{self.checkout_base}?pref_id={pref_id}",
            raw={"id": pref_id},
        )

    def get_payment(self, payment_id: str) -> PaymentRecord:
        with self._lock:
            self.lookups.append(payment_id)
            data = self._payments.get(str(payment_id))
        if data is None:
            raise UpstreamError("Payment not found", status=404,
                                details={"message": "Payment not found", "status": 404})
        return PaymentRecord.from_api(data)

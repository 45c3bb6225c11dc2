# services/payments/base.py
"""
Abstract interface + plain records for the payment processor.
Adapters must implement PaymentProvider.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Protocol


APPROVED = "approved"


@dataclass
class CheckoutResult:
    preference_id: str            # processor's preference id
    init_point: str               # hosted checkout URL for the buyer
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentRecord:
    id: str
    status: str                   # 'approved' | 'pending' | 'rejected' | ...
    transaction_amount: float
    payer_email: Optional[str]
    external_reference: Optional[str]   # our order id
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def approved(self) -> bool:
        return self.status == APPROVED

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PaymentRecord":
        payer = data.get("payer") or {}
        email = payer.get("email") if isinstance(payer, dict) else None
        try:
            amount = float(data.get("transaction_amount") or 0)
        except (TypeError, ValueError):
            amount = 0.0
        return cls(
            id=str(data.get("id") or ""),
            status=str(data.get("status") or ""),
            transaction_amount=amount,
            payer_email=email or None,
            external_reference=data.get("external_reference"),
            raw=data,
        )


class PaymentProvider(Protocol):
    name: str

    def create_preference(self, preference: Dict[str, Any]) -> CheckoutResult:
        """
        Submit a checkout preference. Single attempt.
        Raise UpstreamError on any non-2xx answer.
        """

    def get_payment(self, payment_id: str) -> PaymentRecord:
        """
        Fetch the authoritative payment record.
        Raise UpstreamError on any non-2xx answer.
        """

# services/preferences.py
"""
Preference Builder: cart -> normalized line items -> MercadoPago preference.

The defaulting policy for incomplete line items lives in the normalize_*
functions below:
  title       missing / blank / not a string  -> "Producto"
  quantity    missing / non-integer / < 1      -> 1
  unit_price  missing / non-numeric / < 0      -> 0
"""

from __future__ import annotations
import math
import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from services.errors import ClientInputError

DEFAULT_TITLE = "Producto"
DEFAULT_QUANTITY = 1
DEFAULT_UNIT_PRICE = 0.0
DEFAULT_CURRENCY = "ARS"
ORDER_PREFIX = "TDC"

BACK_URL_PAGES = {
    "success": "pago-exitoso.html",
    "pending": "pago-pendiente.html",
    "failure": "pago-fallido.html",
}


@dataclass(frozen=True)
class LineItem:
    title: str
    quantity: int
    unit_price: float
    currency_id: str = DEFAULT_CURRENCY

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_title(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return DEFAULT_TITLE


def normalize_quantity(value: Any) -> int:
    # bool is an int subclass
    if value is None or isinstance(value, bool):
        return DEFAULT_QUANTITY
    try:
        if isinstance(value, str):
            value = value.strip()
            qty = int(value)
        elif isinstance(value, float):
            if not value.is_integer():
                return DEFAULT_QUANTITY
            qty = int(value)
        else:
            qty = int(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_QUANTITY
    return qty if qty >= 1 else DEFAULT_QUANTITY


def normalize_unit_price(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return DEFAULT_UNIT_PRICE
    try:
        price = float(value)
    except (TypeError, ValueError):
        return DEFAULT_UNIT_PRICE
    if math.isnan(price) or math.isinf(price) or price < 0:
        return DEFAULT_UNIT_PRICE
    return price


def normalize_item(raw: Any, currency_id: str = DEFAULT_CURRENCY) -> LineItem:
    raw = raw if isinstance(raw, dict) else {}
    return LineItem(
        title=normalize_title(raw.get("title")),
        quantity=normalize_quantity(raw.get("quantity")),
        unit_price=normalize_unit_price(raw.get("unit_price")),
        currency_id=currency_id,
    )


def normalize_items(raw_items: Any, currency_id: str = DEFAULT_CURRENCY) -> List[LineItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ClientInputError()
    return [normalize_item(i, currency_id) for i in raw_items]


def normalize_email(value: Any) -> Optional[str]:
    if isinstance(value, str) and "@" in value:
        return value.strip()
    return None


class OrderIdGenerator:
    """
    Issues "<prefix>-<epoch millis>" ids. Ids from one generator are strictly
    increasing, so two calls inside the same millisecond still differ.
    """

    def __init__(self, prefix: str = ORDER_PREFIX, clock=time.time) -> None:
        self.prefix = prefix
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now = int(self._clock() * 1000)
            self._last = max(now, self._last + 1)
            return f"{self.prefix}-{self._last}"


def build_back_urls(front_origin: str) -> Dict[str, str]:
    base = front_origin.rstrip("/")
    return {k: f"{base}/{page}" for k, page in BACK_URL_PAGES.items()}


def build_preference(items: List[LineItem], order_id: str, *, front_origin: str,
                     public_backend_url: Optional[str] = None,
                     payer_email: Optional[str] = None) -> Dict[str, Any]:
    pref: Dict[str, Any] = {
        "items": [i.to_dict() for i in items],
        "external_reference": order_id,
        "back_urls": build_back_urls(front_origin),
        "auto_return": "approved",
    }
    if payer_email:
        pref["payer"] = {"email": payer_email}
    if public_backend_url:
        pref["notification_url"] = f"{public_backend_url.rstrip('/')}/webhook"
    return pref

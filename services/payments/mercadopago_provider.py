# services/payments/mercadopago_provider.py
"""
Thin MercadoPago REST client.

Configuration (passed in from app.config):
  MP_ACCESS_TOKEN   bearer token for the seller account
  MP_API_BASE       default: https://api.mercadopago.com
  MP_TIMEOUT        seconds (default 15)

Every call is a single attempt. Any non-2xx answer (or a transport error)
becomes UpstreamError carrying the status and whatever body MercadoPago sent.
"""

from __future__ import annotations
import logging
from typing import Any, Dict
from urllib.parse import quote

import requests

from services.errors import UpstreamError
from services.payments.base import CheckoutResult, PaymentRecord

log = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.mercadopago.com"


def _details(r: requests.Response) -> Any:
    try:
        return r.json()
    except ValueError:
        return r.text


class MercadoPagoProvider:
    name = "mercadopago"

    def __init__(self, access_token: str | None, api_base: str | None = None,
                 timeout: float = 15) -> None:
        self.access_token = access_token or ""
        self.api_base = (api_base or DEFAULT_API_BASE).rstrip("/")
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        if not self.access_token:
            raise UpstreamError("MP_ACCESS_TOKEN not set")
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def _build_url(self, resource: str) -> str:
        return f"{self.api_base}/{resource.lstrip('/')}"

    def _request(self, method: str, resource: str, **kw) -> Dict[str, Any]:
        url = self._build_url(resource)
        try:
            r = requests.request(method, url, headers=self._headers(),
                                 timeout=self.timeout, **kw)
        except requests.RequestException as e:
            raise UpstreamError(f"MercadoPago unreachable: {e}") from e

        if not r.ok:
            details = _details(r)
            log.warning("MercadoPago %s %s -> %s", method, resource, r.status_code)
            raise UpstreamError(f"MercadoPago answered {r.status_code}",
                                status=r.status_code, details=details)
        js = _details(r)
        if not isinstance(js, dict):
            raise UpstreamError("MercadoPago: unexpected payload",
                                status=r.status_code, details=js)
        return js

    # ----- public ---------------------------------------------------------

    def create_preference(self, preference: Dict[str, Any]) -> CheckoutResult:
        js = self._request("POST", "/checkout/preferences", json=preference)
        return CheckoutResult(
            preference_id=str(js.get("id") or ""),
            init_point=js.get("init_point") or "",
            raw=js,
        )

    def get_payment(self, payment_id: str) -> PaymentRecord:
        # ids come from unauthenticated webhooks; keep them inside one path segment
        js = self._request("GET", f"/v1/payments/{quote(str(payment_id), safe='')}")
        return PaymentRecord.from_api(js)

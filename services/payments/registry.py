from typing import Any, Mapping

# replace/add real adapters here
from services.payments.dummy_provider import DummyProvider
from services.payments.mercadopago_provider import MercadoPagoProvider


def get_provider(cfg: Mapping[str, Any]):
    name = (cfg.get("PAYMENT_PROVIDER") or "mercadopago").lower()
    if name == "mercadopago":
        return MercadoPagoProvider(
            access_token=cfg.get("MP_ACCESS_TOKEN"),
            api_base=cfg.get("MP_API_BASE"),
            timeout=float(cfg.get("MP_TIMEOUT") or 15),
        )
    if name == "dummy":
        return DummyProvider()
    raise RuntimeError(f"Unknown PAYMENT_PROVIDER: {name}")

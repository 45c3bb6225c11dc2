# controllers/checkout.py
from __future__ import annotations
from flask import Blueprint, request, jsonify, current_app

from services.errors import ClientInputError, UpstreamError
from services.metrics import PREFERENCES
from services.preferences import build_preference, normalize_email, normalize_items

checkout_bp = Blueprint("checkout", __name__)


@checkout_bp.post("/create_preference")
def create_preference():
    """
    Body: {"items": [{title, quantity, unit_price}], "payerEmail"?: str}
    200 {preferenceId, init_point, orderId} | 400 {error} | 500 {error, details?}
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    cfg = current_app.config

    try:
        items = normalize_items(payload.get("items"), cfg["CURRENCY_ID"])
    except ClientInputError as e:
        PREFERENCES.labels(outcome="rejected").inc()
        return jsonify({"error": str(e)}), 400

    order_id = current_app.extensions["order_ids"].next_id()
    preference = build_preference(
        items, order_id,
        front_origin=cfg["FRONT_ORIGIN"],
        public_backend_url=cfg.get("PUBLIC_BACKEND_URL"),
        payer_email=normalize_email(payload.get("payerEmail")),
    )

    provider = current_app.extensions["payment_provider"]
    try:
        result = provider.create_preference(preference)
    except UpstreamError as e:
        current_app.logger.error("Preference for %s failed: %s (status=%s details=%s)",
                                 order_id, e, e.status, e.details)
        PREFERENCES.labels(outcome="upstream_error").inc()
        return jsonify({
            "error": "Error creando preferencia",
            "details": e.details if e.details is not None else str(e),
        }), 500

    current_app.logger.info("Preference %s created for order %s (%d items)",
                            result.preference_id, order_id, len(items))
    PREFERENCES.labels(outcome="ok").inc()
    return jsonify({
        "preferenceId": result.preference_id,
        "init_point": result.init_point,
        "orderId": order_id,
    })

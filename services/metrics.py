# services/metrics.py
from __future__ import annotations
import os

os.environ.setdefault("PROMETHEUS_DISABLE_CREATED_SERIES", "1")

from prometheus_client import (  # noqa: E402
    Counter, Histogram, CollectorRegistry,
    generate_latest, CONTENT_TYPE_LATEST,
)

# Use a DEDICATED registry so only our app metrics show up
APP_REGISTRY = CollectorRegistry(auto_describe=True)

# --- Generic HTTP metrics (bind to our registry) ---
REQUEST_COUNT = Counter(
    "http_requests_total", "HTTP requests total",
    ["method", "endpoint", "status"], registry=APP_REGISTRY
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Request latency (seconds)",
    ["endpoint", "method"], registry=APP_REGISTRY,
)

# --- Checkout ---
PREFERENCES = Counter(
    "checkout_preferences_total", "Preference creation attempts", ["outcome"], registry=APP_REGISTRY
)

# --- Webhook / notifications ---
WEBHOOK_EVENTS = Counter(
    "payments_webhook_events_total", "Webhook notifications", ["outcome"], registry=APP_REGISTRY
)
EMAILS_SENT = Counter(
    "notification_emails_total", "Notification emails", ["kind", "outcome"], registry=APP_REGISTRY
)


def init_app(app):
    @app.get("/metrics")
    def metrics():
        data = generate_latest(APP_REGISTRY)
        return app.response_class(data, mimetype=CONTENT_TYPE_LATEST)

    # --- pre-warm labeled series so dashboards don't say "No data" ---
    for outcome in ("ok", "rejected", "upstream_error"):
        PREFERENCES.labels(outcome=outcome).inc(0)
    for outcome in ("missing_id", "duplicate", "lookup_failed", "not_approved", "notified", "error"):
        WEBHOOK_EVENTS.labels(outcome=outcome).inc(0)
    for kind in ("merchant", "buyer"):
        for outcome in ("ok", "failed", "skipped"):
            EMAILS_SENT.labels(kind=kind, outcome=outcome).inc(0)

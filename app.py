import os
import logging
from logging.handlers import RotatingFileHandler
from time import time

from flask import Flask, request, jsonify, g
from flask_cors import CORS
from dotenv import load_dotenv

from controllers.checkout import checkout_bp
from controllers.webhook import webhook_bp
from services.dedupe import get_dedupe_store
from services.mail import get_mailer
from services.metrics import init_app as init_metrics, REQUEST_COUNT, REQUEST_LATENCY
from services.notifier import WebhookNotifier
from services.payments.registry import get_provider
from services.preferences import OrderIdGenerator

# --- Load .env exactly once, here ---
# If you run "python app.py", this ensures variables are loaded.
# If you use "flask run", Flask will also load .env automatically (when python-dotenv is installed).
load_dotenv()

FRONT_ORIGIN = "https://tierradecalma.com"
ALLOWED_ORIGINS = [
    "https://tierradecalma.com",
    "https://www.tierradecalma.com",
]


def _env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).strip().lower() in ("1", "true", "yes", "on")


def _parse_origins(env_val: str | None) -> list[str]:
    """
    Parse ALLOWED_ORIGINS in .env like:
      "https://tierradecalma.com, https://www.tierradecalma.com"
    Blank entries are ignored; trailing slashes are dropped.
    """
    if not env_val:
        return list(ALLOWED_ORIGINS)
    out = [o.strip().rstrip("/") for o in env_val.split(",")]
    return [o for o in out if o]


def init_relay(app: Flask, *, provider=None, mailer=None, store=None) -> None:
    """
    Build the payment provider, mailer, dedupe store and notifier from
    app.config and park them on app.extensions. Explicit arguments win over
    config (tests use this to plug in fakes).
    """
    cfg = app.config
    provider = provider or get_provider(cfg)
    mailer = mailer or get_mailer(cfg)
    store = store or get_dedupe_store(cfg)

    app.extensions["payment_provider"] = provider
    app.extensions["mailer"] = mailer
    app.extensions["dedupe_store"] = store
    app.extensions["order_ids"] = OrderIdGenerator(cfg["ORDER_PREFIX"])
    app.extensions["notifier"] = WebhookNotifier(
        provider=provider,
        mailer=mailer,
        store=store,
        merchant_email=cfg.get("MERCHANT_EMAIL"),
        release_unapproved=cfg.get("WEBHOOK_RELEASE_UNAPPROVED", False),
    )


def create_app(test_config: dict | None = None):
    app = Flask(__name__, instance_relative_config=True)

    # ---- Base config from environment (no hardcoded secrets) ----
    app.config.from_mapping(
        APP_ENV=os.getenv("APP_ENV", "development").lower(),
        PORT=int(os.getenv("PORT", "3000")),

        # Storefront / callbacks
        FRONT_ORIGIN=(os.getenv("FRONT_ORIGIN") or FRONT_ORIGIN).rstrip("/"),
        ALLOWED_ORIGINS=_parse_origins(os.getenv("ALLOWED_ORIGINS")),
        PUBLIC_BACKEND_URL=os.getenv("PUBLIC_BACKEND_URL") or None,
        CURRENCY_ID=os.getenv("CURRENCY_ID", "ARS"),
        ORDER_PREFIX=os.getenv("ORDER_PREFIX", "TDC"),

        # Payment processor
        PAYMENT_PROVIDER=os.getenv("PAYMENT_PROVIDER", "mercadopago"),
        MP_ACCESS_TOKEN=os.getenv("MP_ACCESS_TOKEN"),
        MP_API_BASE=os.getenv("MP_API_BASE", "https://api.mercadopago.com"),
        MP_TIMEOUT=float(os.getenv("MP_TIMEOUT", "15")),

        # Mail
        MAIL_BACKEND=os.getenv("MAIL_BACKEND", "smtp"),
        MAIL_HOST=os.getenv("MAIL_HOST", "smtp.gmail.com"),
        MAIL_PORT=int(os.getenv("MAIL_PORT", "465")),
        MAIL_USE_SSL=_env_bool("MAIL_USE_SSL", True),
        MAIL_USER=os.getenv("MAIL_USER"),
        MAIL_PASS=os.getenv("MAIL_PASS"),
        MAIL_FROM=os.getenv("MAIL_FROM"),
        MERCHANT_EMAIL=os.getenv("MERCHANT_EMAIL"),

        # Webhook dedupe
        DEDUPE_BACKEND=os.getenv("DEDUPE_BACKEND", "memory"),
        REDIS_URL=os.getenv("REDIS_URL"),
        DEDUPE_TTL_SEC=int(os.getenv("DEDUPE_TTL_SEC", "0")),
        WEBHOOK_RELEASE_UNAPPROVED=_env_bool("WEBHOOK_RELEASE_UNAPPROVED", False),

        METRICS_ENABLED=_env_bool("METRICS_ENABLED", True),
    )
    if test_config:
        app.config.update(test_config)

    # ---- Logging ----
    # default on in containers
    log_to_stdout = os.getenv("LOG_TO_STDOUT", "1") == "1"
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    if log_to_stdout:
        handler = logging.StreamHandler()
    else:
        log_dir = os.path.join(os.path.dirname(__file__), "log")
        try:
            os.makedirs(log_dir, exist_ok=True)
            handler = RotatingFileHandler(
                os.path.join(log_dir, "app.log"),
                maxBytes=5 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
        except OSError:
            # If file logging fails (e.g., read-only container), fall back to stdout
            handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    ))

    # avoid duplicate handlers on reload
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    app.logger.setLevel(logging.INFO)

    # ---- CORS ----
    # No Origin header (curl, MercadoPago) is never blocked
    CORS(
        app,
        origins=app.config["ALLOWED_ORIGINS"],
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        supports_credentials=True,
    )

    # ---- Collaborators ----
    init_relay(app)
    if not app.config.get("MERCHANT_EMAIL"):
        app.logger.warning("MERCHANT_EMAIL not set; merchant notifications disabled")
    if not app.config.get("PUBLIC_BACKEND_URL"):
        app.logger.warning("PUBLIC_BACKEND_URL not set; preferences carry no notification_url")

    # ---- Blueprints ----
    app.register_blueprint(checkout_bp)
    app.register_blueprint(webhook_bp)

    # Prometheus
    if app.config["METRICS_ENABLED"]:
        init_metrics(app)

    # ---- Errors ----

    @app.errorhandler(404)
    def not_found(e):
        app.logger.warning("404 %s %s", request.method, request.path)
        return jsonify(error="not found", path=request.path), 404

    @app.errorhandler(405)
    def not_allowed(e):
        app.logger.warning("405 %s %s", request.method, request.path)
        return jsonify(error="method not allowed", path=request.path), 405

    # ---- Routes ----
    @app.get("/")
    def root():
        return "Backend Tierra de Calma OK"

    @app.before_request
    def _start_timer():
        g._t0 = time()

    @app.after_request
    def _log_request(resp):
        try:
            ms = (time() - getattr(g, "_t0", time())) * 1000
            app.logger.info("%s %s %s %s %.1fms",
                            request.remote_addr, request.method, request.full_path, resp.status_code, ms)

            # --- Skip self-scrapes to keep series clean ---
            path = request.path or ""
            if path.startswith("/metrics"):
                return resp

            endpoint = (request.endpoint or "unknown").replace(".", "_")
            REQUEST_COUNT.labels(
                method=request.method, endpoint=endpoint, status=str(resp.status_code)).inc()
            REQUEST_LATENCY.labels(
                endpoint=endpoint, method=request.method).observe(ms / 1000.0)
        except Exception:
            app.logger.exception("Failed to log request")
        return resp

    @app.get("/healthz")
    def healthz():
        # Liveness: process is up, Flask can serve a simple request
        return jsonify(status="ok"), 200

    return app


if __name__ == "__main__":
    # TIP: use APP_ENV=production when deploying behind a real WSGI server
    app = create_app()
    app.logger.info("Backend corriendo en puerto %s", app.config["PORT"])
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=(
        app.config["APP_ENV"] != "production"))

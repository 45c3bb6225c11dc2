# tests/conftest.py
import os
import pytest
from app import create_app, init_relay
from tests.utils import MERCHANT, RecordingMailer


BASE_CONFIG = {
    "TESTING": True,
    "APP_ENV": "test",
    "PAYMENT_PROVIDER": "dummy",
    "MAIL_BACKEND": "console",
    "DEDUPE_BACKEND": "memory",
    "MERCHANT_EMAIL": MERCHANT,
    "PUBLIC_BACKEND_URL": "https://api.tierradecalma.com",
    "FRONT_ORIGIN": "https://tierradecalma.com",
    "ALLOWED_ORIGINS": ["https://tierradecalma.com", "https://www.tierradecalma.com"],
    "WEBHOOK_RELEASE_UNAPPROVED": False,
    "METRICS_ENABLED": False,
}


@pytest.fixture(scope="session", autouse=True)
def _set_env():
    os.environ.setdefault("APP_ENV", "test")
    os.environ.setdefault("LOG_TO_STDOUT", "1")
    yield


@pytest.fixture()
def make_app():
    """Factory: a fresh app (own dedupe store) with a recording mailer."""
    def _make(mailer=None, **overrides):
        app = create_app({**BASE_CONFIG, **overrides})
        init_relay(app, mailer=mailer or RecordingMailer())
        return app
    return _make


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def provider(app):
    return app.extensions["payment_provider"]


@pytest.fixture()
def mailer(app):
    return app.extensions["mailer"]

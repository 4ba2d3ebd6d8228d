"""
Test configuration and fixtures.
Every test gets its own log directory under tmp_path and its own app instance.
"""
import json

import pytest
from unittest.mock import patch

from payrelay.config import Settings
from payrelay.main import create_app


@pytest.fixture
def log_dir(tmp_path):
    return tmp_path / "logs"


@pytest.fixture
def make_settings(log_dir):
    """Build a Settings object isolated from .env, pointing at the test log dir."""
    def _make(**overrides) -> Settings:
        values = {
            "app_env": "test",
            "log_level": "WARNING",
            "stripe_webhook_secret": "",
            "stripe_publishable_key": "pk_test_123",
            "webhook_log_dir": str(log_dir),
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def make_app(make_settings):
    """Application factory bound to test settings."""
    def _make(**overrides):
        settings = make_settings(**overrides)
        with (
            patch("payrelay.main.get_settings", return_value=settings),
            patch("payrelay.main.configure_structured_logging"),
        ):
            app = create_app()
        return app
    return _make


@pytest.fixture
def sample_event():
    """A Stripe payment_intent.succeeded event."""
    return {
        "id": "evt_1",
        "object": "event",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_1", "amount": 2000}},
    }


@pytest.fixture
def sample_body(sample_event):
    return json.dumps(sample_event).encode("utf-8")

"""
Tests for payrelay/config.py - settings defaults, env overrides, CORS origins.
"""
import pytest
from pydantic import ValidationError

from payrelay.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for var in ("STRIPE_WEBHOOK_SECRET", "WEBHOOK_LOG_MAX_BYTES", "WEBHOOK_BUFFER_SIZE", "APP_PORT"):
            monkeypatch.delenv(var, raising=False)
        settings = Settings(_env_file=None)

        assert settings.app_port == 4242
        assert settings.webhook_log_dir == "logs"
        assert settings.webhook_log_max_bytes == 5_242_880
        assert settings.webhook_buffer_size == 100
        assert settings.stripe_webhook_tolerance_seconds == 300
        assert settings.allow_unsigned_webhooks is True

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_env")
        monkeypatch.setenv("WEBHOOK_LOG_MAX_BYTES", "1024")
        monkeypatch.setenv("ALLOW_UNSIGNED_WEBHOOKS", "false")

        settings = Settings(_env_file=None)

        assert settings.stripe_webhook_secret == "whsec_env"
        assert settings.webhook_log_max_bytes == 1024
        assert settings.allow_unsigned_webhooks is False

    def test_unused_env_file_keys_are_ignored(self, tmp_path):
        """A shared .env with keys for other Stripe tooling does not break startup."""
        env_file = tmp_path / ".env"
        env_file.write_text("STRIPE_SECRET_KEY=sk_test_x\nSTRIPE_PUBLISHABLE_KEY=pk_test_env\n")

        settings = Settings(_env_file=env_file)

        assert settings.stripe_publishable_key == "pk_test_env"
        assert "stripe_secret_key" not in Settings.model_fields

    def test_rejects_non_positive_threshold(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, webhook_log_max_bytes=0)


class TestCorsOrigins:
    def test_dev_adds_localhost(self):
        settings = Settings(_env_file=None, app_env="development", allowed_origins="https://a.example")
        origins = settings.cors_origins()
        assert origins[0] == "https://a.example"
        assert "http://localhost:3000" in origins
        assert "http://localhost:5173" in origins

    def test_production_uses_configured_only(self):
        settings = Settings(
            _env_file=None, app_env="production", allowed_origins="https://a.example, https://b.example",
        )
        assert settings.cors_origins() == ["https://a.example", "https://b.example"]

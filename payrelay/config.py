"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is malformed.
"""
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 4242
    log_level: str = "INFO"
    allowed_origins: str = ""  # Comma-separated CORS origins (auto-includes localhost in dev)

    # Stripe
    stripe_publishable_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance_seconds: int = 300

    # When false, deliveries without a secret/signature pair are rejected
    allow_unsigned_webhooks: bool = True

    # Webhook log pipeline
    webhook_log_dir: str = "logs"
    webhook_log_max_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    webhook_buffer_size: int = Field(default=100, gt=0)
    webhook_log_queue_size: int = Field(default=1000, gt=0)

    # Sentry
    sentry_dsn: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def cors_origins(self) -> list[str]:
        """Configured origins plus local dev servers outside production."""
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        if self.app_env != "production":
            for local in ("http://localhost:3000", "http://localhost:5173"):
                if local not in origins:
                    origins.append(local)
        return origins


@lru_cache()
def get_settings() -> Settings:
    return Settings()

"""Shopgate service configuration."""

from __future__ import annotations

import logging

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEV_SESSION_SECRET = "CHANGE_ME_IN_PRODUCTION_SESSION_SECRET"


class Settings(BaseSettings):
    """Environment-driven settings, built once at startup and passed down."""

    # Shopify Admin API credentials (validated when the gateway is built)
    shopify_api_key: str = ""
    shopify_api_secret: SecretStr = SecretStr("")
    shopify_store_url: str = ""

    # Signs session tokens and derives the key for locally encrypted data
    session_secret: SecretStr = SecretStr(DEV_SESSION_SECRET)

    shopify_cache_ttl_seconds: float = Field(default=300.0, gt=0)
    shopify_timeout_seconds: float = Field(default=30.0, gt=0)
    shopify_link_concurrency: int = Field(default=1, ge=1)

    redis_url: str = "redis://localhost:6379/0"
    cors_allowed_origins: str = "http://localhost:3000,http://localhost:5173"
    environment: str = "development"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    def warn_insecure_defaults(self) -> None:
        """Log a warning when the placeholder session secret is still in use."""
        if self.session_secret.get_secret_value() == DEV_SESSION_SECRET:
            logger.warning("SESSION_SECRET not set, using development placeholder")

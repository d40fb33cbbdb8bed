"""Shopify credential accessor.

Security contract:
- Missing credentials fail closed with ConfigurationError naming the variables
- The API secret is held as a SecretStr and never appears in repr/logs
- Sealed credentials encrypt the secret with a SESSION_SECRET-derived key
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import SecretStr

from shopgate.config import Settings
from shopgate.errors import ConfigurationError
from shopgate.security.crypto import decrypt_data, encrypt_data

_REQUIRED_VARS = ("SHOPIFY_API_KEY", "SHOPIFY_API_SECRET", "SHOPIFY_STORE_URL")


def normalize_store_url(store_url: str) -> str:
    """Reduce 'https://shop.myshopify.com/' to 'shop.myshopify.com'."""
    url = store_url.strip()
    for scheme in ("https://", "http://"):
        if url.lower().startswith(scheme):
            url = url[len(scheme):]
    return url.rstrip("/")


@dataclass(frozen=True)
class ShopifyCredentials:
    """API key, secret (also the access token) and store domain."""

    api_key: str
    api_secret: SecretStr
    store_url: str

    @classmethod
    def from_settings(cls, settings: Settings) -> ShopifyCredentials:
        """Read credentials from settings or raise ConfigurationError."""
        values = {
            "SHOPIFY_API_KEY": settings.shopify_api_key.strip(),
            "SHOPIFY_API_SECRET": settings.shopify_api_secret.get_secret_value().strip(),
            "SHOPIFY_STORE_URL": normalize_store_url(settings.shopify_store_url),
        }
        missing = [name for name in _REQUIRED_VARS if not values[name]]
        if missing:
            raise ConfigurationError(
                "Shopify credentials not set in environment: " + ", ".join(missing)
            )
        return cls(
            api_key=values["SHOPIFY_API_KEY"],
            api_secret=SecretStr(values["SHOPIFY_API_SECRET"]),
            store_url=values["SHOPIFY_STORE_URL"],
        )

    @property
    def access_token(self) -> str:
        return self.api_secret.get_secret_value()

    def seal(self, session_secret: str) -> SealedCredentials:
        """Encrypt the API secret for storage."""
        return SealedCredentials(
            api_key=self.api_key,
            encrypted_api_secret=encrypt_data(self.access_token, session_secret),
            store_url=self.store_url,
        )


@dataclass(frozen=True)
class SealedCredentials:
    """Stored form of a tenant's credentials."""

    api_key: str
    encrypted_api_secret: str
    store_url: str

    def unseal(self, session_secret: str) -> ShopifyCredentials:
        """Decrypt into usable credentials.

        Raises:
            ConfigurationError: the stored secret cannot be decrypted.
        """
        try:
            secret = decrypt_data(self.encrypted_api_secret, session_secret)
        except ValueError as e:
            raise ConfigurationError("Stored Shopify credentials could not be decrypted") from e
        return ShopifyCredentials(
            api_key=self.api_key,
            api_secret=SecretStr(secret),
            store_url=normalize_store_url(self.store_url),
        )

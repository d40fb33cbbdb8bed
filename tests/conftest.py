"""Shared fixtures for the Shopgate test suite.

- app_settings: fully configured Settings (no .env, no real Redis)
- shopify_upstream: in-process fake of the Shopify Admin API (httpx.MockTransport)
- app / role clients: FastAPI app wired to the fake upstream
"""

from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from shopgate.config import Settings
from shopgate.security.auth import TokenMetadata, create_token
from shopgate.security.middleware import limiter
from shopgate.serve import create_app
from shopgate.shopify.client import SHOPIFY_API_VERSION

TEST_API_SECRET = "shpat_test_secret"
TEST_SESSION_SECRET = "test-session-secret"
TEST_STORE = "test-store.myshopify.com"

_BASE_PATH = f"/admin/api/{SHOPIFY_API_VERSION}"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "shopify_api_key": "test-api-key",
        "shopify_api_secret": TEST_API_SECRET,
        "shopify_store_url": TEST_STORE,
        "session_secret": TEST_SESSION_SECRET,
        "redis_url": "redis://localhost:6399/0",
        "environment": "test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeShopify:
    """Routes requests by (method, endpoint) where endpoint excludes the versioned base."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def add(self, method: str, endpoint: str, json: Any = None, status: int = 200) -> None:
        self._routes[(method, endpoint)] = lambda request: httpx.Response(status, json=json)

    def fail(self, method: str, endpoint: str, exc_type: type[httpx.HTTPError] = httpx.ConnectError) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc_type("connection refused", request=request)

        self._routes[(method, endpoint)] = _raise

    def endpoints(self) -> list[str]:
        return [self.endpoint_of(r) for r in self.calls]

    @staticmethod
    def endpoint_of(request: httpx.Request) -> str:
        return request.url.raw_path.decode().removeprefix(_BASE_PATH)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self._routes.get((request.method, self.endpoint_of(request)))
        if handler is None:
            return httpx.Response(404, json={"errors": "Not Found"})
        return handler(request)


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings


@pytest.fixture
def app_settings() -> Settings:
    return make_settings()


@pytest.fixture
def shopify_upstream() -> FakeShopify:
    return FakeShopify()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app(app_settings, shopify_upstream):
    """App wired to the fake upstream, with a fresh rate-limit window."""
    limiter.reset()
    return create_app(app_settings, transport=httpx.MockTransport(shopify_upstream))


@pytest.fixture
def make_auth_header(app_settings):
    """Factory: (headers_dict, TokenMetadata) for a role."""

    def _make(role: str = "viewer", expires_in: int = 3600) -> tuple[dict[str, str], TokenMetadata]:
        meta = create_token(
            app_settings.session_secret.get_secret_value(),
            role=role,
            subject=f"{role}-user",
            expires_in=expires_in,
        )
        return {"Authorization": f"Bearer {meta.token}"}, meta

    return _make


@pytest.fixture
def role_client(app, make_auth_header):
    """Factory for a TestClient authenticated as ``role``."""

    def _make(role: str) -> TestClient:
        headers, _ = make_auth_header(role)
        return TestClient(app, raise_server_exceptions=False, headers=headers)

    return _make


@pytest.fixture
def admin_client(role_client):
    return role_client("admin")


@pytest.fixture
def manager_client(role_client):
    return role_client("manager")


@pytest.fixture
def sales_client(role_client):
    return role_client("sales")


@pytest.fixture
def client(app):
    """Unauthenticated TestClient (attacker perspective)."""
    return TestClient(app, raise_server_exceptions=False)

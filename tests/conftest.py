"""Pytest configuration and fixtures for storefront security tests.

Time is driven by hand: ``ManualClock`` stands in for the wall clock and
``ManualScheduler`` fires scheduled callbacks only when a test advances it.
"""

import os
import time
from collections.abc import Callable
from typing import Any

import jwt
import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["CSRF_SECRET"] = "test-csrf-secret-" + "c" * 32
os.environ["ENCRYPTION_KEY"] = "0" * 64  # Valid 32-byte hex key for tests
os.environ["PAYMENT_SECRET"] = "test-payment-secret-" + "p" * 32
os.environ["PAYMENT_SALT"] = "test-payment-salt-" + "s" * 32
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret-" + "j" * 32
os.environ["RATE_LIMIT_ENABLED"] = "false"

from storefront.core.config import SecurityConfig, Settings  # noqa: E402
from storefront.middleware.rate_limit import PathRateLimitConfig, RateLimiter  # noqa: E402
from storefront.services.crypto import TokenCodec  # noqa: E402
from storefront.services.csrf import CsrfGuard  # noqa: E402
from storefront.services.payment_token import PaymentTokenizer  # noqa: E402

TEST_JWT_SECRET = os.environ["SUPABASE_JWT_SECRET"]
TEST_USER_ID = "5f0c7c39-6a43-4d0e-9b6e-2f5b1c9d8e11"

# 2023-11-14T22:13:20Z, a round number of milliseconds
START_MS = 1_700_000_000_000


class ManualClock:
    """Epoch clock that only moves when told to. Tracks whole milliseconds."""

    def __init__(self, start_ms: int = START_MS) -> None:
        self.ms = start_ms

    def __call__(self) -> float:
        return self.ms / 1000

    def advance(self, ms: int) -> None:
        self.ms += ms

    def set(self, ms: int) -> None:
        self.ms = ms


class _ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose callbacks run during ``advance`` in due order."""

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self._pending: list[tuple[int, int, _ManualHandle, Callable[[], None]]] = []
        self._seq = 0

    def schedule_after(self, delay_seconds: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle()
        due = self.clock.ms + round(delay_seconds * 1000)
        self._seq += 1
        self._pending.append((due, self._seq, handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._pending if not handle.cancelled)

    def advance(self, ms: int) -> None:
        target = self.clock.ms + ms
        while True:
            live = [entry for entry in self._pending if not entry[2].cancelled]
            due = [entry for entry in live if entry[0] <= target]
            if not due:
                break
            entry = min(due, key=lambda e: (e[0], e[1]))
            self._pending.remove(entry)
            self.clock.set(max(self.clock.ms, entry[0]))
            entry[3]()
        self._pending = [entry for entry in self._pending if not entry[2].cancelled]
        self.clock.set(target)


class FakeAuthProvider:
    """Records sign-out calls instead of talking to Supabase."""

    def __init__(self, user_id: str | None = TEST_USER_ID, fail_with: Exception | None = None):
        self.user_id = user_id
        self.fail_with = fail_with
        self.sign_out_calls = 0

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.fail_with is not None:
            raise self.fail_with

    async def get_current_user_id(self) -> str | None:
        return self.user_id

    async def sign_in_with_password(self, email: str, password: str) -> Any:
        raise NotImplementedError


def make_access_token(
    user_id: str = TEST_USER_ID,
    secret: str = TEST_JWT_SECRET,
    expires_in: int = 3600,
    audience: str = "authenticated",
) -> str:
    """Build a Supabase-style HS256 access token."""
    now = int(time.time())
    payload = {
        "sub": user_id,
        "aud": audience,
        "role": "authenticated",
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def security_config() -> SecurityConfig:
    """Security config with fixed test secrets and short token lifetimes."""
    return SecurityConfig(
        csrf_secret=os.environ["CSRF_SECRET"],
        encryption_key=os.environ["ENCRYPTION_KEY"],
        payment_secret=os.environ["PAYMENT_SECRET"],
        payment_salt=os.environ["PAYMENT_SALT"],
        csrf_token_ttl_ms=60 * 60 * 1000,
        payment_token_ttl_ms=15 * 60 * 1000,
    )


@pytest.fixture
def codec(security_config) -> TokenCodec:
    return TokenCodec(security_config)


@pytest.fixture
def guard(security_config, codec, clock) -> CsrfGuard:
    return CsrfGuard(security_config, codec, clock=clock)


@pytest.fixture
def tokenizer(security_config, codec, clock) -> PaymentTokenizer:
    return PaymentTokenizer(security_config, codec, clock=clock)


@pytest.fixture
def auth_provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        csrf_secret=os.environ["CSRF_SECRET"],
        encryption_key=os.environ["ENCRYPTION_KEY"],
        payment_secret=os.environ["PAYMENT_SECRET"],
        payment_salt=os.environ["PAYMENT_SALT"],
        supabase_jwt_secret=TEST_JWT_SECRET,
        rate_limit_enabled=False,
    )


@pytest.fixture
def app(test_settings, security_config, clock, auth_provider):
    """Fresh application with manual time and no rate limiting."""
    from storefront.main import create_app

    high = PathRateLimitConfig(max_requests=10000, window_seconds=60)
    return create_app(
        settings=test_settings,
        config=security_config,
        clock=clock,
        rate_limiter=RateLimiter(path_configs={}, default_config=high),
        auth_provider=auth_provider,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def csrf_client(client) -> TestClient:
    """Client holding a CSRF cookie, with the matching header preset."""
    response = client.get("/api/csrf")
    client.headers["X-CSRF-Token"] = response.json()["csrf_token"]
    return client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_access_token()}"}

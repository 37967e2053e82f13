"""Rate limiting middleware for API protection."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from storefront.core.request_utils import get_client_ip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathRateLimitConfig:
    """Fixed-window limit for a path group."""

    max_requests: int
    window_seconds: int


@dataclass
class RateLimitWindow:
    """Request count for one client+path group inside the current window."""

    count: int
    reset_at: float


DEFAULT_PATH_CONFIGS: dict[str, PathRateLimitConfig] = {
    # Sign-in and password checks - brute force protection
    "/api/auth": PathRateLimitConfig(max_requests=5, window_seconds=15 * 60),
    # Payment token minting and confirmation
    "/api/checkout": PathRateLimitConfig(max_requests=10, window_seconds=60),
    "/api/": PathRateLimitConfig(max_requests=20, window_seconds=60),
}

DEFAULT_CONFIG = PathRateLimitConfig(max_requests=100, window_seconds=60)


class RateLimiter:
    """In-memory fixed-window rate limiter.

    One instance per process, created by the application factory. For
    multi-instance deployments a shared store would be needed.
    """

    def __init__(
        self,
        path_configs: dict[str, PathRateLimitConfig] | None = None,
        default_config: PathRateLimitConfig = DEFAULT_CONFIG,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._path_configs = dict(DEFAULT_PATH_CONFIGS if path_configs is None else path_configs)
        self._default_config = default_config

    def _group_for_path(self, path: str) -> str | None:
        # Longest prefix wins so /api/auth is not swallowed by /api/
        for prefix in sorted(self._path_configs, key=len, reverse=True):
            if path.startswith(prefix):
                return prefix
        return None

    def get_config_for_path(self, path: str) -> PathRateLimitConfig:
        """Get rate limit config for a given path."""
        group = self._group_for_path(path)
        return self._path_configs[group] if group else self._default_config

    def _get_window_key(self, client_ip: str, path: str) -> str:
        return f"{client_ip}:{self._group_for_path(path) or 'default'}"

    async def check_rate_limit(self, client_ip: str, path: str) -> tuple[bool, dict[str, str]]:
        """Count a request and report whether it is allowed.

        Returns:
            Tuple of (is_allowed, headers_dict)
        """
        config = self.get_config_for_path(path)
        key = self._get_window_key(client_ip, path)

        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                window = RateLimitWindow(count=0, reset_at=now + config.window_seconds)
                self._windows[key] = window

            window.count += 1
            reset_seconds = max(1, int(window.reset_at - now))
            headers = {
                "X-RateLimit-Limit": str(config.max_requests),
                "X-RateLimit-Remaining": str(max(0, config.max_requests - window.count)),
                "X-RateLimit-Reset": str(reset_seconds),
            }

            if window.count > config.max_requests:
                headers["Retry-After"] = str(reset_seconds)
                return False, headers
            return True, headers

    async def get_stats(self) -> dict[str, dict]:
        """Get current rate limit statistics."""
        async with self._lock:
            return {
                key: {"count": window.count, "reset_at": window.reset_at}
                for key, window in self._windows.items()
            }

    async def reset(self, client_ip: str | None = None) -> None:
        """Reset rate limit counters."""
        async with self._lock:
            if client_ip:
                for key in [k for k in self._windows if k.startswith(f"{client_ip}:")]:
                    del self._windows[key]
            else:
                self._windows.clear()

    async def cleanup_expired_windows(self) -> int:
        """Remove windows that have already reset. Returns count removed."""
        async with self._lock:
            now = self._clock()
            expired = [key for key, window in self._windows.items() if now >= window.reset_at]
            for key in expired:
                del self._windows[key]

            if expired:
                logger.info(f"Cleaned up {len(expired)} expired rate limit windows")
            return len(expired)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP, per-path-group rate limiting with rate limit response headers."""

    def __init__(
        self,
        app: ASGIApp,
        rate_limiter: RateLimiter,
        exclude_paths: list[str] | None = None,
        trusted_proxies: frozenset[str] = frozenset(),
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.exclude_paths = exclude_paths or ["/health"]
        self.trusted_proxies = trusted_proxies
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request with rate limiting."""
        if not self.enabled:
            return await call_next(request)

        path = request.url.path
        if any(path == p or path.startswith(p + "/") for p in self.exclude_paths):
            return await call_next(request)

        client_ip = get_client_ip(request, self.trusted_proxies)
        is_allowed, headers = await self.rate_limiter.check_rate_limit(client_ip, path)

        if not is_allowed:
            logger.warning(f"Rate limit exceeded for {client_ip} on {path}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": "Too many requests. Please try again later.",
                    "retry_after": int(headers["Retry-After"]),
                },
                headers=headers,
            )

        response = await call_next(request)

        for key, value in headers.items():
            response.headers[key] = value

        return response

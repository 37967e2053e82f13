"""Storefront security backend - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api import api_router
from storefront.api.health import router as health_router
from storefront.core import settings as default_settings
from storefront.core.config import SecurityConfig, Settings
from storefront.core.logging import get_logger, setup_logging
from storefront.core.request_utils import parse_trusted_proxies
from storefront.core.scheduler import Clock, system_clock
from storefront.middleware import (
    CSRFMiddleware,
    RateLimiter,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
    rate_limit_cleanup_loop,
)
from storefront.services.auth import AuthProvider, SupabaseAuthClient
from storefront.services.crypto import TokenCodec
from storefront.services.csrf import CSRF_HEADER_NAME, CsrfGuard
from storefront.services.payment_token import PaymentTokenizer

logger = get_logger("main")


def _task_done_callback(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc!r}")


def create_app(
    settings: Settings | None = None,
    config: SecurityConfig | None = None,
    clock: Clock = system_clock,
    rate_limiter: RateLimiter | None = None,
    auth_provider: AuthProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Every security component is built here once and shared through
    ``app.state``. Tests pass their own config, clock and limiter.

    Raises:
        ConfigurationError: If a secret is missing in production.
    """
    settings = settings or default_settings
    config = config or SecurityConfig.from_settings(settings)

    codec = TokenCodec(config)
    csrf_guard = CsrfGuard(config, codec, clock=clock)
    payment_tokenizer = PaymentTokenizer(config, codec, clock=clock)
    rate_limiter = rate_limiter or RateLimiter()
    owns_auth_client = auth_provider is None
    if auth_provider is None:
        auth_provider = SupabaseAuthClient(
            base_url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            jwt_secret=settings.supabase_jwt_secret,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        setup_logging(level=settings.log_level, format_type=settings.log_format)
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")

        for warning in settings.check_security_configuration():
            logger.warning(f"Security configuration: {warning}")

        cleanup_task = asyncio.create_task(rate_limit_cleanup_loop(rate_limiter))
        cleanup_task.add_done_callback(_task_done_callback)

        yield

        logger.info("Shutting down...")
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        if owns_auth_client and isinstance(auth_provider, SupabaseAuthClient):
            await auth_provider.aclose()

    app = FastAPI(
        title=settings.app_name,
        description="Security core for the storefront: CSRF, payment tokens, encrypted payloads",
        version=settings.app_version,
        lifespan=lifespan,
        # The schema lists every endpoint and payload model; only expose it locally
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.state.security_config = config
    app.state.codec = codec
    app.state.csrf_guard = csrf_guard
    app.state.payment_tokenizer = payment_tokenizer
    app.state.rate_limiter = rate_limiter
    app.state.auth_provider = auth_provider
    app.state.jwt_secret = settings.supabase_jwt_secret

    # CSRF runs innermost so rejected requests still get security headers
    app.add_middleware(CSRFMiddleware, guard=csrf_guard)

    app.add_middleware(SecurityHeadersMiddleware, production=config.production)

    app.add_middleware(
        RateLimitMiddleware,
        rate_limiter=rate_limiter,
        exclude_paths=["/health"],
        trusted_proxies=parse_trusted_proxies(settings.trusted_proxy_ips),
        enabled=settings.rate_limit_enabled,
    )

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    # so that CORS headers are present on 403 and 429 responses too.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            CSRF_HEADER_NAME,
        ],
        expose_headers=[CSRF_HEADER_NAME],
    )

    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api

    return app


# Application instance
app = create_app()

"""Middleware module for the storefront backend."""

from storefront.middleware.csrf import CSRFMiddleware
from storefront.middleware.rate_limit import RateLimiter, RateLimitMiddleware
from storefront.middleware.rate_limit_cleanup import rate_limit_cleanup_loop
from storefront.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "CSRFMiddleware",
    "RateLimiter",
    "RateLimitMiddleware",
    "SecurityHeadersMiddleware",
    "rate_limit_cleanup_loop",
]

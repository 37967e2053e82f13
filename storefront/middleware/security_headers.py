"""Security headers middleware."""

import secrets

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

API_CSP = (
    "default-src 'self'; script-src 'self'; object-src 'none'; "
    "base-uri 'none'; frame-ancestors 'none'"
)

NO_STORE_PREFIXES = ("/api/", "/checkout", "/account")


def storefront_csp(nonce: str, checkout: bool = False) -> str:
    """Content-Security-Policy for storefront pages."""
    img_src = "img-src 'self' data: https://stripe.com https://*.stripe.com https://*.supabase.co"
    form_action = "form-action 'self'"
    if checkout:
        img_src = "img-src 'self' data: https://*.stripe.com https://stripe.com"
        form_action = "form-action 'self' https://api.stripe.com"

    directives = [
        "default-src 'self'",
        img_src,
        "font-src 'self' data: https://fonts.gstatic.com",
        f"script-src 'self' 'nonce-{nonce}' https://js.stripe.com",
        "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
        "connect-src 'self' https://*.supabase.co https://api.stripe.com",
        "frame-src 'self' https://js.stripe.com https://hooks.stripe.com",
        "base-uri 'self'",
        form_action,
        "frame-ancestors 'self'",
        "object-src 'none'",
        "upgrade-insecure-requests",
    ]
    return "; ".join(directives)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    def __init__(self, app: ASGIApp, production: bool = False) -> None:
        super().__init__(app)
        self.production = production

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        nonce = secrets.token_urlsafe(16)
        request.state.csp_nonce = nonce

        response = await call_next(request)
        path = request.url.path

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if path.startswith("/api/"):
            response.headers["Content-Security-Policy"] = API_CSP
            response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
        else:
            response.headers["Content-Security-Policy"] = storefront_csp(
                nonce, checkout="/checkout" in path
            )
            response.headers["Permissions-Policy"] = (
                "camera=(), microphone=(), geolocation=(self), payment=(self)"
            )

        if any(path.startswith(prefix) for prefix in NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store, max-age=0"
            response.headers["Pragma"] = "no-cache"

        forwarded_proto = request.headers.get("x-forwarded-proto", "")
        if self.production or forwarded_proto == "https" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=63072000; includeSubDomains; preload"
            )

        return response

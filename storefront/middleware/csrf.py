"""CSRF enforcement at the HTTP edge.

Mutating requests under /api/ must carry a token (header or JSON ``_csrf``
field) that matches the ``csrf_token`` cookie and passes signature and
expiry checks. Safe requests without a currently valid cookie get a freshly
issued token on the response.
"""

import logging

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from storefront.services.csrf import (
    CSRF_COOKIE_NAME,
    CSRF_HEADER_NAME,
    CsrfGuard,
    CsrfTokenState,
    extract_token,
)

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
PROTECTED_PREFIX = "/api"

# Webhooks are authenticated by their sender's signature instead.
EXEMPT_PATHS = [
    "/api/webhook",
]

CSRF_FAILURE_BODY = {
    "error": "Invalid CSRF token",
    "message": "Your request was blocked due to security concerns. "
    "Please refresh the page and try again.",
}


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


class CSRFMiddleware(BaseHTTPMiddleware):
    """Double-submit CSRF check with signed tokens."""

    def __init__(self, app: ASGIApp, guard: CsrfGuard) -> None:
        super().__init__(app)
        self.guard = guard

    def is_protected(self, request: Request) -> bool:
        path = request.url.path
        if request.method in SAFE_METHODS:
            return False
        if not _matches(path, PROTECTED_PREFIX):
            return False
        return not any(_matches(path, exempt) for exempt in EXEMPT_PATHS)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        if self.is_protected(request):
            cookie_token = request.cookies.get(CSRF_COOKIE_NAME)
            candidate = await extract_token(request)
            if not self.guard.validate(candidate, cookie_token):
                logger.warning(
                    f"CSRF validation failed: {request.method} {path} "
                    f"(cookie={'present' if cookie_token else 'missing'}, "
                    f"token={'present' if candidate else 'missing'})"
                )
                return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=CSRF_FAILURE_BODY)

        response = await call_next(request)

        cookie_state = self.guard.token_state(request.cookies.get(CSRF_COOKIE_NAME))
        if request.method in ("GET", "HEAD") and cookie_state is not CsrfTokenState.ISSUED_VALID:
            # The endpoint may already have issued one (e.g. GET /api/csrf).
            if CSRF_HEADER_NAME not in response.headers:
                token = self.guard.issue()
                response.set_cookie(value=token, **self.guard.cookie_params())
                response.headers[CSRF_HEADER_NAME] = token

        return response

"""CSRF token issuance and validation.

Tokens are ``<timestamp_ms>.<nonce_hex>.<signature_hex>`` where the signature
is an HMAC over ``<timestamp_ms>.<nonce_hex>``. Validation is double-submit:
the token sent by the client must equal the cookie copy verbatim, and must
also carry a valid, unexpired signature.
"""

import hmac
import json
import logging
from enum import Enum
from typing import Any

from fastapi import Request

from storefront.core.config import SecurityConfig
from storefront.core.scheduler import Clock, now_ms, system_clock
from storefront.services.crypto import TokenCodec

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_FORM_FIELD = "_csrf"
TOKEN_SEPARATOR = "."
NONCE_BYTES = 16

# Tokens stamped further than this in the future are rejected outright.
MAX_CLOCK_SKEW_MS = 60 * 1000


class CsrfTokenState(str, Enum):
    """Lifecycle state of a single CSRF token."""

    NO_TOKEN = "no_token"
    ISSUED_VALID = "issued_valid"
    EXPIRED = "expired"
    INVALID = "invalid"


class CsrfGuard:
    """Mints and checks signed anti-forgery tokens."""

    def __init__(
        self,
        config: SecurityConfig,
        codec: TokenCodec,
        clock: Clock = system_clock,
    ) -> None:
        self._config = config
        self._codec = codec
        self._clock = clock

    @property
    def ttl_ms(self) -> int:
        return self._config.csrf_token_ttl_ms

    def issue(self) -> str:
        """Mint a new token. Setting the cookie is up to the caller."""
        timestamp = str(now_ms(self._clock))
        nonce = self._codec.random_hex(NONCE_BYTES)
        payload = f"{timestamp}{TOKEN_SEPARATOR}{nonce}"
        signature = self._codec.sign(payload, self._config.csrf_secret)
        return f"{payload}{TOKEN_SEPARATOR}{signature}"

    def token_state(self, token: str | None) -> CsrfTokenState:
        """Classify a single token without a double-submit comparison."""
        if not token:
            return CsrfTokenState.NO_TOKEN

        parts = token.split(TOKEN_SEPARATOR)
        if len(parts) != 3:
            return CsrfTokenState.INVALID

        timestamp, nonce, signature = parts
        try:
            issued_at = int(timestamp)
        except ValueError:
            return CsrfTokenState.INVALID

        payload = f"{timestamp}{TOKEN_SEPARATOR}{nonce}"
        if not self._codec.verify(payload, signature, self._config.csrf_secret):
            return CsrfTokenState.INVALID

        age = now_ms(self._clock) - issued_at
        if age < -MAX_CLOCK_SKEW_MS:
            return CsrfTokenState.INVALID
        if age > self.ttl_ms:
            return CsrfTokenState.EXPIRED
        return CsrfTokenState.ISSUED_VALID

    def validate(self, candidate: str | None, stored: str | None) -> bool:
        """Validate a client-supplied token against the cookie copy.

        Never raises: malformed input is simply invalid.
        """
        if not candidate or not stored:
            return False

        if not hmac.compare_digest(candidate.encode("utf-8"), stored.encode("utf-8")):
            logger.debug("CSRF token does not match cookie copy")
            return False

        state = self.token_state(candidate)
        if state is not CsrfTokenState.ISSUED_VALID:
            logger.debug(f"CSRF token rejected: {state.value}")
            return False
        return True

    def cookie_params(self) -> dict[str, Any]:
        """Keyword arguments for ``Response.set_cookie``."""
        return {
            "key": CSRF_COOKIE_NAME,
            "httponly": True,
            "secure": self._config.production,
            "samesite": self._config.csrf_cookie_samesite,
            "path": "/",
            "max_age": self.ttl_ms // 1000,
        }


async def extract_token(request: Request) -> str | None:
    """Find the client-visible CSRF token on a request.

    The header wins; JSON bodies of POST/PUT/PATCH requests may carry the
    token in the ``_csrf`` field instead.
    """
    header_token = request.headers.get(CSRF_HEADER_NAME)
    if header_token:
        return header_token

    if request.method not in ("POST", "PUT", "PATCH"):
        return None

    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        return None

    try:
        body = json.loads(await request.body())
    except ValueError:
        return None

    if isinstance(body, dict):
        token = body.get(CSRF_FORM_FIELD)
        if isinstance(token, str):
            return token
    return None

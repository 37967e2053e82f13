"""Short-lived payment verification tokens.

A payment token proves that a checkout request came from a given user
within a bounded time window. Tokens are keyed with the payment secret, so
they cannot be forged without it. Single use is up to the order-processing
caller; this module keeps no record of issued tokens.
"""

import hmac
import logging
from dataclasses import dataclass

from storefront.core.config import SecurityConfig
from storefront.core.scheduler import Clock, now_ms, system_clock
from storefront.services.crypto import TokenCodec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentToken:
    """Minted token plus the timestamps needed to validate it."""

    token: str
    issued_at: int
    expires_at: int


class PaymentTokenizer:
    """Mints and validates payment tokens. Stateless."""

    def __init__(
        self,
        config: SecurityConfig,
        codec: TokenCodec,
        clock: Clock = system_clock,
    ) -> None:
        self._config = config
        self._codec = codec
        self._clock = clock

    def _compute(self, user_id: str, issued_at: int, expires_at: int) -> str:
        return self._codec.sign(f"{user_id}-{issued_at}-{expires_at}", self._config.payment_secret)

    def mint(self, user_id: str, now: int | None = None, ttl_ms: int | None = None) -> PaymentToken:
        """Create a token for ``user_id`` valid for ``ttl_ms`` (default 15 min)."""
        if not user_id:
            raise ValueError("user_id is required to mint a payment token")

        ttl = self._config.payment_token_ttl_ms if ttl_ms is None else ttl_ms
        if ttl <= 0:
            raise ValueError("Payment token lifetime must be positive")

        issued_at = now_ms(self._clock) if now is None else now
        expires_at = issued_at + ttl
        return PaymentToken(
            token=self._compute(user_id, issued_at, expires_at),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def validate(
        self,
        token: str,
        user_id: str,
        issued_at: int,
        expires_at: int,
        now: int | None = None,
    ) -> bool:
        """Check a token. Never raises; the reason is only logged."""
        current = now_ms(self._clock) if now is None else now
        if current > expires_at:
            logger.debug("Payment token rejected: expired")
            return False

        if not isinstance(token, str) or not user_id:
            logger.debug("Payment token rejected: malformed")
            return False

        expected = self._compute(user_id, issued_at, expires_at)
        if not hmac.compare_digest(expected.encode("ascii"), token.encode("utf-8")):
            logger.debug("Payment token rejected: mismatch")
            return False
        return True

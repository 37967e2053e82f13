"""Security facade consumed by forms, pages and the HTTP layer."""

import logging
from dataclasses import replace
from typing import Any

from storefront.core.config import SecurityConfig
from storefront.services.auth import AuthError, AuthProvider
from storefront.services.crypto import DecryptionError, TokenCodec
from storefront.services.csrf import CSRF_HEADER_NAME, CsrfGuard, CsrfTokenState
from storefront.services.password_strength import PasswordStrength, check_password_strength
from storefront.services.payment_token import PaymentToken, PaymentTokenizer
from storefront.services.sanitizer import sanitize
from storefront.services.secure_storage import SecureStorage
from storefront.services.session_timeout import SessionTimeoutConfig, SessionTimeoutMonitor

logger = logging.getLogger(__name__)

CSRF_STORAGE_KEY = "csrf_token"
SIGN_IN_PATH = "/auth/signin"
SESSION_TIMEOUT_REASON = "session_timeout"


def sign_in_redirect(reason: str = SESSION_TIMEOUT_REASON) -> str:
    """Sign-in URL carrying the reason the user was sent there."""
    return f"{SIGN_IN_PATH}?reason={reason}"


class SecurityService:
    """Single surface over the codec, CSRF, payment tokens and session timeout."""

    def __init__(
        self,
        config: SecurityConfig,
        codec: TokenCodec,
        csrf: CsrfGuard,
        payments: PaymentTokenizer,
        monitor: SessionTimeoutMonitor,
        storage: SecureStorage,
        auth: AuthProvider,
    ) -> None:
        self._config = config
        self._codec = codec
        self._csrf = csrf
        self._payments = payments
        self._monitor = monitor
        self._storage = storage
        self._auth = auth
        self.redirect_to: str | None = None

    @property
    def monitor(self) -> SessionTimeoutMonitor:
        return self._monitor

    @property
    def storage(self) -> SecureStorage:
        return self._storage

    def initialize(self, timeout_config: SessionTimeoutConfig | None = None) -> None:
        """Start inactivity monitoring and pre-mint a CSRF token."""
        if timeout_config is None:
            timeout_config = SessionTimeoutConfig(
                timeout_ms=self._config.session_timeout_ms,
                warning_ms=self._config.session_warning_ms,
            )
        if timeout_config.on_timeout is None:
            timeout_config = replace(timeout_config, on_timeout=self._handle_session_timeout)

        self.redirect_to = None
        self._monitor.start(timeout_config)
        self._storage.set_item(CSRF_STORAGE_KEY, self._csrf.issue())
        logger.info("Security services initialized")

    async def _handle_session_timeout(self) -> None:
        await self.logout()
        self.redirect_to = sign_in_redirect()

    def encrypt(self, data: Any) -> str:
        return self._codec.encrypt(data)

    def decrypt(self, data: str) -> Any:
        """Decrypt, returning None instead of raising on bad input."""
        try:
            return self._codec.decrypt(data)
        except DecryptionError:
            logger.warning("Failed to decrypt data")
            return None

    def get_csrf_token(self) -> str:
        token = self._storage.get_item(CSRF_STORAGE_KEY)
        if isinstance(token, str) and self._csrf.token_state(token) is CsrfTokenState.ISSUED_VALID:
            return token
        token = self._csrf.issue()
        self._storage.set_item(CSRF_STORAGE_KEY, token)
        return token

    def secure_request(self, options: dict[str, Any] | None = None) -> dict[str, Any]:
        """Return a copy of fetch-style options with the CSRF header added."""
        options = dict(options or {})
        headers = dict(options.get("headers") or {})
        headers[CSRF_HEADER_NAME] = self.get_csrf_token()
        options["headers"] = headers
        return options

    def sanitize(self, value: Any) -> Any:
        return sanitize(value)

    def check_password_strength(self, password: str) -> PasswordStrength:
        return check_password_strength(password)

    def mint_payment_token(self, user_id: str, now: int | None = None) -> PaymentToken:
        return self._payments.mint(user_id, now=now)

    def validate_payment_token(
        self,
        token: str,
        user_id: str,
        issued_at: int,
        expires_at: int,
        now: int | None = None,
    ) -> bool:
        return self._payments.validate(token, user_id, issued_at, expires_at, now=now)

    async def logout(self) -> None:
        """Clear secure storage, stop monitoring and sign out at the provider."""
        self._storage.clear()
        self._monitor.stop()
        try:
            await self._auth.sign_out()
        except AuthError:
            logger.exception("Error during logout")
            raise

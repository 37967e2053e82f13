"""Authentication provider integration (Supabase GoTrue).

The security core does not implement authentication. It reacts to the
provider's session state: it reads the current user from a Supabase access
token and asks the provider to sign out.
"""

import logging
from typing import Any, Protocol

import httpx
import jwt
from jwt.exceptions import PyJWTError
from pydantic import BaseModel

logger = logging.getLogger(__name__)

SUPABASE_JWT_ALGORITHM = "HS256"
SUPABASE_JWT_AUDIENCE = "authenticated"
DEFAULT_TIMEOUT_SECONDS = 10.0


class AuthError(Exception):
    """Base authentication error."""

    pass


class InvalidCredentialsError(AuthError):
    """Invalid email or password."""

    pass


class TokenError(AuthError):
    """JWT token error."""

    pass


class TokenExpiredError(TokenError):
    """JWT token has expired."""

    pass


class InvalidTokenError(TokenError):
    """JWT token is invalid."""

    pass


class AuthSession(BaseModel):
    """Session returned by a successful sign-in."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    user_id: str


class AuthProvider(Protocol):
    """What the security core needs from the auth backend."""

    async def sign_out(self) -> None: ...

    async def get_current_user_id(self) -> str | None: ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession: ...


def decode_access_token(token: str, jwt_secret: str) -> dict[str, Any]:
    """Decode and validate a Supabase access token."""
    if not jwt_secret:
        raise InvalidTokenError("Token verification is not configured")
    try:
        return jwt.decode(
            token,
            jwt_secret,
            algorithms=[SUPABASE_JWT_ALGORITHM],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError("Token has expired") from e
    except PyJWTError as e:
        raise InvalidTokenError(f"Invalid token: {e}") from e


def get_user_id_from_token(token: str, jwt_secret: str) -> str:
    """Return the ``sub`` claim of a valid access token."""
    payload = decode_access_token(token, jwt_secret)
    user_id = payload.get("sub")
    if not user_id:
        raise InvalidTokenError("Token has no subject")
    return str(user_id)


class SupabaseAuthClient:
    """Async client for the Supabase auth REST API."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        jwt_secret: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._jwt_secret = jwt_secret
        self._client = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)
        self._session: AuthSession | None = None

    @property
    def session(self) -> AuthSession | None:
        return self._session

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self._anon_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            response = await self._client.post(
                f"{self._base_url}/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Auth provider unreachable: {type(e).__name__}") from e

        if response.status_code in (400, 401):
            # Same error for unknown email and wrong password
            raise InvalidCredentialsError("Invalid email or password")
        if response.status_code >= 300:
            raise AuthError(f"Sign-in failed with status {response.status_code}")

        data = response.json()
        user = data.get("user") or {}
        self._session = AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            user_id=str(user.get("id", "")),
        )
        logger.info("User signed in")
        return self._session

    async def get_current_user_id(self) -> str | None:
        if self._session is None:
            return None
        try:
            return get_user_id_from_token(self._session.access_token, self._jwt_secret)
        except TokenError as e:
            logger.debug(f"Current session is not usable: {e}")
            return None

    async def sign_out(self) -> None:
        """Revoke the session remotely. The local session is dropped either way."""
        session, self._session = self._session, None
        if session is None:
            return
        try:
            response = await self._client.post(
                f"{self._base_url}/auth/v1/logout",
                headers=self._headers(session.access_token),
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Auth provider unreachable: {type(e).__name__}") from e

        # 401 means the token was already invalid - the user is signed out.
        if response.status_code >= 300 and response.status_code != 401:
            raise AuthError(f"Sign-out failed with status {response.status_code}")
        logger.info("User signed out")

    async def aclose(self) -> None:
        await self._client.aclose()

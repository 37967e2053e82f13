"""FastAPI dependencies resolving the security components from app.state."""

import logging

from fastapi import HTTPException, Request, status

from storefront.core.config import SecurityConfig
from storefront.services.auth import TokenError, get_user_id_from_token
from storefront.services.crypto import TokenCodec
from storefront.services.csrf import CsrfGuard
from storefront.services.payment_token import PaymentTokenizer

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    return request.app.state.security_config


def get_codec(request: Request) -> TokenCodec:
    return request.app.state.codec


def get_csrf_guard(request: Request) -> CsrfGuard:
    return request.app.state.csrf_guard


def get_payment_tokenizer(request: Request) -> PaymentTokenizer:
    return request.app.state.payment_tokenizer


def get_current_user_id(request: Request) -> str:
    """Dependency to get the signed-in user from a Supabase access token."""
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = auth_header[7:]  # Remove "Bearer " prefix

    try:
        return get_user_id_from_token(token, request.app.state.jwt_secret)
    except TokenError as e:
        logger.debug(f"Rejected access token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

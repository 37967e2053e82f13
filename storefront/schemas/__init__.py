# Storefront Pydantic Schemas
from storefront.schemas.auth import (
    CsrfTokenResponse,
    PasswordStrengthRequest,
)
from storefront.schemas.checkout import (
    CheckoutConfirmRequest,
    CheckoutConfirmResponse,
    PaymentPayload,
    PaymentTokenResponse,
)

__all__ = [
    "CheckoutConfirmRequest",
    "CheckoutConfirmResponse",
    "CsrfTokenResponse",
    "PasswordStrengthRequest",
    "PaymentPayload",
    "PaymentTokenResponse",
]

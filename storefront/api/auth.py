"""Authentication helper endpoints."""

from fastapi import APIRouter

from storefront.schemas.auth import PasswordStrengthRequest
from storefront.services.password_strength import PasswordStrength, check_password_strength

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/password-strength", response_model=PasswordStrength)
async def password_strength(body: PasswordStrengthRequest) -> PasswordStrength:
    """Score a candidate password for the registration form."""
    return check_password_strength(body.password)

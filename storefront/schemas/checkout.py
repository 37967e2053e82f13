"""Pydantic schemas for the checkout API."""

from pydantic import BaseModel, Field


class PaymentTokenResponse(BaseModel):
    """Freshly minted payment verification token."""

    token: str
    issued_at: int = Field(description="Issue time, epoch milliseconds")
    expires_at: int = Field(description="Expiry time, epoch milliseconds")


class PaymentPayload(BaseModel):
    """Decrypted payment details sent by the checkout form."""

    amount: float = Field(..., gt=0)
    currency: str = Field(default="inr", min_length=3, max_length=3)
    order_id: str = Field(..., min_length=1)
    description: str | None = None


class CheckoutConfirmRequest(BaseModel):
    """Payment token plus the encrypted payment payload."""

    token: str = Field(..., min_length=1)
    issued_at: int
    expires_at: int
    payload: str = Field(..., min_length=1, description="Encrypted PaymentPayload")


class CheckoutConfirmResponse(BaseModel):
    status: str = "verified"
    order_id: str
    amount: float
    currency: str

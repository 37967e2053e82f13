"""Checkout verification endpoints.

A payment token is minted for the signed-in user when checkout starts and
presented again with the encrypted payment payload on confirm. Failures are
reported with one generic message; only the log says which check failed.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from storefront.api.dependencies import get_codec, get_current_user_id, get_payment_tokenizer
from storefront.schemas.checkout import (
    CheckoutConfirmRequest,
    CheckoutConfirmResponse,
    PaymentPayload,
    PaymentTokenResponse,
)
from storefront.services.crypto import DecryptionError, TokenCodec
from storefront.services.payment_token import PaymentTokenizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])

PAYMENT_FAILURE_BODY = {
    "error": "Payment verification failed",
    "message": "We could not verify your payment session. Please try again.",
}


def _verification_failed() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=PAYMENT_FAILURE_BODY)


@router.post("/payment-token", response_model=PaymentTokenResponse)
async def create_payment_token(
    user_id: str = Depends(get_current_user_id),
    tokenizer: PaymentTokenizer = Depends(get_payment_tokenizer),
) -> PaymentTokenResponse:
    """Mint a payment token for this checkout attempt.

    Retries must mint a new token; tokens are not renewable.
    """
    minted = tokenizer.mint(user_id)
    return PaymentTokenResponse(
        token=minted.token,
        issued_at=minted.issued_at,
        expires_at=minted.expires_at,
    )


@router.post(
    "/confirm",
    response_model=CheckoutConfirmResponse,
    responses={status.HTTP_403_FORBIDDEN: {"description": "Payment verification failed"}},
)
async def confirm_checkout(
    body: CheckoutConfirmRequest,
    user_id: str = Depends(get_current_user_id),
    tokenizer: PaymentTokenizer = Depends(get_payment_tokenizer),
    codec: TokenCodec = Depends(get_codec),
):
    """Verify the payment token and decrypt the payment payload."""
    if not tokenizer.validate(body.token, user_id, body.issued_at, body.expires_at):
        logger.warning("Checkout rejected: payment token did not validate")
        return _verification_failed()

    try:
        data = codec.decrypt(body.payload)
    except DecryptionError:
        logger.warning("Checkout rejected: payment payload could not be decrypted")
        return _verification_failed()

    try:
        payment = PaymentPayload.model_validate(data)
    except ValidationError as e:
        errors = ", ".join(str(err["msg"]) for err in e.errors())
        logger.info(f"Checkout rejected: invalid payment data ({errors})")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid payment data: {errors}",
        ) from e

    logger.info(f"Verified checkout for order {payment.order_id}")
    return CheckoutConfirmResponse(
        order_id=payment.order_id,
        amount=payment.amount,
        currency=payment.currency,
    )

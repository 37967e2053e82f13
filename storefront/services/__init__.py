# Storefront Security Services
from storefront.services.crypto import TokenCodec
from storefront.services.csrf import CsrfGuard
from storefront.services.payment_token import PaymentToken, PaymentTokenizer
from storefront.services.secure_storage import SecureStorage
from storefront.services.security import SecurityService
from storefront.services.session_timeout import (
    ActivityEventBus,
    SessionTimeoutConfig,
    SessionTimeoutMonitor,
)

__all__ = [
    "ActivityEventBus",
    "CsrfGuard",
    "PaymentToken",
    "PaymentTokenizer",
    "SecureStorage",
    "SecurityService",
    "SessionTimeoutConfig",
    "SessionTimeoutMonitor",
    "TokenCodec",
]

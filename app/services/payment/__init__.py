"""
Payment Gateway Factory

Provides a single entry point for obtaining a payment gateway instance.
Routes receive it through `Depends(get_payment_gateway)`, so tests can
override it.

Usage:
    from app.services.payment import get_payment_gateway

    gateway = get_payment_gateway()
    result = await gateway.create_transaction("order-1-1717000000000", 25000)

Environment Switching:
    - ENV_MODE=development → MockMidtransGateway (no API calls)
    - ENV_MODE=staging → MidtransGateway (sandbox keys)
    - ENV_MODE=production → MidtransGateway (production keys)
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.payment.base import (
    BasePaymentGateway,
    TransactionResult,
    compute_signature,
    signature_matches,
)
from app.services.payment.midtrans import MidtransGateway
from app.services.payment.mock import MockMidtransGateway

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_gateway() -> BasePaymentGateway:
    """
    Get the configured payment gateway instance.

    The instance is cached so every request shares one gateway.

    Raises:
        ValueError: If real services are enabled but MIDTRANS_SERVER_KEY is missing
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Gateway: Using MockMidtransGateway (development mode)")
        return MockMidtransGateway(
            server_key=settings.signing_server_key,
            failure_rate=settings.mock_gateway_failure_rate,
            max_latency=settings.mock_gateway_latency,
        )

    logger.info(
        f"Payment Gateway: Using MidtransGateway "
        f"({settings.env_mode.value} mode)"
    )
    return MidtransGateway()


def reset_payment_gateway() -> None:
    """
    Clear the cached gateway instance.

    The next call to get_payment_gateway() will create a new instance.
    """
    get_payment_gateway.cache_clear()
    logger.debug("Payment gateway cache cleared")


__all__ = [
    "get_payment_gateway",
    "reset_payment_gateway",
    "BasePaymentGateway",
    "TransactionResult",
    "compute_signature",
    "signature_matches",
    "MockMidtransGateway",
    "MidtransGateway",
]

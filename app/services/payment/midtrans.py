"""
Midtrans Gateway Implementation

Production implementation using the official midtransclient SDK.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - MIDTRANS_SERVER_KEY must be set in environment
    - MIDTRANS_IS_PRODUCTION=true for live transactions

Security Notes:
    - Never log the server key
    - Notifications are checked twice: the sha512 signature, then the
      transaction status is fetched back from Midtrans
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

import midtransclient
from midtransclient.error_midtrans import MidtransAPIError

from app.core.config import get_settings
from app.services.payment.base import (
    BasePaymentGateway,
    TransactionResult,
    signature_matches,
)

logger = logging.getLogger(__name__)


class MidtransGateway(BasePaymentGateway):
    """
    Midtrans Snap gateway.

    The SDK is synchronous; calls run in a worker thread.

    Example:
        >>> gateway = MidtransGateway()
        >>> result = await gateway.create_transaction("order-7-1717000000000", 50000)
    """

    def __init__(self):
        """
        Initialize the Snap client from settings.

        Raises:
            ValueError: If MIDTRANS_SERVER_KEY is not configured
        """
        settings = get_settings()

        if not settings.midtrans_server_key:
            raise ValueError(
                "MIDTRANS_SERVER_KEY is required for staging and production mode. "
                "Set it in your .env file or environment variables."
            )

        self._server_key = settings.midtrans_server_key
        self._is_production = settings.midtrans_is_production
        self.snap = midtransclient.Snap(
            is_production=self._is_production,
            server_key=settings.midtrans_server_key,
            client_key=settings.midtrans_client_key or "",
        )

        logger.info(
            f"MidtransGateway initialized "
            f"({'production' if self._is_production else 'sandbox'})"
        )

    @property
    def provider_name(self) -> str:
        return "midtrans"

    @property
    def server_key(self) -> Optional[str]:
        return self._server_key

    async def create_transaction(
        self,
        order_ref: str,
        gross_amount: int,
        item_details: Optional[list[dict[str, Any]]] = None,
        customer_details: Optional[dict[str, Any]] = None,
    ) -> TransactionResult:
        start_time = datetime.now()

        parameter: dict[str, Any] = {
            "transaction_details": {
                "order_id": order_ref,
                "gross_amount": int(gross_amount),
            },
            "credit_card": {"secure": True},
        }
        if item_details:
            parameter["item_details"] = item_details
        if customer_details:
            parameter["customer_details"] = customer_details

        logger.info(f"Midtrans: Creating Snap transaction {order_ref} for Rp{gross_amount}")

        try:
            response = await asyncio.to_thread(self.snap.create_transaction, parameter)
        except MidtransAPIError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Midtrans: API error {e.api_response_dict or e.message}")
            return TransactionResult(
                success=False,
                order_ref=order_ref,
                error_message=e.message,
                error_code=str(e.http_status_code),
                response_time_ms=elapsed_ms,
            )
        except OSError as e:
            # Network issues
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Midtrans: Connection error - {e}")
            return TransactionResult(
                success=False,
                order_ref=order_ref,
                error_message="Payment gateway temporarily unavailable",
                error_code="connection_error",
                response_time_ms=elapsed_ms,
            )

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
        logger.info(f"Midtrans: Snap transaction created - {order_ref}")

        return TransactionResult(
            success=True,
            order_ref=order_ref,
            token=response.get("token"),
            redirect_url=response.get("redirect_url"),
            response_time_ms=elapsed_ms,
            raw=response,
        )

    async def verify_notification(self, notification: dict[str, Any]) -> Optional[dict[str, Any]]:
        """
        Verify the signature, then fetch the authoritative status.

        Returns the status response from Midtrans, or None when the
        notification cannot be trusted.
        """
        if not signature_matches(notification, self.server_key):
            logger.warning(
                f"Midtrans: Notification signature mismatch for {notification.get('order_id')}"
            )
            return None

        try:
            status_response = await asyncio.to_thread(
                self.snap.transactions.notification, notification
            )
        except (MidtransAPIError, OSError) as e:
            logger.error(f"Midtrans: Could not verify notification - {e}")
            return None

        return status_response

    async def health_check(self) -> bool:
        return bool(self._server_key)

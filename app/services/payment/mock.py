"""
Mock Midtrans Gateway Implementation

Simulates Snap transactions without making real API calls.
Used in development mode (ENV_MODE=development) to:
    - Test the complete guest payment flow locally
    - Run the concurrency simulation without a sandbox account
    - Develop without internet connectivity

Behavior:
    - Optional simulated latency and failure rate (settings)
    - Snap tokens look like mock-snap-<hex>
    - Notifications are verified with the sha512 signature only,
      using the mock server key
"""

import asyncio
import logging
import random
import time
import uuid
from typing import Any, Optional

from app.services.payment.base import (
    BasePaymentGateway,
    TransactionResult,
    signature_matches,
)

logger = logging.getLogger(__name__)


class MockMidtransGateway(BasePaymentGateway):
    """
    Mock implementation of the Midtrans gateway.

    Attributes:
        failure_rate: Probability of a simulated gateway rejection (0.0-1.0)
        max_latency: Upper bound of the simulated response time in seconds

    Example:
        >>> gateway = MockMidtransGateway(server_key="SB-Mid-server-mock")
        >>> result = await gateway.create_transaction("order-1-1", 25000)
        >>> result.token.startswith("mock-snap-")
        True
    """

    # Simulated rejections (mimics Midtrans status messages)
    DECLINE_REASONS = [
        ("400", "transaction_details.gross_amount is not equal to the sum of item_details"),
        ("406", "transaction_details.order_id has already been taken"),
        ("500", "Sorry, an unexpected error occurred. Please try again later."),
    ]

    def __init__(
        self,
        server_key: str,
        failure_rate: float = 0.0,
        max_latency: float = 0.0,
    ):
        self._server_key = server_key
        self.failure_rate = failure_rate
        self.max_latency = max_latency
        self.transactions: dict[str, dict[str, Any]] = {}

        logger.info(
            f"MockMidtransGateway initialized "
            f"(failure_rate={failure_rate:.0%}, latency<={max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def server_key(self) -> Optional[str]:
        return self._server_key

    async def _simulate_latency(self) -> float:
        if self.max_latency <= 0:
            return 0.0
        latency = random.uniform(0, self.max_latency)
        await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def create_transaction(
        self,
        order_ref: str,
        gross_amount: int,
        item_details: Optional[list[dict[str, Any]]] = None,
        customer_details: Optional[dict[str, Any]] = None,
    ) -> TransactionResult:
        logger.debug(f"Mock: Creating Snap transaction {order_ref} for Rp{gross_amount}")

        if gross_amount <= 0:
            return TransactionResult(
                success=False,
                order_ref=order_ref,
                error_message="transaction_details.gross_amount must be greater than 0",
                error_code="400",
            )

        latency_ms = await self._simulate_latency()

        if self._should_fail():
            error_code, error_message = random.choice(self.DECLINE_REASONS)
            logger.debug(f"Mock: Snap transaction rejected - {error_code}")
            return TransactionResult(
                success=False,
                order_ref=order_ref,
                error_message=error_message,
                error_code=error_code,
                response_time_ms=latency_ms,
            )

        token = f"mock-snap-{uuid.uuid4().hex}"
        redirect_url = f"https://app.sandbox.midtrans.com/snap/v4/redirection/{token}"
        self.transactions[order_ref] = {
            "order_id": order_ref,
            "gross_amount": gross_amount,
            "item_details": item_details or [],
            "customer_details": customer_details,
            "created_at": time.time(),
        }

        logger.info(f"Mock: Snap transaction created - {order_ref} - Rp{gross_amount}")

        return TransactionResult(
            success=True,
            order_ref=order_ref,
            token=token,
            redirect_url=redirect_url,
            response_time_ms=latency_ms,
            raw={"token": token, "redirect_url": redirect_url},
        )

    async def verify_notification(self, notification: dict[str, Any]) -> Optional[dict[str, Any]]:
        if not signature_matches(notification, self.server_key):
            logger.warning(
                f"Mock: Notification signature mismatch for {notification.get('order_id')}"
            )
            return None
        return notification

    async def health_check(self) -> bool:
        """In development the mock gateway is always available."""
        return True

"""
Payment Gateway Abstract Base Class

Defines the interface contract for the Midtrans gateway implementations.
Both MockMidtransGateway and MidtransGateway implement these methods,
so routes behave identically whichever one is active.

Design Pattern: Strategy Pattern
    - ENV_MODE picks the implementation at startup
    - Tests swap in the mock through FastAPI dependency overrides
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class TransactionResult:
    """
    Standardized result from creating a Snap transaction.

    Attributes:
        success: Whether the gateway accepted the transaction
        order_ref: Reference sent to the gateway as transaction order_id
        token: Snap token used by the frontend popup
        redirect_url: Hosted payment page URL
        error_message: Error description if the gateway refused
        error_code: Machine-readable error code
        response_time_ms: Time taken by the gateway call
    """
    success: bool
    order_ref: str
    token: Optional[str] = None
    redirect_url: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Snap payload returned to API clients."""
        return {
            "token": self.token,
            "redirect_url": self.redirect_url,
            "order_id": self.order_ref,
        }


def compute_signature(
    order_id: str,
    status_code: str,
    gross_amount: str,
    server_key: str,
) -> str:
    """sha512(order_id + status_code + gross_amount + server_key), hex encoded."""
    payload = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(payload.encode("utf-8")).hexdigest()


def signature_matches(notification: dict[str, Any], server_key: Optional[str]) -> bool:
    """Constant-time check of a notification's signature_key."""
    if not server_key:
        return False

    signature = notification.get("signature_key")
    if not signature:
        return False

    expected = compute_signature(
        str(notification.get("order_id", "")),
        str(notification.get("status_code", "")),
        str(notification.get("gross_amount", "")),
        server_key,
    )
    return hmac.compare_digest(expected, str(signature))


class BasePaymentGateway(ABC):
    """
    Abstract base class for payment gateways.

    Example:
        >>> gateway = get_payment_gateway()
        >>> result = await gateway.create_transaction(
        ...     order_ref="order-12-1717000000000",
        ...     gross_amount=45000,
        ... )
        >>> if result.success:
        ...     print(result.redirect_url)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the payment provider.

        Returns:
            str: Provider name (e.g., "mock", "midtrans")
        """
        pass

    @property
    @abstractmethod
    def server_key(self) -> Optional[str]:
        """Key notification signatures are computed with."""
        pass

    def compute_signature(self, order_id: str, status_code: str, gross_amount: str) -> str:
        return compute_signature(order_id, status_code, gross_amount, self.server_key or "")

    @abstractmethod
    async def create_transaction(
        self,
        order_ref: str,
        gross_amount: int,
        item_details: Optional[list[dict[str, Any]]] = None,
        customer_details: Optional[dict[str, Any]] = None,
    ) -> TransactionResult:
        """
        Create a Snap transaction.

        Args:
            order_ref: Unique reference, echoed back by notifications
            gross_amount: Amount in rupiah; must equal the sum of item_details
            item_details: [{id, name, price, quantity}] lines
            customer_details: Optional first_name/last_name/email/phone

        Returns:
            TransactionResult: Standardized result object
        """
        pass

    @abstractmethod
    async def verify_notification(self, notification: dict[str, Any]) -> Optional[dict[str, Any]]:
        """
        Verify a webhook notification.

        Returns:
            dict: The authoritative transaction status if valid, None if invalid
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the gateway is usable.

        Returns:
            bool: True if the gateway is configured and operational
        """
        pass

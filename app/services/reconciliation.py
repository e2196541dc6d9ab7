"""
Payment reconciliation

Keeps payments and orders consistent whichever path reports the money:
staff status updates, manual confirmation at the till, or Midtrans
webhooks.

A payment is counted as paid at most once. `paid_at` marks that it has
been counted; later notifications for the same payment are acknowledged
but never add revenue again.
"""

import logging
import re
from datetime import datetime
from typing import Any, Optional

from fastapi import Request, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.core.config import get_settings
from app.core.errors import APIError, NotFoundError
from app.models import Order, OrderStatus, Payment, PaymentStatus
from app.services.audit import record_audit
from app.services.sales import record_paid_payment
from app.tasks import export_payment_to_ledger

logger = logging.getLogger(__name__)

ORDER_REF_PATTERN = re.compile(r"order-(\d+)-")

# Midtrans transaction_status -> payment status
GATEWAY_STATUS_MAP = {
    "settlement": PaymentStatus.PAID,
    "pending": PaymentStatus.PENDING,
    "deny": PaymentStatus.FAILED,
    "cancel": PaymentStatus.FAILED,
    "expire": PaymentStatus.FAILED,
    "failure": PaymentStatus.FAILED,
    "refund": PaymentStatus.REFUNDED,
    "partial_refund": PaymentStatus.REFUNDED,
}


def build_order_ref(order_id: int, now: Optional[datetime] = None) -> str:
    """Gateway reference for an order: order-<id>-<epoch ms>."""
    moment = now or datetime.now()
    return f"order-{order_id}-{int(moment.timestamp() * 1000)}"


def parse_order_ref(order_ref: str) -> Optional[int]:
    """Internal order id from a gateway reference, or a plain integer id."""
    match = ORDER_REF_PATTERN.search(order_ref or "")
    if match:
        return int(match.group(1))
    try:
        return int(order_ref)
    except (TypeError, ValueError):
        return None


def map_gateway_status(
    transaction_status: str,
    fraud_status: Optional[str] = None,
) -> Optional[PaymentStatus]:
    """Translate a Midtrans transaction status; None for unknown values."""
    transaction_status = (transaction_status or "").lower()
    fraud_status = (fraud_status or "").lower()

    if transaction_status == "capture":
        if fraud_status == "challenge":
            return PaymentStatus.PENDING
        return PaymentStatus.PAID

    return GATEWAY_STATUS_MAP.get(transaction_status)


async def check_payment_amount(
    db: AsyncSession,
    order: Order,
    amount: float,
    request: Optional[Request] = None,
    user_id: Optional[int] = None,
) -> None:
    """
    Reject an amount too far from the order total.

    The mismatch is audited and committed before the request fails.
    """
    tolerance = order.total_amount * get_settings().payment_amount_tolerance
    if abs(amount - order.total_amount) <= tolerance:
        return

    await record_audit(
        db,
        "PAYMENT_AMOUNT_MISMATCH",
        "Order",
        order.id,
        old_value={"totalAmount": order.total_amount},
        new_value={"amount": amount},
        request=request,
        user_id=user_id,
    )
    await db.commit()

    logger.warning(
        f"Order #{order.id}: payment amount {amount} does not match total {order.total_amount}"
    )
    raise APIError(
        "Payment amount does not match order total",
        status.HTTP_400_BAD_REQUEST,
        "amount_mismatch",
    )


async def mark_paid(db: AsyncSession, payment: Payment, order: Optional[Order] = None) -> bool:
    """
    Move a payment to paid and complete its order.

    Returns True only the first time the payment is counted; that is when
    sales stats are bumped and the caller should export it to the ledger.
    The claim is a conditional UPDATE on `paid_at IS NULL`, so of two
    sessions settling the same payment only one sees a changed row.
    """
    order = order or await db.get(Order, payment.order_id)
    if order is not None:
        order.status = OrderStatus.COMPLETED

    now = datetime.now()
    result = await db.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.paid_at.is_(None))
        .values(status=PaymentStatus.PAID, paid_at=now)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        payment.status = PaymentStatus.PAID
        await db.refresh(payment, attribute_names=["paid_at"])
        logger.info(f"Payment #{payment.id} already counted as paid")
        return False

    set_committed_value(payment, "status", PaymentStatus.PAID)
    set_committed_value(payment, "paid_at", now)
    await record_paid_payment(db, payment.amount)
    await db.flush()

    logger.info(f"Payment #{payment.id} paid - order #{payment.order_id} completed")
    return True


async def set_payment_status(
    db: AsyncSession,
    payment: Payment,
    new_status: PaymentStatus,
) -> bool:
    """Apply a status; returns True when the payment was newly counted as paid."""
    if new_status == PaymentStatus.PAID:
        return await mark_paid(db, payment)

    payment.status = new_status
    return False


async def confirm_manual_payment(db: AsyncSession, order_id: int) -> tuple[Payment, bool]:
    """Staff confirms cash received for a guest's manual payment."""
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")

    result = await db.execute(
        select(Payment)
        .where(Payment.order_id == order_id, Payment.payment_method == "manual")
        .order_by(Payment.id.desc())
    )
    payment = result.scalars().first()
    if payment is None:
        raise NotFoundError("Manual payment not found")

    if payment.status != PaymentStatus.PENDING:
        raise APIError("Payment already processed", status.HTTP_400_BAD_REQUEST, "already_processed")

    newly_paid = await mark_paid(db, payment, order)
    return payment, newly_paid


async def apply_notification(
    db: AsyncSession,
    notification: dict[str, Any],
    request: Optional[Request] = None,
) -> list[Payment]:
    """
    Apply a verified Midtrans notification.

    Returns the payments that became paid for the first time.
    """
    order_ref = str(notification.get("order_id", ""))
    transaction_status = str(notification.get("transaction_status", ""))
    fraud_status = notification.get("fraud_status")

    order_id = parse_order_ref(order_ref)

    await record_audit(
        db,
        "PAYMENT_WEBHOOK_RECEIVED",
        "Payment",
        order_id if order_id is not None else order_ref,
        new_value=notification,
        request=request,
    )

    result = await db.execute(select(Payment).where(Payment.provider_ref == order_ref))
    payments = list(result.scalars().all())
    if not payments and order_id is not None:
        result = await db.execute(select(Payment).where(Payment.order_id == order_id))
        payments = list(result.scalars().all())

    if not payments:
        # Keep the audit trail of the unmatched notification
        await db.commit()
        logger.warning(f"Webhook for {order_ref}: no matching payment")
        raise NotFoundError("Payment not found")

    new_status = map_gateway_status(transaction_status, fraud_status)
    if new_status is None:
        logger.warning(f"Webhook for {order_ref}: unknown transaction status '{transaction_status}'")

    newly_paid: list[Payment] = []
    for payment in payments:
        payment.provider_status = transaction_status
        if new_status is None:
            continue

        # A late pending/failed notification never undoes a settled payment
        if payment.status == PaymentStatus.PAID and new_status in (
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
        ):
            logger.info(f"Payment #{payment.id} already paid, ignoring '{transaction_status}'")
            continue

        if await set_payment_status(db, payment, new_status):
            newly_paid.append(payment)

    logger.info(
        f"Webhook for {order_ref}: '{transaction_status}' applied to "
        f"{len(payments)} payment(s)"
    )
    return newly_paid


def ledger_row(payment: Payment, order: Optional[Order]) -> dict[str, Any]:
    return {
        "payment_id": payment.id,
        "order_id": payment.order_id,
        "paid_at": payment.paid_at.isoformat() if payment.paid_at else None,
        "table_number": order.table_number if order else None,
        "customer_name": order.customer_name if order else None,
        "order_source": order.source if order else None,
        "items": ", ".join(f"{i.quantity}x {i.name}" for i in order.items) if order else "",
        "order_total": order.total_amount if order else None,
        "amount": payment.amount,
        "payment_method": payment.payment_method,
        "provider": payment.provider,
        "provider_ref": payment.provider_ref,
        "provider_status": payment.provider_status,
    }


async def queue_ledger_exports(db: AsyncSession, payments: list[Payment]) -> None:
    """Send newly paid payments to the Excel ledger worker. Call after commit."""
    for payment in payments:
        order = await db.get(Order, payment.order_id)
        export_payment_to_ledger.delay(ledger_row(payment, order))
        logger.debug(f"Payment #{payment.id} queued for ledger export")

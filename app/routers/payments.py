"""
Payment endpoints

    POST /api/payments, /api/payments/process   staff creates a payment
    GET  /api/payments                          paged list
    GET  /api/payments/{id}
    PUT  /api/payments/{id}/status              staff override (pending|paid|failed)
    POST /api/payments/guest/pay                guest QRIS via Midtrans Snap
    POST /api/payments/guest/manual             guest pays at the till
    POST /api/payments/midtrans-webhook         Midtrans notification URL

Creating a payment passes, in order: the rate limiter (middleware), the
replay guard, the amount-tolerance check and the idempotency cache.
"""

import logging
import math
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import APIError, NotFoundError
from app.core.replay import idempotency_cache, prevent_replay
from app.core.responses import ok
from app.core.security import get_current_user, staff_or_owner
from app.database import get_db
from app.models import MenuItem, Order, Payment, PaymentStatus, User
from app.schemas import (
    GuestDigitalPaymentRequest,
    GuestDigitalPaymentResponse,
    GuestManualPaymentRequest,
    PaymentCreated,
    PaymentPage,
    PaymentProcessRequest,
    PaymentResponse,
    PaymentStatusUpdate,
    SnapTransaction,
)
from app.services import reconciliation
from app.services.audit import record_audit
from app.services.payment import BasePaymentGateway, TransactionResult, get_payment_gateway
from app.services.reconciliation import build_order_ref, check_payment_amount

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/payments", tags=["Payments"])

MANUAL_METHODS = {"manual", "cash"}
MIDTRANS_METHODS = {"qris", "midtrans"}
STAFF_SETTABLE_STATUSES = {"pending", "paid", "failed"}


async def _load_order(db: AsyncSession, order_id: int) -> Order:
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def _item_details(db: AsyncSession, order: Order) -> list[dict[str, Any]]:
    """Midtrans item_details with current menu names and whole-rupiah prices."""
    menu_ids = {item.menu_id for item in order.items}
    names: dict[int, str] = {}
    if menu_ids:
        rows = await db.execute(select(MenuItem.id, MenuItem.name).where(MenuItem.id.in_(menu_ids)))
        names = {row.id: row.name for row in rows}

    return [
        {
            "id": str(item.menu_id),
            "price": round(item.unit_price),
            "quantity": item.quantity,
            "name": (names.get(item.menu_id) or item.name or f"Menu #{item.menu_id}")[:50],
        }
        for item in order.items
    ]


async def _create_snap_transaction(
    db: AsyncSession,
    gateway: BasePaymentGateway,
    order: Order,
    customer_details: Optional[dict[str, Any]] = None,
) -> TransactionResult:
    order_ref = build_order_ref(order.id)
    item_details = await _item_details(db, order)
    gross_amount = (
        sum(line["price"] * line["quantity"] for line in item_details)
        if item_details
        else round(order.total_amount)
    )

    result = await gateway.create_transaction(
        order_ref=order_ref,
        gross_amount=gross_amount,
        item_details=item_details or None,
        customer_details=customer_details,
    )
    if not result.success:
        logger.error(
            f"Order #{order.id}: Snap transaction failed "
            f"[{result.error_code}] {result.error_message}"
        )
        raise APIError(
            "Failed to create payment with gateway",
            status.HTTP_502_BAD_GATEWAY,
            "gateway_error",
        )
    return result


# =============================================================================
# STAFF PAYMENTS
# =============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/process", status_code=status.HTTP_201_CREATED)
async def process_payment(
    data: PaymentProcessRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(staff_or_owner),
    _replay: None = Depends(prevent_replay),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    gateway: BasePaymentGateway = Depends(get_payment_gateway),
):
    order = await _load_order(db, data.order_id)
    await check_payment_amount(db, order, data.amount, request=request, user_id=user.id)

    cache_key = f"{user.id}:{idempotency_key}" if idempotency_key else None
    if cache_key:
        cached = idempotency_cache.get(cache_key)
        if cached is not None:
            logger.info(f"Idempotent replay of payment request {idempotency_key}")
            return cached

    method = data.payment_method.strip().lower()
    payment = Payment(
        order_id=order.id,
        amount=order.total_amount,
        payment_method=method,
        status=PaymentStatus.PENDING if method in MANUAL_METHODS else PaymentStatus.PROCESSING,
        provider="midtrans" if method in MIDTRANS_METHODS else None,
    )

    snap: Optional[TransactionResult] = None
    if method in MIDTRANS_METHODS:
        snap = await _create_snap_transaction(db, gateway, order)
        payment.provider_ref = snap.order_ref
        payment.snap_token = snap.token
        payment.redirect_url = snap.redirect_url

    db.add(payment)
    await db.flush()

    await record_audit(
        db,
        "PAYMENT_CREATED",
        "Payment",
        payment.id,
        new_value={"orderId": payment.order_id, "amount": payment.amount, "method": method},
        request=request,
        user_id=user.id,
    )
    await db.commit()

    logger.info(f"Payment #{payment.id} created for order #{order.id} ({method})")

    body = ok(PaymentCreated(
        payment_id=payment.id,
        order_id=payment.order_id,
        amount=payment.amount,
        status=payment.status,
        midtrans=SnapTransaction(**snap.to_dict()) if snap else None,
    ))
    if cache_key:
        idempotency_cache.set(cache_key, body)
    return body


@router.get("")
async def list_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(staff_or_owner),
):
    total = (await db.execute(select(func.count(Payment.id)))).scalar() or 0
    result = await db.execute(
        select(Payment)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return ok(PaymentPage(
        payments=[PaymentResponse.model_validate(p) for p in result.scalars().all()],
        total_items=total,
        total_pages=math.ceil(total / limit),
        current_page=page,
    ))


@router.get("/{payment_id}")
async def get_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_user),
):
    payment = await db.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    return ok(PaymentResponse.model_validate(payment))


@router.put("/{payment_id}/status")
async def update_payment_status(
    payment_id: int,
    data: PaymentStatusUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(staff_or_owner),
):
    new_status = data.status.strip().lower()
    if new_status not in STAFF_SETTABLE_STATUSES:
        raise APIError("Invalid payment status", status.HTTP_400_BAD_REQUEST, "invalid_status")

    payment = await db.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")

    old_status = payment.status
    newly_paid = await reconciliation.set_payment_status(db, payment, PaymentStatus(new_status))

    await record_audit(
        db,
        "PAYMENT_STATUS_UPDATED",
        "Payment",
        payment.id,
        old_value={"status": old_status.value},
        new_value={"status": new_status},
        request=request,
        user_id=user.id,
    )
    await db.commit()

    if newly_paid:
        await reconciliation.queue_ledger_exports(db, [payment])

    logger.info(f"Payment #{payment.id}: {old_status.value} -> {new_status} by user #{user.id}")
    return ok(PaymentResponse.model_validate(payment))


# =============================================================================
# GUEST PAYMENTS
# =============================================================================

@router.post("/guest/pay")
async def create_guest_digital_payment(
    data: GuestDigitalPaymentRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    gateway: BasePaymentGateway = Depends(get_payment_gateway),
):
    order = await _load_order(db, data.order_id)

    customer = data.customer.model_dump(exclude_none=True) if data.customer else None
    snap = await _create_snap_transaction(db, gateway, order, customer or None)

    payment = Payment(
        order_id=order.id,
        amount=order.total_amount,
        payment_method="midtrans_qris",
        provider="midtrans",
        provider_ref=snap.order_ref,
        snap_token=snap.token,
        redirect_url=snap.redirect_url,
        status=PaymentStatus.PENDING,
    )
    db.add(payment)
    await db.flush()

    await record_audit(
        db,
        "GUEST_QRIS_PAYMENT_CREATED",
        "Payment",
        payment.id,
        new_value={
            "orderId": payment.order_id,
            "amount": payment.amount,
            "method": payment.payment_method,
        },
        request=request,
    )
    await db.commit()

    logger.info(f"Guest QRIS payment #{payment.id} created for order #{order.id} ({snap.order_ref})")

    return ok(GuestDigitalPaymentResponse(
        payment=PaymentResponse.model_validate(payment),
        midtrans=SnapTransaction(**snap.to_dict()),
    ))


@router.post("/guest/manual")
async def create_guest_manual_payment(
    data: GuestManualPaymentRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Guest chooses to pay at the till; reuses an open or paid payment."""
    order = await _load_order(db, data.order_id)

    result = await db.execute(
        select(Payment)
        .where(
            Payment.order_id == order.id,
            Payment.status.in_((PaymentStatus.PENDING, PaymentStatus.PAID)),
        )
        .order_by(Payment.id)
    )
    existing = result.scalars().first()
    if existing is not None:
        return ok({"payment": PaymentResponse.model_validate(existing)})

    payment = Payment(
        order_id=order.id,
        amount=order.total_amount,
        payment_method="manual",
        status=PaymentStatus.PENDING,
    )
    db.add(payment)
    await db.flush()

    await record_audit(
        db,
        "GUEST_MANUAL_PAYMENT_CREATED",
        "Payment",
        payment.id,
        new_value={
            "orderId": payment.order_id,
            "amount": payment.amount,
            "method": payment.payment_method,
        },
        request=request,
    )
    await db.commit()

    logger.info(f"Guest manual payment #{payment.id} created for order #{order.id}")
    return ok({"payment": PaymentResponse.model_validate(payment)})


# =============================================================================
# MIDTRANS WEBHOOK
# =============================================================================

@router.post("/midtrans-webhook")
async def midtrans_webhook(
    request: Request,
    notification: dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    gateway: BasePaymentGateway = Depends(get_payment_gateway),
):
    """Midtrans notification URL; the signature is checked before anything else."""
    verified = await gateway.verify_notification(notification)
    if verified is None:
        raise APIError("Invalid notification", status.HTTP_400_BAD_REQUEST, "invalid_notification")

    newly_paid = await reconciliation.apply_notification(db, verified, request=request)
    await db.commit()

    if newly_paid:
        await reconciliation.queue_ledger_exports(db, newly_paid)

    return {"success": True}

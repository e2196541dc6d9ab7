"""
Staff console & staff management

    GET    /api/staff/orders                           paged kitchen view
    PUT    /api/staff/orders/{id}/status
    GET    /api/staff/orders/{id}/receipt
    POST   /api/staff/payments/manual/{orderId}/confirm
    GET|POST /api/staff, PUT|DELETE /api/staff/{id}      owner only
"""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.responses import ok
from app.core.security import owner_only, staff_or_owner
from app.database import get_db
from app.models import OrderStatus, User
from app.schemas import (
    OrderPage,
    OrderResponse,
    OrderStatusUpdate,
    Pagination,
    PaymentResponse,
    ReceiptResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from app.services import accounts, ordering, reconciliation

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/staff", tags=["Staff"])


# =============================================================================
# ORDERS CONSOLE
# =============================================================================

@router.get("/orders")
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(staff_or_owner),
):
    orders, total = await ordering.list_orders(
        db,
        status_filter=status_filter,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return ok(OrderPage(
        orders=[OrderResponse.model_validate(o) for o in orders],
        pagination=Pagination(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_items=total,
        ),
    ))


@router.put("/orders/{order_id}/status")
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(staff_or_owner),
):
    order = await ordering.update_order_status(db, order_id, data.status)
    return ok(OrderResponse.model_validate(order))


@router.get("/orders/{order_id}/receipt")
async def get_receipt(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(staff_or_owner),
):
    receipt = await ordering.build_receipt(db, order_id)
    return ok(ReceiptResponse.model_validate(receipt))


@router.post("/payments/manual/{order_id}/confirm")
async def confirm_manual_payment(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(staff_or_owner),
):
    """Cash received at the till for a guest's manual payment."""
    payment, newly_paid = await reconciliation.confirm_manual_payment(db, order_id)
    await db.commit()

    if newly_paid:
        await reconciliation.queue_ledger_exports(db, [payment])

    logger.info(f"Manual payment #{payment.id} for order #{order_id} confirmed by user #{user.id}")
    return ok(PaymentResponse.model_validate(payment))


# =============================================================================
# STAFF MANAGEMENT (OWNER)
# =============================================================================

@router.get("")
async def list_staff(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    users = await accounts.list_users(db)
    return ok([UserResponse.model_validate(u) for u in users])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_staff(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    user = await accounts.create_user(
        db,
        name=data.name,
        email=data.email,
        password=data.password,
        role=data.role,
        status_=data.status,
    )
    return ok(UserResponse.model_validate(user))


@router.put("/{user_id}")
async def update_staff(
    user_id: int,
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    user = await accounts.update_user(
        db,
        user_id,
        name=data.name,
        email=data.email,
        role=data.role,
        status_=data.status,
    )
    return ok(UserResponse.model_validate(user))


@router.delete("/{user_id}")
async def delete_staff(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current: User = Depends(owner_only),
):
    await accounts.delete_user(db, user_id, current)
    return ok({"deleted": True})

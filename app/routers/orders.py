"""
Order endpoints

Guests order from the table QR menu without logging in; staff enter
orders at the POS and move them through the kitchen workflow.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.responses import ok
from app.core.security import get_current_user, staff_or_owner
from app.database import get_db
from app.models import User
from app.schemas import (
    GuestOrderCreate,
    OrderCreate,
    OrderItemResponse,
    OrderItemStatusUpdate,
    OrderItemUpdateResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from app.services import ordering

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["Orders"])


# =============================================================================
# GUEST (QR MENU)
# =============================================================================

@router.post("/guest", status_code=status.HTTP_201_CREATED)
async def create_guest_order(data: GuestOrderCreate, db: AsyncSession = Depends(get_db)):
    order = await ordering.create_order(
        db,
        table_number=data.table_number,
        customer_name=data.customer_name,
        items=data.items,
        payment_method="guest",
        source="guest",
    )
    return ok(OrderResponse.model_validate(order))


@router.get("/guest/{order_id}")
async def get_guest_order(order_id: int, db: AsyncSession = Depends(get_db)):
    order = await ordering.get_order(db, order_id)
    return ok(OrderResponse.model_validate(order))


# =============================================================================
# STAFF
# =============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = await ordering.create_order(
        db,
        table_number=data.table_number,
        customer_name=data.customer_name.strip(),
        items=data.items,
        payment_method=data.payment_method,
        source="staff",
    )
    logger.info(f"Order #{order.id} entered by user #{user.id}")
    return ok(OrderResponse.model_validate(order))


@router.get("")
async def list_orders(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(staff_or_owner),
):
    orders, _total = await ordering.list_orders(db)
    return ok([OrderResponse.model_validate(o) for o in orders])


@router.put("/order-items/{item_id}/status")
async def update_order_item_status(
    item_id: int,
    data: OrderItemStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(staff_or_owner),
):
    order, item = await ordering.update_item_status(db, item_id, data.status)
    return ok(OrderItemUpdateResponse(
        order=OrderResponse.model_validate(order),
        item=OrderItemResponse.model_validate(item),
    ))


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_user),
):
    order = await ordering.get_order(db, order_id)
    return ok(OrderResponse.model_validate(order))


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(staff_or_owner),
):
    order = await ordering.update_order_status(db, order_id, data.status)
    return ok(OrderResponse.model_validate(order))

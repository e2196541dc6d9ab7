"""
Order capture and kitchen status

Line prices and names are always snapshotted from the menu; whatever
price a client sends is never trusted.
"""

import logging
from typing import Iterable, Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import APIError, NotFoundError
from app.models import MenuItem, Order, OrderItem, OrderItemStatus, OrderStatus
from app.schemas import OrderItemIn
from app.services.sales import record_created_order

logger = logging.getLogger(__name__)


async def price_order_items(
    db: AsyncSession,
    items: Iterable[OrderItemIn],
) -> tuple[list[OrderItem], float]:
    """
    Build order lines from menu prices.

    Returns the lines and the order total. Unknown or unavailable menu
    items reject the whole order.
    """
    items = list(items)
    menu_ids = {item.menu_id for item in items}

    result = await db.execute(select(MenuItem).where(MenuItem.id.in_(menu_ids)))
    menu = {m.id: m for m in result.scalars().all()}

    lines: list[OrderItem] = []
    total = 0.0
    for item in items:
        menu_item = menu.get(item.menu_id)
        if menu_item is None:
            raise APIError(
                f"Menu item #{item.menu_id} not found",
                status.HTTP_400_BAD_REQUEST,
                "invalid_menu_item",
            )
        if not menu_item.is_available:
            raise APIError(
                f"{menu_item.name} is not available",
                status.HTTP_400_BAD_REQUEST,
                "menu_item_unavailable",
            )

        lines.append(OrderItem(
            menu_id=menu_item.id,
            name=menu_item.name,
            quantity=item.quantity,
            unit_price=menu_item.price,
            status=OrderItemStatus.PENDING,
        ))
        total += menu_item.price * item.quantity

    return lines, total


async def create_order(
    db: AsyncSession,
    *,
    table_number: int,
    items: Iterable[OrderItemIn],
    customer_name: str = "",
    payment_method: str = "cash",
    source: str = "staff",
) -> Order:
    lines, total = await price_order_items(db, items)

    order = Order(
        table_number=table_number,
        customer_name=customer_name,
        items=lines,
        total_amount=total,
        payment_method=payment_method,
        source=source,
        status=OrderStatus.PENDING,
    )
    db.add(order)
    await record_created_order(db)
    await db.commit()
    await db.refresh(order)

    logger.info(
        f"Order #{order.id} created ({source}) - table {table_number} - "
        f"{len(lines)} lines - Rp{total:,.0f}"
    )
    return order


async def get_order(db: AsyncSession, order_id: int) -> Order:
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def list_orders(
    db: AsyncSession,
    status_filter: Optional[OrderStatus] = None,
    offset: int = 0,
    limit: Optional[int] = None,
) -> tuple[list[Order], int]:
    """Orders newest first, with the total count before paging."""
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    count_query = select(func.count(Order.id))

    if status_filter is not None:
        query = query.where(Order.status == status_filter)
        count_query = count_query.where(Order.status == status_filter)

    total = (await db.execute(count_query)).scalar() or 0

    query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def update_order_status(db: AsyncSession, order_id: int, new_status: OrderStatus) -> Order:
    order = await get_order(db, order_id)
    old_status = order.status
    order.status = new_status
    await db.commit()
    await db.refresh(order)

    logger.info(f"Order #{order.id}: {old_status.value} -> {new_status.value}")
    return order


async def update_item_status(
    db: AsyncSession,
    item_id: int,
    new_status: OrderItemStatus,
) -> tuple[Order, OrderItem]:
    item = await db.get(OrderItem, item_id)
    if item is None:
        raise NotFoundError("Order item not found")

    item.status = new_status
    await db.commit()

    order = await get_order(db, item.order_id)
    await db.refresh(order, attribute_names=["items", "updated_at"])

    logger.info(f"Order #{order.id} item #{item.id} ({item.name}) -> {new_status.value}")
    return order, item


async def build_receipt(db: AsyncSession, order_id: int) -> dict:
    """Order with each line's current menu name and price."""
    order = await get_order(db, order_id)

    menu_ids = {item.menu_id for item in order.items}
    menu: dict[int, MenuItem] = {}
    if menu_ids:
        result = await db.execute(select(MenuItem).where(MenuItem.id.in_(menu_ids)))
        menu = {m.id: m for m in result.scalars().all()}

    items = []
    for item in order.items:
        menu_item = menu.get(item.menu_id)
        items.append({
            "id": item.id,
            "menu_id": item.menu_id,
            "name": item.name,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "status": item.status,
            "menu_name": menu_item.name if menu_item else "Unknown",
            "menu_price": menu_item.price if menu_item else 0,
        })

    return {
        "id": order.id,
        "table_number": order.table_number,
        "customer_name": order.customer_name,
        "items": items,
        "total_amount": order.total_amount,
        "status": order.status,
        "payment_method": order.payment_method,
        "source": order.source,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }

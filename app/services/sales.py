"""
Sales statistics and owner reports

Two views of the same business:
    - SalesStat rows are running per-day counters, bumped when an order
      is created and when a payment is first paid.
    - The sales report recomputes revenue from the orders themselves over
      a daily, weekly, monthly or custom range.

Report aggregation runs over ORM rows in Python so it behaves the same
on every database backend.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import APIError
from app.models import REPORTABLE_ORDER_STATUSES, MenuItem, Order, SalesStat

logger = logging.getLogger(__name__)

SALES_PERIODS = ("daily", "weekly", "monthly", "custom")
TOP_ITEMS_LIMIT = 10


def date_key(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime("%Y-%m-%d")


_UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


async def _bump_today(db: AsyncSession, **increments: float) -> None:
    """
    Add to today's SalesStat counters inside the database.

    Concurrent requests never read-modify-write the row: on PostgreSQL
    and SQLite the first insert of the day and every later increment
    are a single INSERT .. ON CONFLICT DO UPDATE.
    """
    key = date_key()
    now = datetime.now()
    insert = _UPSERT_INSERTS.get(db.get_bind().dialect.name)

    if insert is not None:
        stmt = insert(SalesStat).values(date=key, created_at=now, updated_at=now, **increments)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SalesStat.date],
            set_={
                **{name: getattr(SalesStat, name) + amount for name, amount in increments.items()},
                "updated_at": now,
            },
        )
        await db.execute(stmt)
        return

    bump = update(SalesStat).where(SalesStat.date == key).values(
        **{name: getattr(SalesStat, name) + amount for name, amount in increments.items()}
    )
    result = await db.execute(bump)
    if result.rowcount:
        return

    try:
        async with db.begin_nested():
            db.add(SalesStat(date=key, **increments))
    except IntegrityError:
        # Another session created today's row first
        await db.execute(bump)


async def record_created_order(db: AsyncSession) -> None:
    await _bump_today(db, total_orders=1)


async def record_paid_payment(db: AsyncSession, amount: float) -> None:
    await _bump_today(db, total_revenue=float(amount or 0), total_paid_payments=1)


async def list_daily_stats(
    db: AsyncSession,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[SalesStat]:
    """SalesStat rows between start and end inclusive, last 30 days by default."""
    end = end or date.today()
    start = start or (end - timedelta(days=30))

    result = await db.execute(
        select(SalesStat)
        .where(SalesStat.date >= start.isoformat(), SalesStat.date <= end.isoformat())
        .order_by(SalesStat.date)
    )
    return list(result.scalars().all())


# =============================================================================
# SALES REPORT
# =============================================================================

def _parse_day(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return datetime.fromisoformat(value.strip()).date()


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def resolve_report_range(
    period: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    today: Optional[date] = None,
) -> tuple[datetime, datetime]:
    """
    Turn a report period into an inclusive [start, end] datetime range.

    Weeks start on Monday. Unparseable dates fall back to today.
    """
    today = today or date.today()

    if period == "custom" and (not start or not end):
        raise APIError(
            "Start and end dates are required for custom range",
            status.HTTP_400_BAD_REQUEST,
            "missing_range",
        )

    try:
        anchor = _parse_day(start) or today

        if period == "daily":
            return _day_bounds(anchor)

        if period == "weekly":
            monday = anchor - timedelta(days=anchor.weekday())
            return _day_bounds(monday)[0], _day_bounds(monday + timedelta(days=6))[1]

        if period == "monthly":
            first = anchor.replace(day=1)
            next_month = (first + timedelta(days=32)).replace(day=1)
            return _day_bounds(first)[0], _day_bounds(next_month - timedelta(days=1))[1]

        if period == "custom":
            return _day_bounds(_parse_day(start))[0], _day_bounds(_parse_day(end))[1]

    except ValueError:
        logger.warning(f"Unparseable report dates start={start} end={end}, using today")

    return _day_bounds(today)


def period_label(moment: datetime, period: str) -> str:
    if period == "daily":
        return moment.strftime("%Y-%m-%d")
    if period == "weekly":
        iso_year, iso_week, _ = moment.isocalendar()
        return f"{iso_year}-{iso_week:02d}"
    return moment.strftime("%Y-%m")


async def build_sales_report(
    db: AsyncSession,
    period: str = "daily",
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> dict[str, Any]:
    start_date, end_date = resolve_report_range(period, start, end)
    logger.info(f"Generating {period} sales report {start_date} - {end_date}")

    result = await db.execute(
        select(Order)
        .where(
            Order.status.in_(REPORTABLE_ORDER_STATUSES),
            Order.created_at >= start_date,
            Order.created_at <= end_date,
        )
        .order_by(Order.created_at)
    )
    orders = list(result.scalars().all())

    # Periods
    groups: dict[str, dict[str, Any]] = {}
    for order in orders:
        label = period_label(order.created_at, period)
        group = groups.setdefault(
            label,
            {"period": label, "date": order.created_at, "revenue": 0.0, "order_count": 0},
        )
        group["date"] = min(group["date"], order.created_at)
        group["revenue"] += order.total_amount
        group["order_count"] += 1

    periods = sorted(groups.values(), key=lambda g: g["date"])
    for group in periods:
        group["average_order_value"] = (
            round(group["revenue"] / group["order_count"]) if group["order_count"] else 0
        )

    # Top selling items
    quantities: dict[int, int] = defaultdict(int)
    revenues: dict[int, float] = defaultdict(float)
    for order in orders:
        for item in order.items:
            quantities[item.menu_id] += item.quantity
            revenues[item.menu_id] += item.line_total

    top_ids = sorted(quantities, key=lambda menu_id: quantities[menu_id], reverse=True)
    top_ids = top_ids[:TOP_ITEMS_LIMIT]

    names: dict[int, str] = {}
    if top_ids:
        menu_rows = await db.execute(
            select(MenuItem.id, MenuItem.name).where(MenuItem.id.in_(top_ids))
        )
        names = {row.id: row.name for row in menu_rows}

    top_selling_items = [
        {
            "id": menu_id,
            "name": names.get(menu_id, "Unknown Item"),
            "quantity": quantities[menu_id],
            "total_revenue": revenues[menu_id],
        }
        for menu_id in top_ids
    ]

    # Summary
    total_revenue = sum(g["revenue"] for g in periods)
    total_orders = sum(g["order_count"] for g in periods)
    summary = {
        "total_revenue": total_revenue,
        "total_orders": total_orders,
        "average_order_value": round(total_revenue / total_orders) if total_orders else 0,
        "start_date": start_date,
        "end_date": end_date,
        "period": period,
    }

    logger.info(f"Report completed: {total_orders} orders, total Rp {total_revenue}")

    return {
        "summary": summary,
        "periods": periods,
        "top_selling_items": top_selling_items,
    }

"""Owner reports."""

import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.responses import ok
from app.core.security import owner_only
from app.database import get_db
from app.models import User
from app.schemas import SalesReport, SalesStatResponse
from app.services import sales

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/owner", tags=["Owner"])


@router.get("/reports/sales")
async def sales_report(
    period: Literal["daily", "weekly", "monthly", "custom"] = Query("daily"),
    start: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end: Optional[str] = Query(None, description="YYYY-MM-DD, custom period only"),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    """
    Revenue of accepted, preparing, ready and completed orders.

    daily/weekly/monthly cover the day, Monday-based week or month
    containing `start` (today when omitted); custom needs both dates.
    """
    report = await sales.build_sales_report(db, period, start, end)
    return ok(SalesReport.model_validate(report))


@router.get("/reports/daily-stats")
async def daily_stats(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    rows = await sales.list_daily_stats(db, start, end)
    return ok([SalesStatResponse.model_validate(r) for r in rows])

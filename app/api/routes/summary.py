"""
Summary Routes
Per-day booking counts for admins
"""
from datetime import date, timedelta
from typing import Optional
from fastapi import APIRouter, Depends

from app.models.booking import DailySummary
from app.api.routes.auth import get_session_context
from app.services import booking_rules as rules
from app.services import bookings as booking_service
from app.services.booking_rules import Permission, SessionContext

router = APIRouter()


@router.get("/daily", response_model=DailySummary)
async def get_daily_summary(
    date: Optional[date] = None,
    ctx: SessionContext = Depends(get_session_context)
):
    """Status and meal-type counts for a date (defaults to tomorrow)"""
    rules.authorize(ctx, Permission.VIEW_SUMMARY)
    target = date or rules.local_today() + timedelta(days=1)
    return await booking_service.daily_summary(target)

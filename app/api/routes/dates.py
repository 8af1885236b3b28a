"""
Date Management Routes
Admin configuration of bookable and free-meal dates
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional
from fastapi import APIRouter, Depends
from beanie import PydanticObjectId
from bson.errors import InvalidId
from pydantic import BaseModel, Field
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ConflictError, NotFoundError
from app.models.available_date import AvailableDate, AvailableDateCreate, AvailableDateResponse
from app.api.routes.auth import get_session_context
from app.services import booking_rules as rules
from app.services.booking_rules import EligibilityMode, Permission, SessionContext

router = APIRouter()
logger = logging.getLogger(__name__)


class BulkWeekdaysRequest(BaseModel):
    days: int = Field(30, ge=1, le=120)


async def _get_date_config(config_id: str) -> AvailableDate:
    try:
        oid = PydanticObjectId(config_id)
    except (InvalidId, TypeError):
        raise NotFoundError("Date configuration not found")

    config = await AvailableDate.get(oid)
    if not config:
        raise NotFoundError("Date configuration not found")
    return config


@router.get("/", response_model=List[AvailableDateResponse])
async def list_dates(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    ctx: SessionContext = Depends(get_session_context)
):
    """Configured dates in a range (defaults to the start of this month through 90 days later)"""
    rules.authorize(ctx, Permission.CONFIGURE_DATES)
    today = rules.local_today()
    start = start_date or today.replace(day=1)
    end = end_date or start + timedelta(days=90)

    rows = await AvailableDate.find(
        AvailableDate.date >= start.isoformat(),
        AvailableDate.date <= end.isoformat()
    ).sort("date").to_list()
    return [AvailableDateResponse.model_validate(r) for r in rows]


@router.post("/", response_model=AvailableDateResponse, status_code=201)
async def create_date(
    request: AvailableDateCreate,
    ctx: SessionContext = Depends(get_session_context)
):
    """Add a date configuration"""
    rules.authorize(ctx, Permission.CONFIGURE_DATES)
    rules.ensure_bookable(request.date, rules.local_today(), None, EligibilityMode.CONFIGURE)

    if await AvailableDate.find_one(AvailableDate.date == request.date.isoformat()):
        raise ConflictError(f"{request.date.isoformat()} is already configured", code="duplicate_date")

    config = AvailableDate(
        date=request.date.isoformat(),
        is_available=request.is_available,
        is_free_meal=request.is_free_meal,
        reason=request.reason,
        updated_by=ctx.employee_id,
    )
    try:
        await config.insert()
    except DuplicateKeyError:
        raise ConflictError(f"{request.date.isoformat()} is already configured", code="duplicate_date")

    logger.info("Date %s configured by %s (available=%s, free=%s)",
                config.date, ctx.employee_id, config.is_available, config.is_free_meal)
    return AvailableDateResponse.model_validate(config)


@router.post("/bulk-weekdays")
async def add_upcoming_weekdays(
    request: BulkWeekdaysRequest,
    ctx: SessionContext = Depends(get_session_context)
):
    """
    Mark every weekday in the next N days as available.
    Dates that already have a configuration are left untouched.
    """
    rules.authorize(ctx, Permission.CONFIGURE_DATES)
    today = rules.local_today()
    candidates = [today + timedelta(days=i) for i in range(1, request.days + 1)]
    weekdays = [d.isoformat() for d in candidates if not rules.is_weekend(d)]

    existing = await AvailableDate.find({"date": {"$in": weekdays}}).to_list()
    configured = {row.date for row in existing}
    added = []
    for day in weekdays:
        if day in configured:
            continue
        try:
            await AvailableDate(date=day, updated_by=ctx.employee_id).insert()
        except DuplicateKeyError:
            continue
        added.append(day)

    logger.info("Bulk weekday availability by %s: %d added", ctx.employee_id, len(added))
    return {"message": f"Added {len(added)} weekdays as available dates", "added": added}


@router.put("/{config_id}", response_model=AvailableDateResponse)
async def update_date(
    config_id: str,
    request: AvailableDateCreate,
    ctx: SessionContext = Depends(get_session_context)
):
    """Edit a date configuration (past dates are read-only)"""
    rules.authorize(ctx, Permission.CONFIGURE_DATES)
    config = await _get_date_config(config_id)
    today = rules.local_today()
    rules.ensure_bookable(config.date, today, None, EligibilityMode.CONFIGURE)
    rules.ensure_bookable(request.date, today, None, EligibilityMode.CONFIGURE)

    new_date = request.date.isoformat()
    if new_date != config.date:
        clash = await AvailableDate.find_one(AvailableDate.date == new_date)
        if clash:
            raise ConflictError(f"{new_date} is already configured", code="duplicate_date")

    config.date = new_date
    config.is_available = request.is_available
    config.is_free_meal = request.is_free_meal
    config.reason = request.reason
    config.updated_at = datetime.utcnow()
    config.updated_by = ctx.employee_id
    try:
        await config.save()
    except DuplicateKeyError:
        raise ConflictError(f"{new_date} is already configured", code="duplicate_date")

    logger.info("Date %s updated by %s", config.date, ctx.employee_id)
    return AvailableDateResponse.model_validate(config)


@router.delete("/{config_id}")
async def delete_date(
    config_id: str,
    ctx: SessionContext = Depends(get_session_context)
):
    """Remove a date configuration (past dates are read-only)"""
    rules.authorize(ctx, Permission.CONFIGURE_DATES)
    config = await _get_date_config(config_id)
    rules.ensure_bookable(config.date, rules.local_today(), None, EligibilityMode.CONFIGURE)

    await config.delete()
    logger.info("Date %s removed by %s", config.date, ctx.employee_id)
    return {"message": "Date configuration deleted successfully"}

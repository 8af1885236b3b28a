"""
Vendor Routes
Approved bookings for meal preparation, serving and export
"""
from datetime import date, timedelta
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, Response

from app.models.booking import BookingResponse, BookingStatus
from app.api.routes.auth import get_session_context
from app.services import booking_rules as rules
from app.services import bookings as booking_service
from app.services import export
from app.services.booking_rules import Permission, SessionContext

router = APIRouter()

KITCHEN_STATUSES = [BookingStatus.APPROVED]


def _with_counts(day, bookings):
    return {
        "date": day.isoformat(),
        "summary": export.count_by_meal_type(bookings),
        "bookings": [BookingResponse.model_validate(b) for b in bookings],
    }


@router.get("/today")
async def get_todays_bookings(ctx: SessionContext = Depends(get_session_context)):
    """Today's approved and served bookings, for handing out meals"""
    rules.authorize(ctx, Permission.VIEW_KITCHEN)
    today = rules.local_today()
    bookings = await booking_service.bookings_for_date(today, [BookingStatus.APPROVED, BookingStatus.SERVED])
    result = _with_counts(today, bookings)
    result["served"] = sum(1 for b in bookings if b.status == BookingStatus.SERVED)
    return result


@router.get("/bookings")
async def get_bookings_for_date(
    date: Optional[date] = None,
    ctx: SessionContext = Depends(get_session_context)
):
    """Approved bookings for a date (defaults to tomorrow), grouped by meal type"""
    rules.authorize(ctx, Permission.VIEW_KITCHEN)
    target = date or rules.local_today() + timedelta(days=1)
    bookings = await booking_service.bookings_for_date(target, KITCHEN_STATUSES)
    return _with_counts(target, bookings)


@router.post("/bookings/{booking_id}/serve", response_model=BookingResponse)
async def mark_booking_served(
    booking_id: str,
    ctx: SessionContext = Depends(get_session_context)
):
    """Mark an approved booking as served"""
    booking = await booking_service.mark_served(ctx, booking_id)
    return BookingResponse.model_validate(booking)


@router.get("/bookings/export")
async def export_bookings_csv(
    date: Optional[date] = None,
    ctx: SessionContext = Depends(get_session_context)
):
    """Approved bookings for a date as CSV"""
    rules.authorize(ctx, Permission.VIEW_KITCHEN)
    target = date or rules.local_today() + timedelta(days=1)
    bookings = await booking_service.bookings_for_date(target, KITCHEN_STATUSES)
    return Response(
        content=export.bookings_to_csv(bookings),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="meal-bookings-{target.isoformat()}.csv"'},
    )


@router.get("/bookings/print", response_class=HTMLResponse)
async def print_bookings(
    date: Optional[date] = None,
    ctx: SessionContext = Depends(get_session_context)
):
    """Printable meal list for a date"""
    rules.authorize(ctx, Permission.VIEW_KITCHEN)
    target = date or rules.local_today() + timedelta(days=1)
    bookings = await booking_service.bookings_for_date(target, KITCHEN_STATUSES)
    return HTMLResponse(export.render_print_sheet(target.isoformat(), bookings))

"""
Approval Routes
Admin review of pending bookings
"""
from datetime import date, timedelta
from typing import List, Optional
from fastapi import APIRouter, Depends

from app.models.booking import Booking, BookingResponse, BookingStatus, BulkApproveRequest, BulkApproveResult
from app.api.routes.auth import get_session_context
from app.services import booking_rules as rules
from app.services import bookings as booking_service
from app.services.booking_rules import BookingAction, Permission, SessionContext

router = APIRouter()


@router.get("/pending", response_model=List[BookingResponse])
async def get_pending_bookings(
    date: Optional[date] = None,
    ctx: SessionContext = Depends(get_session_context)
):
    """Pending bookings for a date (defaults to tomorrow), oldest submission first"""
    rules.authorize(ctx, Permission.REVIEW)
    target = date or rules.local_today() + timedelta(days=1)

    bookings = await Booking.find(
        Booking.booking_date == target.isoformat(),
        Booking.status == BookingStatus.PENDING
    ).sort("created_at").to_list()
    return [BookingResponse.model_validate(b) for b in bookings]


@router.post("/{booking_id}/approve", response_model=BookingResponse)
async def approve_booking(
    booking_id: str,
    ctx: SessionContext = Depends(get_session_context)
):
    """Approve a pending booking. Approving twice is harmless."""
    booking = await booking_service.review_booking(ctx, booking_id, BookingAction.APPROVE)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: str,
    ctx: SessionContext = Depends(get_session_context)
):
    """Reject a pending booking"""
    booking = await booking_service.review_booking(ctx, booking_id, BookingAction.REJECT)
    return BookingResponse.model_validate(booking)


@router.post("/bulk-approve", response_model=BulkApproveResult)
async def bulk_approve_bookings(
    request: BulkApproveRequest,
    ctx: SessionContext = Depends(get_session_context)
):
    """Approve the selected bookings; past-dated or already reviewed ones are skipped"""
    return await booking_service.bulk_approve(ctx, request.booking_ids)

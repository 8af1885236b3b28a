"""
Booking Routes
Employee endpoints for booking, editing and cancelling meals
"""
from dataclasses import asdict
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile

from app.core.exceptions import ForbiddenError
from app.models.available_date import AvailableDateResponse
from app.models.booking import Booking, BookingChanges, BookingResponse, EditOptions, MealType
from app.models.employee import EmployeeRole
from app.api.routes.auth import get_session_context
from app.services import booking_rules as rules
from app.services import bookings as booking_service
from app.services.booking_rules import SessionContext
from app.services.bookings import ProofUpload

router = APIRouter()


async def _read_proof(upload: Optional[UploadFile]) -> Optional[ProofUpload]:
    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    return ProofUpload(content=content, filename=upload.filename, content_type=upload.content_type)


@router.get("/available-dates", response_model=List[AvailableDateResponse])
async def get_available_dates(ctx: SessionContext = Depends(get_session_context)):
    """Upcoming dates that can be booked"""
    rows = await booking_service.upcoming_available_dates()
    return [AvailableDateResponse.model_validate(r) for r in rows]


@router.get("/eligibility")
async def check_eligibility(
    date: date,
    ctx: SessionContext = Depends(get_session_context)
):
    """Check whether a date can be booked, and whether it is a free meal"""
    available = await booking_service.load_available_dates([date])
    result = rules.is_bookable(date, rules.local_today(), available)
    return {
        "date": date.isoformat(),
        "ok": result.ok,
        "reason": result.reason,
        "message": result.message,
        "is_free_meal": result.is_free_meal,
        "note": result.config.reason if result.config is not None else None,
    }


@router.post("/", response_model=BookingResponse, status_code=201)
async def book_meal(
    booking_date: Optional[str] = Form(None),
    meal_type: MealType = Form(MealType.VEG),
    payment_proof: Optional[UploadFile] = File(None),
    ctx: SessionContext = Depends(get_session_context)
):
    """
    Book a meal. Payment proof is required unless the date is a free meal.
    """
    proof = await _read_proof(payment_proof)
    booking = await booking_service.create_booking(ctx, booking_date, meal_type, proof)
    return BookingResponse.model_validate(booking)


@router.get("/my", response_model=List[BookingResponse])
async def get_my_bookings(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    ctx: SessionContext = Depends(get_session_context)
):
    """Get current employee's bookings, newest date first"""
    query = {"employee_id": ctx.employee_id}
    if start_date and end_date:
        query["booking_date"] = {"$gte": start_date.isoformat(), "$lte": end_date.isoformat()}

    bookings = await Booking.find(query).sort("-booking_date").to_list()
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    ctx: SessionContext = Depends(get_session_context)
):
    booking = await booking_service.get_booking(booking_id)
    if booking.employee_id != ctx.employee_id and ctx.role != EmployeeRole.ADMIN:
        raise ForbiddenError("Not authorized to view this booking")
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/edit-options", response_model=EditOptions)
async def get_edit_options(
    booking_id: str,
    ctx: SessionContext = Depends(get_session_context)
):
    """Which fields can be changed right now"""
    _, perms = await booking_service.edit_options(ctx, booking_id)
    return EditOptions(**asdict(perms))


@router.put("/{booking_id}", response_model=BookingResponse)
async def resubmit_booking(
    booking_id: str,
    booking_date: Optional[date] = Form(None),
    meal_type: Optional[MealType] = Form(None),
    payment_proof: Optional[UploadFile] = File(None),
    ctx: SessionContext = Depends(get_session_context)
):
    """
    Change date, category or payment proof. The booking goes back to pending.
    """
    proof = await _read_proof(payment_proof)
    changes = BookingChanges(booking_date=booking_date, meal_type=meal_type)
    booking = await booking_service.resubmit_booking(ctx, booking_id, changes, proof)
    return BookingResponse.model_validate(booking)


@router.delete("/{booking_id}")
async def cancel_booking(
    booking_id: str,
    ctx: SessionContext = Depends(get_session_context)
):
    """Cancel a pending booking"""
    await booking_service.cancel_booking(ctx, booking_id)
    return {"message": "Booking cancelled", "booking_id": booking_id}

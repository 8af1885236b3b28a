"""
Booking Service
Runs booking actions against the database after the booking rules have
cleared them. Every check that can be made locally is made before the first
write.
"""
import logging
import random
import time
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from beanie import PydanticObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ConflictError, EligibilityError, NotFoundError, ValidationError
from app.models.available_date import AvailableDate
from app.models.booking import (
    Booking,
    BookingChanges,
    BookingStatus,
    BulkApproveResult,
    DailySummary,
    MealType,
)
from app.models.employee import Employee, EmployeeRole
from app.models.notification import Notification, NotificationType
from app.services import booking_rules as rules
from app.services.booking_rules import BookingAction, Permission, SessionContext
from app.services.email import email_service
from app.services.storage import PaymentProofStorage, get_storage

logger = logging.getLogger(__name__)

DUPLICATE_BOOKING_MESSAGE = "You already have a booking for this date"
CONCURRENT_UPDATE_MESSAGE = "This booking was changed by someone else. Please refresh and try again."


@dataclass
class ProofUpload:
    """An uploaded payment screenshot, read into memory"""
    content: bytes
    filename: str
    content_type: Optional[str] = None


def generate_receipt_number(is_free_meal: bool = False) -> str:
    """RCP/FREE + epoch millis + 0-999"""
    prefix = "FREE" if is_free_meal else "RCP"
    return f"{prefix}{int(time.time() * 1000)}{random.randint(0, 999)}"


async def get_booking(booking_id: str) -> Booking:
    try:
        oid = PydanticObjectId(booking_id)
    except (InvalidId, TypeError):
        raise NotFoundError("Booking not found")

    booking = await Booking.get(oid)
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


async def load_available_dates(days: List[date]) -> List[AvailableDate]:
    """AvailableDate rows for the given calendar dates"""
    keys = sorted({d.isoformat() for d in days})
    return await AvailableDate.find({"date": {"$in": keys}}).to_list()


async def upcoming_available_dates(today: Optional[date] = None) -> List[AvailableDate]:
    """Dates employees can pick from: available, after today, not on a weekend"""
    today = today or rules.local_today()
    rows = await AvailableDate.find(
        AvailableDate.is_available == True,
        AvailableDate.date > today.isoformat(),
    ).sort("date").to_list()
    return [r for r in rows if rules.is_bookable(r.date, today, [r]).ok]


async def _find_duplicate(employee_id: str, booking_date: date, exclude_id=None) -> Optional[Booking]:
    query = {"employee_id": employee_id, "booking_date": booking_date.isoformat()}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return await Booking.find_one(query)


def _duplicate_key_conflict(error: DuplicateKeyError) -> ConflictError:
    """Map a unique-index violation on bookings to the matching conflict"""
    key_pattern = (error.details or {}).get("keyPattern") or {}
    if "receipt_number" in key_pattern or "uniq_receipt_number" in str(error):
        logger.warning("Receipt number collision: %s", error)
        return ConflictError("Could not assign a receipt number, please try again", code="receipt_collision")
    return ConflictError(DUPLICATE_BOOKING_MESSAGE, code="duplicate_booking")


async def _conditional_update(booking: Booking, expected: BookingStatus, updates: dict) -> bool:
    """
    Write ``updates`` only if the booking is still in ``expected`` status.
    Returns False when another writer got there first.
    """
    updates = {**updates, "updated_at": datetime.utcnow()}
    payload = {k: (v.value if isinstance(v, Enum) else v) for k, v in updates.items()}

    try:
        result = await Booking.get_motor_collection().update_one(
            {"_id": booking.id, "status": expected.value},
            {"$set": payload},
        )
    except DuplicateKeyError as e:
        raise _duplicate_key_conflict(e)

    if result.matched_count == 0:
        return False

    for key, value in updates.items():
        setattr(booking, key, value)
    return True


async def _notify(recipient_id: str, recipient_email: Optional[str], title: str, message: str,
                  kind: NotificationType, link: str) -> None:
    notification = Notification(
        recipient_id=recipient_id,
        recipient_email=recipient_email or "",
        title=title,
        message=message,
        type=kind,
        link=link,
    )
    await notification.insert()


async def _notify_admins(booking: Booking, kind: NotificationType) -> None:
    verb = "resubmitted" if kind == NotificationType.BOOKING_RESUBMITTED else "submitted"
    admins = await Employee.find(Employee.role == EmployeeRole.ADMIN).to_list()
    for admin in admins:
        await _notify(
            admin.employee_id,
            admin.email,
            f"Meal Booking {verb.capitalize()}",
            f"{booking.employee_name} {verb} a booking for {booking.booking_date}",
            kind,
            "/admin/approvals",
        )


async def create_booking(
    ctx: SessionContext,
    booking_date,
    meal_type,
    proof: Optional[ProofUpload] = None,
    today: Optional[date] = None,
    storage: Optional[PaymentProofStorage] = None,
) -> Booking:
    """
    Book a meal for ``booking_date``.
    Free-meal days are approved immediately and take no payment proof.
    """
    rules.authorize(ctx, Permission.BOOK)
    if not booking_date:
        raise ValidationError("Please select a booking date")
    if not meal_type:
        raise ValidationError("Please select a meal type")

    today = today or rules.local_today()
    day = rules.as_date(booking_date)
    meal_type = MealType(meal_type)
    storage = storage or get_storage()

    eligibility = rules.ensure_bookable(day, today, await load_available_dates([day]))
    if not eligibility.is_free_meal:
        if proof is None or not proof.content:
            raise ValidationError("Please upload payment screenshot")
        storage.validate(proof.content, proof.filename, proof.content_type)

    if await _find_duplicate(ctx.employee_id, day):
        raise ConflictError(DUPLICATE_BOOKING_MESSAGE, code="duplicate_booking")

    receipt_number = generate_receipt_number(eligibility.is_free_meal)
    proof_url = None
    if not eligibility.is_free_meal:
        # Left in place if the insert below fails
        proof_url = storage.save(proof.content, proof.filename, receipt_number, proof.content_type)

    booking = Booking(
        employee_id=ctx.employee_id,
        employee_name=ctx.name,
        employee_email=ctx.email,
        booking_date=day.isoformat(),
        meal_type=meal_type,
        status=rules.initial_status(eligibility.is_free_meal),
        receipt_number=receipt_number,
        payment_proof_url=proof_url,
        is_free_meal=eligibility.is_free_meal,
    )
    try:
        await booking.insert()
    except DuplicateKeyError as e:
        raise _duplicate_key_conflict(e)

    logger.info(
        "Booking %s created for %s on %s (%s, %s)",
        receipt_number, ctx.employee_id, booking.booking_date, meal_type.value, booking.status.value,
    )
    if booking.status == BookingStatus.PENDING:
        await _notify_admins(booking, NotificationType.BOOKING_SUBMITTED)
    return booking


async def edit_options(ctx: SessionContext, booking_id: str, today: Optional[date] = None):
    booking = await get_booking(booking_id)
    rules.ensure_owner(ctx, booking)
    today = today or rules.local_today()
    available = await load_available_dates([booking.calendar_date])
    return booking, rules.edit_permissions(booking, today, available)


async def resubmit_booking(
    ctx: SessionContext,
    booking_id: str,
    changes: BookingChanges,
    proof: Optional[ProofUpload] = None,
    today: Optional[date] = None,
    storage: Optional[PaymentProofStorage] = None,
) -> Booking:
    """
    Apply an employee's edit and send the booking back for review.
    """
    rules.authorize(ctx, Permission.BOOK)
    booking = await get_booking(booking_id)
    rules.ensure_owner(ctx, booking)

    today = today or rules.local_today()
    storage = storage or get_storage()
    replace_proof = proof is not None and bool(proof.content)

    lookup_days = [booking.calendar_date]
    if changes.booking_date is not None:
        lookup_days.append(changes.booking_date)
    available = await load_available_dates(lookup_days)

    plan = rules.plan_resubmission(
        booking,
        today,
        available,
        new_date=changes.booking_date,
        new_meal_type=changes.meal_type,
        replace_proof=replace_proof,
    )

    if replace_proof:
        storage.validate(proof.content, proof.filename, proof.content_type)

    if plan.new_date is not None and await _find_duplicate(ctx.employee_id, plan.new_date, exclude_id=booking.id):
        raise ConflictError(
            "You already have a booking for this date. Please choose a different date.",
            code="duplicate_booking",
        )

    updates = dict(plan.updates)
    if replace_proof:
        updates["payment_proof_url"] = storage.save(
            proof.content, proof.filename, booking.receipt_number, proof.content_type, replacement=True
        )
    updates["reviewed_by"] = None
    updates["reviewed_at"] = None

    if not await _conditional_update(booking, plan.transition.previous, updates):
        raise ConflictError(CONCURRENT_UPDATE_MESSAGE, code="concurrent_update")

    logger.info(
        "Booking %s resubmitted by %s (changed: %s)",
        booking.receipt_number, ctx.employee_id,
        ", ".join(k for k in updates if k not in ("status", "reviewed_by", "reviewed_at")),
    )
    await _notify_admins(booking, NotificationType.BOOKING_RESUBMITTED)
    return booking


async def cancel_booking(ctx: SessionContext, booking_id: str) -> None:
    """Delete a booking outright; only while it is still pending"""
    booking = await get_booking(booking_id)
    rules.ensure_owner(ctx, booking)
    if not rules.can_cancel(booking.status):
        raise ValidationError("Only pending bookings can be cancelled", code="not_cancellable")

    result = await Booking.get_motor_collection().delete_one(
        {"_id": booking.id, "status": BookingStatus.PENDING.value}
    )
    if result.deleted_count == 0:
        raise ConflictError(CONCURRENT_UPDATE_MESSAGE, code="concurrent_update")
    logger.info("Booking %s cancelled by %s", booking.receipt_number, ctx.employee_id)


async def _apply_status_action(ctx: SessionContext, booking: Booking, action: BookingAction):
    """Returns (booking, changed) where changed is True only if this call wrote the new status"""
    step = rules.transition(booking.status, action)
    if not step.changed:
        return booking, False

    now = datetime.utcnow()
    updates = {"status": step.status}
    if action == BookingAction.MARK_SERVED:
        updates["served_at"] = now
    else:
        updates["reviewed_by"] = ctx.employee_id
        updates["reviewed_at"] = now

    if not await _conditional_update(booking, step.previous, updates):
        # Someone else acted first; a repeat of the same action is fine
        fresh = await get_booking(str(booking.id))
        if fresh.status == step.status:
            return fresh, False
        raise ConflictError(CONCURRENT_UPDATE_MESSAGE, code="concurrent_update")

    logger.info("Booking %s %s -> %s by %s", booking.receipt_number, step.previous.value, step.status.value, ctx.employee_id)
    return booking, True


async def review_booking(ctx: SessionContext, booking_id: str, action: BookingAction) -> Booking:
    """Approve or reject a pending booking (Admin only)"""
    if action not in (BookingAction.APPROVE, BookingAction.REJECT):
        raise ValidationError(f"Unsupported review action: {action}")
    rules.authorize(ctx, Permission.REVIEW)

    booking = await get_booking(booking_id)
    return await _review(ctx, booking, action)


async def _review(ctx: SessionContext, booking: Booking, action: BookingAction) -> Booking:
    booking, changed = await _apply_status_action(ctx, booking, action)

    if changed:
        approved = booking.status == BookingStatus.APPROVED
        await _notify(
            booking.employee_id,
            booking.employee_email,
            f"Meal Booking {booking.status.value.capitalize()}",
            f"Your meal booking for {booking.booking_date} has been {booking.status.value}.",
            NotificationType.BOOKING_APPROVED if approved else NotificationType.BOOKING_REJECTED,
            "/my-bookings",
        )
        await email_service.send_booking_status_notification(booking, booking.employee_email)
    return booking


async def bulk_approve(ctx: SessionContext, booking_ids: List[str], today: Optional[date] = None) -> BulkApproveResult:
    """
    Approve several pending bookings at once. Bookings dated before today or
    no longer pending are skipped.
    """
    rules.authorize(ctx, Permission.REVIEW)
    if not booking_ids:
        raise ValidationError("Please select at least one booking to approve")

    today = today or rules.local_today()
    approved, skipped = [], []
    for booking_id in dict.fromkeys(booking_ids):
        try:
            booking = await get_booking(booking_id)
        except NotFoundError:
            skipped.append(booking_id)
            continue

        if booking.status != BookingStatus.PENDING or booking.calendar_date < today:
            skipped.append(booking_id)
            continue

        try:
            await _review(ctx, booking, BookingAction.APPROVE)
        except (ConflictError, EligibilityError):
            # changed by someone else since it was read
            skipped.append(booking_id)
            continue
        approved.append(booking_id)

    logger.info("Bulk approve by %s: %d approved, %d skipped", ctx.employee_id, len(approved), len(skipped))
    return BulkApproveResult(approved=approved, skipped=skipped)


async def mark_served(ctx: SessionContext, booking_id: str) -> Booking:
    """Vendor hands the meal over: approved -> served"""
    rules.authorize(ctx, Permission.SERVE)
    booking = await get_booking(booking_id)
    booking, changed = await _apply_status_action(ctx, booking, BookingAction.MARK_SERVED)

    if changed:
        await _notify(
            booking.employee_id,
            booking.employee_email,
            "Meal Served",
            f"Your meal for {booking.booking_date} has been served.",
            NotificationType.BOOKING_SERVED,
            "/my-bookings",
        )
    return booking


async def bookings_for_date(day: date, statuses: List[BookingStatus]) -> List[Booking]:
    return await Booking.find(
        {"booking_date": day.isoformat(), "status": {"$in": [s.value for s in statuses]}}
    ).sort("meal_type", "employee_name").to_list()


async def daily_summary(day: date) -> DailySummary:
    bookings = await Booking.find(Booking.booking_date == day.isoformat()).to_list()
    counts = {status: 0 for status in BookingStatus}
    for b in bookings:
        counts[b.status] += 1

    confirmed = [b for b in bookings if b.status in (BookingStatus.APPROVED, BookingStatus.SERVED)]
    return DailySummary(
        date=day.isoformat(),
        total=len(bookings),
        pending=counts[BookingStatus.PENDING],
        approved=counts[BookingStatus.APPROVED],
        rejected=counts[BookingStatus.REJECTED],
        served=counts[BookingStatus.SERVED],
        veg=sum(1 for b in confirmed if b.meal_type == MealType.VEG),
        non_veg=sum(1 for b in confirmed if b.meal_type == MealType.NON_VEG),
    )

"""
Booking Rules
Date eligibility, status transitions and edit-window checks shared by the
booking form, self-edit, date management and approval endpoints.

Nothing in here touches the database: callers pass in today's date and the
AvailableDate rows they loaded, and persist whatever comes back.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
from zoneinfo import ZoneInfo

from app.config import settings
from app.core.exceptions import EligibilityError, ForbiddenError, ValidationError
from app.models.booking import BookingStatus, MealType
from app.models.employee import EmployeeRole


# Availability

class EligibilityMode(str, Enum):
    CREATE = "create"        # new booking
    EDIT = "edit"            # moving an existing booking to another date
    CONFIGURE = "configure"  # admin adding/editing an AvailableDate row


class IneligibleReason(str, Enum):
    NOT_FUTURE = "not_future"
    WEEKEND = "weekend"
    NOT_AVAILABLE = "not_available"
    PAST_DATE = "past_date"


REASON_MESSAGES = {
    IneligibleReason.NOT_FUTURE: "Please select a future date",
    IneligibleReason.WEEKEND: "Booking not available on weekends",
    IneligibleReason.NOT_AVAILABLE: "This date is not available for booking",
    IneligibleReason.PAST_DATE: "Cannot configure a date in the past",
}


@dataclass
class Eligibility:
    ok: bool
    reason: Optional[IneligibleReason] = None
    is_free_meal: bool = False
    config: Any = None

    @property
    def message(self) -> Optional[str]:
        return REASON_MESSAGES[self.reason] if self.reason else None


DateLike = Union[date, datetime, str]


def as_date(value: DateLike) -> date:
    """Normalise a date, datetime or YYYY-MM-DD string to a date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}. Expected YYYY-MM-DD")


def local_today() -> date:
    """Current calendar date in the canteen's timezone"""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5  # 5=Sat, 6=Sun


def index_available_dates(available_dates: Union[Iterable[Any], Mapping[date, Any], None]) -> Dict[date, Any]:
    """Key AvailableDate rows by calendar date"""
    if available_dates is None:
        return {}
    if isinstance(available_dates, Mapping):
        return {as_date(k): v for k, v in available_dates.items()}
    return {as_date(row.date): row for row in available_dates}


def is_bookable(
    day: DateLike,
    today: DateLike,
    available_dates: Union[Iterable[Any], Mapping[date, Any], None],
    mode: EligibilityMode = EligibilityMode.CREATE,
) -> Eligibility:
    """
    Decide whether a booking may target ``day``.

    CREATE and EDIT: the date must be strictly after today, a weekday, and
    have an AvailableDate row with is_available set. Weekends are rejected
    even when an admin has configured them.

    CONFIGURE: only rejects dates before today; configuration is not consulted.
    """
    day = as_date(day)
    today = as_date(today)

    if mode == EligibilityMode.CONFIGURE:
        if day < today:
            return Eligibility(ok=False, reason=IneligibleReason.PAST_DATE)
        return Eligibility(ok=True)

    if day <= today:
        return Eligibility(ok=False, reason=IneligibleReason.NOT_FUTURE)

    if is_weekend(day):
        return Eligibility(ok=False, reason=IneligibleReason.WEEKEND)

    config = index_available_dates(available_dates).get(day)
    if config is None or not config.is_available:
        return Eligibility(ok=False, reason=IneligibleReason.NOT_AVAILABLE, config=config)

    return Eligibility(ok=True, is_free_meal=bool(config.is_free_meal), config=config)


def ensure_bookable(day, today, available_dates, mode=EligibilityMode.CREATE) -> Eligibility:
    """Raising variant of is_bookable"""
    result = is_bookable(day, today, available_dates, mode)
    if not result.ok:
        raise EligibilityError(result.message, code=result.reason.value)
    return result


# Status state machine

class BookingAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    MARK_SERVED = "mark_served"
    RESUBMIT = "resubmit"


# action -> (statuses it may start from, resulting status)
TRANSITIONS = {
    BookingAction.APPROVE: ({BookingStatus.PENDING}, BookingStatus.APPROVED),
    BookingAction.REJECT: ({BookingStatus.PENDING}, BookingStatus.REJECTED),
    BookingAction.MARK_SERVED: ({BookingStatus.APPROVED}, BookingStatus.SERVED),
    BookingAction.RESUBMIT: (
        {BookingStatus.PENDING, BookingStatus.REJECTED, BookingStatus.APPROVED},
        BookingStatus.PENDING,
    ),
}

# Repeating these on a booking already in the target status changes nothing
IDEMPOTENT_ACTIONS = {BookingAction.APPROVE, BookingAction.REJECT, BookingAction.MARK_SERVED}


@dataclass
class Transition:
    previous: BookingStatus
    status: BookingStatus

    @property
    def changed(self) -> bool:
        return self.previous != self.status


def initial_status(is_free_meal: bool) -> BookingStatus:
    return BookingStatus.APPROVED if is_free_meal else BookingStatus.PENDING


def transition(current: Union[BookingStatus, str], action: BookingAction) -> Transition:
    """
    Apply ``action`` to a booking in ``current`` status.
    Raises EligibilityError when the transition is not allowed.
    """
    current = BookingStatus(current)
    sources, target = TRANSITIONS[action]

    if action in IDEMPOTENT_ACTIONS and current == target:
        return Transition(previous=current, status=current)

    if current not in sources:
        if action == BookingAction.MARK_SERVED:
            raise EligibilityError("Booking not yet approved", code="invalid_transition")
        if current == BookingStatus.SERVED:
            raise EligibilityError("Served bookings cannot be changed", code="invalid_transition")
        raise EligibilityError(
            f"Cannot {action.value.replace('_', ' ')} a booking that is {current.value}",
            code="invalid_transition",
        )

    return Transition(previous=current, status=target)


def can_cancel(status: Union[BookingStatus, str]) -> bool:
    return BookingStatus(status) == BookingStatus.PENDING


# Edit window and mutability

@dataclass
class EditPermissions:
    days_until: int
    is_free_meal: bool
    can_change_category: bool
    can_change_date: bool
    can_replace_proof: bool
    can_cancel: bool
    messages: List[str] = field(default_factory=list)


def days_until(booking_date: DateLike, today: DateLike) -> int:
    return (as_date(booking_date) - as_date(today)).days


def is_free_meal_booking(booking, available_dates=None) -> bool:
    """A booking is pinned as free if it was created free or its date is configured free"""
    if getattr(booking, "is_free_meal", False):
        return True
    config = index_available_dates(available_dates).get(as_date(booking.booking_date))
    return bool(config is not None and config.is_free_meal)


def edit_permissions(booking, today: DateLike, available_dates=None, window: Optional[int] = None) -> EditPermissions:
    """Per-field verdicts for an existing booking"""
    window = settings.BOOKING_EDIT_WINDOW_DAYS if window is None else window
    status = BookingStatus(booking.status)
    remaining = days_until(booking.booking_date, today)
    free = is_free_meal_booking(booking, available_dates)
    messages = []

    if status == BookingStatus.SERVED:
        return EditPermissions(
            days_until=remaining,
            is_free_meal=free,
            can_change_category=False,
            can_change_date=False,
            can_replace_proof=False,
            can_cancel=False,
            messages=["Served bookings cannot be changed"],
        )

    in_window = remaining >= window
    if not in_window:
        messages.append(f"Date and category can only be changed at least {window} days before the meal date")

    can_change_date = in_window and not free
    if free:
        messages.append("Free meal bookings cannot change date or payment proof")

    can_replace_proof = status != BookingStatus.APPROVED and not free
    if status == BookingStatus.APPROVED and not free:
        messages.append("Payment proof is locked once the booking is approved")

    return EditPermissions(
        days_until=remaining,
        is_free_meal=free,
        can_change_category=in_window,
        can_change_date=can_change_date,
        can_replace_proof=can_replace_proof,
        can_cancel=can_cancel(status),
        messages=messages,
    )


@dataclass
class ResubmissionPlan:
    updates: Dict[str, Any]
    new_date: Optional[date] = None
    replace_proof: bool = False
    transition: Optional[Transition] = None


def plan_resubmission(
    booking,
    today: DateLike,
    available_dates=None,
    new_date: Optional[DateLike] = None,
    new_meal_type: Optional[Union[MealType, str]] = None,
    replace_proof: bool = False,
    window: Optional[int] = None,
) -> ResubmissionPlan:
    """
    Validate an employee's edit and work out the field updates.

    Only fields that actually differ count as changes. Raises before any
    write when the edit is not allowed or changes nothing.
    """
    window = settings.BOOKING_EDIT_WINDOW_DAYS if window is None else window
    status = BookingStatus(booking.status)
    if status == BookingStatus.SERVED:
        raise EligibilityError("Served bookings cannot be changed", code="invalid_transition")

    perms = edit_permissions(booking, today, available_dates, window)
    current_date = as_date(booking.booking_date)
    updates: Dict[str, Any] = {}
    target_date = None

    if new_date is not None and as_date(new_date) != current_date:
        if perms.is_free_meal:
            raise EligibilityError("Free meal bookings cannot change date", code="free_meal_pinned")
        if not perms.can_change_date:
            raise EligibilityError(
                f"Date can only be changed at least {window} days before the current meal date",
                code="edit_window_closed",
            )
        target_date = as_date(new_date)
        ensure_bookable(target_date, today, available_dates, EligibilityMode.EDIT)
        updates["booking_date"] = target_date.isoformat()

    if new_meal_type is not None and MealType(new_meal_type) != MealType(booking.meal_type):
        if not perms.can_change_category:
            raise EligibilityError(
                f"Category can only be changed at least {window} days before the meal date",
                code="edit_window_closed",
            )
        updates["meal_type"] = MealType(new_meal_type)

    if replace_proof:
        if perms.is_free_meal:
            raise EligibilityError("Free meal bookings do not take payment proof", code="free_meal_pinned")
        if status == BookingStatus.APPROVED:
            raise EligibilityError(
                "Payment proof has already been verified and cannot be replaced",
                code="proof_locked",
            )

    if not updates and not replace_proof:
        raise ValidationError(
            "No changes detected. Please modify date, category, or upload a new payment screenshot.",
            code="no_changes",
        )

    step = transition(status, BookingAction.RESUBMIT)
    updates["status"] = step.status
    return ResubmissionPlan(updates=updates, new_date=target_date, replace_proof=replace_proof, transition=step)


# Authorization

@dataclass
class SessionContext:
    """Who is acting, passed explicitly instead of read from ambient state"""
    employee_id: str
    role: EmployeeRole
    name: str = ""
    email: Optional[str] = None

    @classmethod
    def from_employee(cls, employee) -> "SessionContext":
        return cls(
            employee_id=employee.employee_id,
            role=EmployeeRole(employee.role),
            name=employee.name,
            email=employee.email,
        )


class Permission(str, Enum):
    BOOK = "book"
    REVIEW = "review"
    CONFIGURE_DATES = "configure_dates"
    MANAGE_USERS = "manage_users"
    VIEW_SUMMARY = "view_summary"
    VIEW_KITCHEN = "view_kitchen"
    SERVE = "serve"


ROLE_PERMISSIONS = {
    Permission.BOOK: {EmployeeRole.EMPLOYEE, EmployeeRole.ADMIN},
    Permission.REVIEW: {EmployeeRole.ADMIN},
    Permission.CONFIGURE_DATES: {EmployeeRole.ADMIN},
    Permission.MANAGE_USERS: {EmployeeRole.ADMIN},
    Permission.VIEW_SUMMARY: {EmployeeRole.ADMIN},
    Permission.VIEW_KITCHEN: {EmployeeRole.VENDOR, EmployeeRole.ADMIN},
    Permission.SERVE: {EmployeeRole.VENDOR, EmployeeRole.ADMIN},
}


def authorize(ctx: SessionContext, permission: Permission) -> None:
    if ctx.role not in ROLE_PERMISSIONS[permission]:
        raise ForbiddenError("Not authorized")


def ensure_owner(ctx: SessionContext, booking) -> None:
    if booking.employee_id != ctx.employee_id:
        raise ForbiddenError("Cannot modify another employee's booking")

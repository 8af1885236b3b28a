"""
Domain Exceptions
Errors raised by the booking rules and services, mapped to HTTP responses in main.py
"""
from typing import Optional


class BookingError(Exception):
    """Base class for all domain errors"""

    status_code: int = 400
    code: str = "booking_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(BookingError):
    """Bad or missing input (e.g. no date chosen)"""
    status_code = 400
    code = "validation_error"


class EligibilityError(BookingError):
    """Date or edit-window rules rejected the request"""
    status_code = 400
    code = "not_eligible"


class ConflictError(BookingError):
    """Duplicate booking date or concurrent modification"""
    status_code = 409
    code = "conflict"


class NotFoundError(BookingError):
    status_code = 404
    code = "not_found"


class ForbiddenError(BookingError):
    status_code = 403
    code = "forbidden"


class TransientError(BookingError):
    """Network or timeout failure against the store or upload storage"""
    status_code = 503
    code = "temporarily_unavailable"

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, "retry": True}

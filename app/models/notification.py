from beanie import Document
from pydantic import Field
from datetime import datetime
from typing import Optional
from enum import Enum

class NotificationType(str, Enum):
    BOOKING_SUBMITTED = "booking_submitted"
    BOOKING_RESUBMITTED = "booking_resubmitted"
    BOOKING_APPROVED = "booking_approved"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_SERVED = "booking_served"
    GENERAL = "general"

class Notification(Document):
    recipient_id: str
    recipient_email: str
    title: str
    message: str
    type: NotificationType
    is_read: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    link: Optional[str] = None

    class Settings:
        name = "notifications"

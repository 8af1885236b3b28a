"""
Booking Model
Database schema for employee meal bookings
"""
from datetime import date as date_cls, datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from beanie import Document, PydanticObjectId
from pymongo import ASCENDING, IndexModel


class MealType(str, Enum):
    VEG = "veg"
    NON_VEG = "non_veg"


class BookingStatus(str, Enum):
    """Booking lifecycle status"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SERVED = "served"


class Booking(Document):
    """
    One employee's meal reservation for one date.
    (employee_id, booking_date) is unique.
    """
    employee_id: str
    employee_name: str
    employee_email: Optional[str] = None

    booking_date: str  # YYYY-MM-DD
    meal_type: MealType = MealType.VEG
    status: BookingStatus = BookingStatus.PENDING

    receipt_number: str
    payment_proof_url: Optional[str] = None
    is_free_meal: bool = False

    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    served_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "bookings"
        indexes = [
            IndexModel(
                [("employee_id", ASCENDING), ("booking_date", ASCENDING)],
                unique=True,
                name="uniq_employee_booking_date",
            ),
            IndexModel([("receipt_number", ASCENDING)], unique=True, name="uniq_receipt_number"),
            "booking_date",
            "status",
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "employee_id": "john.doe@company.com",
                "employee_name": "John Doe",
                "booking_date": "2024-06-12",
                "meal_type": "veg",
                "status": "pending",
                "receipt_number": "RCP1718000000000123"
            }
        }

    @property
    def calendar_date(self) -> date_cls:
        return date_cls.fromisoformat(self.booking_date)


class BookingChanges(BaseModel):
    """Fields an employee may change when resubmitting"""
    booking_date: Optional[date_cls] = None
    meal_type: Optional[MealType] = None


class BookingResponse(BaseModel):
    id: PydanticObjectId
    employee_id: str
    employee_name: str
    booking_date: str
    meal_type: MealType
    status: BookingStatus
    receipt_number: str
    payment_proof_url: Optional[str] = None
    is_free_meal: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EditOptions(BaseModel):
    """Which fields of a booking the owner may change right now"""
    days_until: int
    can_change_category: bool
    can_change_date: bool
    can_replace_proof: bool
    can_cancel: bool
    is_free_meal: bool
    messages: List[str] = []


class BulkApproveRequest(BaseModel):
    booking_ids: List[str]


class BulkApproveResult(BaseModel):
    approved: List[str]
    skipped: List[str]


class DailySummary(BaseModel):
    date: str
    total: int
    pending: int
    approved: int
    rejected: int
    served: int
    veg: int
    non_veg: int

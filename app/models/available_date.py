"""
Available Date Model
Admin-curated calendar controlling whether and how a date may be booked
"""
from datetime import date as date_cls, datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator
from beanie import Document, PydanticObjectId
from pymongo import ASCENDING, IndexModel


class AvailableDate(Document):
    """
    One calendar date's booking configuration.
    A free-meal day needs no payment proof and is always available.
    """
    date: str  # YYYY-MM-DD
    is_available: bool = True
    is_free_meal: bool = False
    reason: Optional[str] = None  # holiday, anniversary, ...

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    updated_by: Optional[str] = None

    class Settings:
        name = "available_dates"
        indexes = [
            IndexModel([("date", ASCENDING)], unique=True, name="uniq_available_date"),
        ]

    @property
    def calendar_date(self) -> date_cls:
        return date_cls.fromisoformat(self.date)


class AvailableDateCreate(BaseModel):
    """Schema for adding or editing a date configuration"""
    date: date_cls
    is_available: bool = True
    is_free_meal: bool = False
    reason: Optional[str] = None

    @model_validator(mode="after")
    def free_meal_requires_available(self):
        if self.is_free_meal and not self.is_available:
            raise ValueError("A free-meal day must also be available for booking")
        if self.reason is not None:
            self.reason = self.reason.strip() or None
        return self


class AvailableDateResponse(BaseModel):
    id: PydanticObjectId
    date: str
    is_available: bool
    is_free_meal: bool
    reason: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True

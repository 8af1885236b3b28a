"""
Employee Model
Database schema for employee profiles and roles
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator
from beanie import Document, PydanticObjectId


class EmployeeRole(str, Enum):
    """Capability tag used for authorization gating"""
    EMPLOYEE = "employee"
    ADMIN = "admin"
    VENDOR = "vendor"


class Employee(Document):
    """Employee document model"""

    employee_id: str = Field(..., unique=True, index=True)
    name: str
    email: EmailStr = Field(..., unique=True, index=True)
    department: Optional[str] = None
    role: EmployeeRole = EmployeeRole.EMPLOYEE

    # Authentication
    password_hash: str
    is_active: bool = True

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    last_login: Optional[datetime] = None

    class Settings:
        name = "employees"
        indexes = [
            "employee_id",
            "email",
            "role",
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "employee_id": "john.doe@company.com",
                "name": "John Doe",
                "email": "john.doe@company.com",
                "department": "Engineering",
                "role": "employee"
            }
        }


class EmployeeCreate(BaseModel):
    """Schema for self sign-up"""
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    employee_id: Optional[str] = None  # defaults to the email address
    department: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v.strip()


class EmployeeResponse(BaseModel):
    """Schema for employee response (without sensitive data)"""
    id: PydanticObjectId
    employee_id: str
    name: str
    email: EmailStr
    department: Optional[str] = None
    role: EmployeeRole
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RoleUpdate(BaseModel):
    role: EmployeeRole

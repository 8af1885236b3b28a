from datetime import date

import pytest
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from app.config import settings
from app.models.available_date import AvailableDate
from app.models.booking import Booking, BookingStatus, MealType
from app.models.employee import Employee, EmployeeRole
from app.models.notification import Notification
from app.services import booking_rules
from app.services.booking_rules import SessionContext
from app.services.bookings import ProofUpload
from app.services.storage import PaymentProofStorage

# Monday
TODAY = date(2024, 6, 10)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    await init_beanie(
        database=client.get_database("meal_booking_test"),
        document_models=[Employee, AvailableDate, Booking, Notification],
    )
    return client


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    return tmp_path / "uploads"


@pytest.fixture
def fixed_today(monkeypatch):
    monkeypatch.setattr(booking_rules, "local_today", lambda: TODAY)
    return TODAY


@pytest.fixture
def storage(upload_dir):
    return PaymentProofStorage(upload_dir=str(upload_dir), base_url="http://testserver")


@pytest.fixture
def proof():
    return ProofUpload(content=PNG_BYTES, filename="payment.png", content_type="image/png")


@pytest.fixture
def employee_ctx():
    return SessionContext(
        employee_id="john.doe@company.com",
        role=EmployeeRole.EMPLOYEE,
        name="John Doe",
        email="john.doe@company.com",
    )


@pytest.fixture
def other_ctx():
    return SessionContext(
        employee_id="jane.roe@company.com",
        role=EmployeeRole.EMPLOYEE,
        name="Jane Roe",
        email="jane.roe@company.com",
    )


@pytest.fixture
def admin_ctx():
    return SessionContext(
        employee_id="admin@company.com",
        role=EmployeeRole.ADMIN,
        name="System Admin",
        email="admin@company.com",
    )


@pytest.fixture
def vendor_ctx():
    return SessionContext(
        employee_id="kitchen@company.com",
        role=EmployeeRole.VENDOR,
        name="Kitchen",
        email="kitchen@company.com",
    )


async def add_date(day: str, is_available: bool = True, is_free_meal: bool = False, reason: str = None):
    config = AvailableDate(date=day, is_available=is_available, is_free_meal=is_free_meal, reason=reason)
    await config.insert()
    return config


async def add_booking(employee_id: str, day: str, status: BookingStatus = BookingStatus.PENDING,
                      meal_type: MealType = MealType.VEG, is_free_meal: bool = False,
                      receipt_number: str = None):
    booking = Booking(
        employee_id=employee_id,
        employee_name=employee_id.split("@")[0],
        employee_email=employee_id,
        booking_date=day,
        meal_type=meal_type,
        status=status,
        receipt_number=receipt_number or f"RCP-{employee_id}-{day}",
        is_free_meal=is_free_meal,
    )
    await booking.insert()
    return booking

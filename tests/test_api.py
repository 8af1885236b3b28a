import pytest
from httpx import ASGITransport, AsyncClient
from pymongo.errors import ServerSelectionTimeoutError

from app.api.routes.auth import get_current_employee
from app.models.booking import Booking, BookingStatus
from app.models.employee import Employee, EmployeeRole
from main import app

from conftest import PNG_BYTES, add_booking, add_date

pytestmark = pytest.mark.usefixtures("db", "fixed_today")


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """Authenticate the following requests as the employee with ``email``, creating it if needed"""
    async def _login(role=EmployeeRole.EMPLOYEE, email=None):
        email = email or f"{role.value}@company.com"
        employee = await Employee.find_one(Employee.email == email)
        if employee is None:
            employee = Employee(
                employee_id=email,
                name=email.split("@")[0].title(),
                email=email,
                role=role,
                password_hash="not-used",
            )
            await employee.insert()
        app.dependency_overrides[get_current_employee] = lambda: employee
        return employee
    return _login


def proof_file():
    return {"payment_proof": ("payment.png", PNG_BYTES, "image/png")}


class TestBookingFlow:
    async def test_book_approve_and_serve(self, client, login_as):
        await add_date("2024-06-12")

        await login_as(EmployeeRole.EMPLOYEE)
        resp = await client.post(
            "/api/bookings/", data={"booking_date": "2024-06-12", "meal_type": "veg"}, files=proof_file()
        )
        assert resp.status_code == 201
        booking = resp.json()
        assert booking["status"] == "pending"
        assert booking["receipt_number"].startswith("RCP")

        await login_as(EmployeeRole.ADMIN)
        pending = await client.get("/api/approvals/pending", params={"date": "2024-06-12"})
        assert [b["id"] for b in pending.json()] == [booking["id"]]

        for _ in range(2):
            resp = await client.post(f"/api/approvals/{booking['id']}/approve")
            assert resp.status_code == 200
            assert resp.json()["status"] == "approved"

        await login_as(EmployeeRole.VENDOR)
        resp = await client.post(f"/api/vendor/bookings/{booking['id']}/serve")
        assert resp.json()["status"] == "served"

        await login_as(EmployeeRole.EMPLOYEE)
        resp = await client.put(f"/api/bookings/{booking['id']}", data={"meal_type": "non_veg"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_transition"

    async def test_free_meal_needs_no_proof(self, client, login_as):
        await add_date("2024-06-12", is_free_meal=True, reason="Anniversary")
        await login_as()

        eligibility = await client.get("/api/bookings/eligibility", params={"date": "2024-06-12"})
        assert eligibility.json()["is_free_meal"] is True
        assert eligibility.json()["note"] == "Anniversary"

        resp = await client.post("/api/bookings/", data={"booking_date": "2024-06-12", "meal_type": "non_veg"})
        assert resp.status_code == 201
        assert resp.json()["status"] == "approved"
        assert resp.json()["receipt_number"].startswith("FREE")
        assert resp.json()["payment_proof_url"] is None

    async def test_weekend_rejected(self, client, login_as):
        await add_date("2024-06-15")
        await login_as()
        resp = await client.post(
            "/api/bookings/", data={"booking_date": "2024-06-15", "meal_type": "veg"}, files=proof_file()
        )
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Booking not available on weekends", "code": "weekend"}

    async def test_duplicate_booking_is_conflict(self, client, login_as):
        await add_date("2024-06-12")
        await login_as()
        data = {"booking_date": "2024-06-12", "meal_type": "veg"}
        assert (await client.post("/api/bookings/", data=data, files=proof_file())).status_code == 201
        resp = await client.post("/api/bookings/", data=data, files=proof_file())
        assert resp.status_code == 409
        assert resp.json()["detail"] == "You already have a booking for this date"

    async def test_edit_options_and_no_change_edit(self, client, login_as):
        employee = await login_as()
        booking = await add_booking(employee.employee_id, "2024-06-11")

        options = (await client.get(f"/api/bookings/{booking.id}/edit-options")).json()
        assert options["days_until"] == 1
        assert options["can_change_category"] is False
        assert options["can_replace_proof"] is True

        resp = await client.put(f"/api/bookings/{booking.id}", data={"meal_type": "veg"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "no_changes"

    async def test_my_bookings_and_cancel(self, client, login_as):
        employee = await login_as()
        booking = await add_booking(employee.employee_id, "2024-06-12")
        await add_booking("someone.else@company.com", "2024-06-12")

        mine = (await client.get("/api/bookings/my")).json()
        assert [b["id"] for b in mine] == [str(booking.id)]

        assert (await client.delete(f"/api/bookings/{booking.id}")).status_code == 200
        assert await Booking.get(booking.id) is None

    async def test_cannot_view_someone_elses_booking(self, client, login_as):
        other = await add_booking("someone.else@company.com", "2024-06-12")
        await login_as()
        resp = await client.get(f"/api/bookings/{other.id}")
        assert resp.status_code == 403

    async def test_unknown_booking(self, client, login_as):
        await login_as()
        assert (await client.get("/api/bookings/not-an-id")).status_code == 404


class TestAdmin:
    async def test_employee_cannot_approve(self, client, login_as):
        booking = await add_booking("someone@company.com", "2024-06-12")
        await login_as()
        resp = await client.post(f"/api/approvals/{booking.id}/approve")
        assert resp.status_code == 403

    async def test_bulk_approve(self, client, login_as):
        first = await add_booking("a@company.com", "2024-06-12")
        second = await add_booking("b@company.com", "2024-06-12", status=BookingStatus.REJECTED)
        await login_as(EmployeeRole.ADMIN)

        resp = await client.post("/api/approvals/bulk-approve", json={"booking_ids": [str(first.id), str(second.id)]})
        assert resp.json() == {"approved": [str(first.id)], "skipped": [str(second.id)]}

    async def test_configure_dates(self, client, login_as):
        await login_as(EmployeeRole.ADMIN)

        resp = await client.post("/api/dates/", json={"date": "2024-06-12", "is_free_meal": True, "reason": " Diwali "})
        assert resp.status_code == 201
        assert resp.json()["reason"] == "Diwali"

        dup = await client.post("/api/dates/", json={"date": "2024-06-12"})
        assert dup.status_code == 409

        past = await client.post("/api/dates/", json={"date": "2024-06-07"})
        assert past.status_code == 400
        assert past.json()["code"] == "past_date"

        listed = await client.get("/api/dates/", params={"start_date": "2024-06-01", "end_date": "2024-06-30"})
        assert [d["date"] for d in listed.json()] == ["2024-06-12"]

    async def test_free_meal_must_be_available(self, client, login_as):
        await login_as(EmployeeRole.ADMIN)
        resp = await client.post("/api/dates/", json={"date": "2024-06-12", "is_available": False, "is_free_meal": True})
        assert resp.status_code == 422

    async def test_bulk_weekdays_skips_existing(self, client, login_as):
        await add_date("2024-06-11", is_available=False)
        await login_as(EmployeeRole.ADMIN)
        resp = await client.post("/api/dates/bulk-weekdays", json={"days": 7})
        assert resp.json()["added"] == ["2024-06-12", "2024-06-13", "2024-06-14", "2024-06-17"]

    async def test_role_change(self, client, login_as):
        target = await login_as(EmployeeRole.EMPLOYEE, email="cook@company.com")
        admin = await login_as(EmployeeRole.ADMIN)

        resp = await client.put(f"/api/users/{target.employee_id}/role", json={"role": "vendor"})
        assert resp.status_code == 200
        assert resp.json()["role"] == "vendor"

        vendors = (await client.get("/api/users/", params={"role": "vendor"})).json()
        assert [u["email"] for u in vendors] == ["cook@company.com"]

        resp = await client.put(f"/api/users/{admin.employee_id}/role", json={"role": "employee"})
        assert resp.status_code == 400

    async def test_daily_summary(self, client, login_as):
        await add_booking("a@company.com", "2024-06-12", status=BookingStatus.APPROVED)
        await add_booking("b@company.com", "2024-06-12")
        await login_as(EmployeeRole.ADMIN)

        summary = (await client.get("/api/summary/daily", params={"date": "2024-06-12"})).json()
        assert summary["total"] == 2
        assert summary["approved"] == 1
        assert summary["pending"] == 1


class TestVendor:
    async def test_export_csv(self, client, login_as):
        await add_booking("a@company.com", "2024-06-11", status=BookingStatus.APPROVED, receipt_number="RCP1")
        await add_booking("b@company.com", "2024-06-11")
        await login_as(EmployeeRole.VENDOR)

        resp = await client.get("/api/vendor/bookings/export")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "meal-bookings-2024-06-11.csv" in resp.headers["content-disposition"]
        lines = resp.text.strip().splitlines()
        assert len(lines) == 2
        assert lines[1].startswith("RCP1,")

    async def test_print_sheet(self, client, login_as):
        await add_booking("a@company.com", "2024-06-12", status=BookingStatus.APPROVED)
        await login_as(EmployeeRole.VENDOR)
        resp = await client.get("/api/vendor/bookings/print", params={"date": "2024-06-12"})
        assert resp.headers["content-type"].startswith("text/html")
        assert "Vegetarian (1)" in resp.text

    async def test_today_includes_served(self, client, login_as):
        await add_booking("a@company.com", "2024-06-10", status=BookingStatus.APPROVED)
        await add_booking("b@company.com", "2024-06-10", status=BookingStatus.SERVED)
        await add_booking("c@company.com", "2024-06-10")
        await login_as(EmployeeRole.VENDOR)

        body = (await client.get("/api/vendor/today")).json()
        assert body["summary"]["total"] == 2
        assert body["served"] == 1

    async def test_employee_cannot_see_kitchen_list(self, client, login_as):
        await login_as()
        assert (await client.get("/api/vendor/bookings")).status_code == 403


async def test_notifications_for_admin(client, login_as):
    await add_date("2024-06-12")
    admin = await login_as(EmployeeRole.ADMIN)
    await login_as()
    await client.post("/api/bookings/", data={"booking_date": "2024-06-12", "meal_type": "veg"}, files=proof_file())

    app.dependency_overrides[get_current_employee] = lambda: admin
    notes = (await client.get("/api/notifications/", params={"unread_only": True})).json()
    assert len(notes) == 1
    assert notes[0]["title"] == "Meal Booking Submitted"

    await client.put("/api/notifications/read-all")
    assert (await client.get("/api/notifications/", params={"unread_only": True})).json() == []


async def test_database_outage_returns_retryable_error(client):
    def unavailable():
        raise ServerSelectionTimeoutError("no servers")

    app.dependency_overrides[get_current_employee] = unavailable
    resp = await client.get("/api/bookings/my")
    assert resp.status_code == 503
    assert resp.json()["retry"] is True

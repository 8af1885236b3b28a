import pytest
from httpx import ASGITransport, AsyncClient

from app.models.employee import Employee
from main import app

pytestmark = pytest.mark.usefixtures("db")


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


async def register(client, email="asha@company.com", password="secret123"):
    return await client.post("/api/auth/register", json={"name": "Asha", "email": email, "password": password})


async def test_register_then_me(client):
    resp = await register(client)
    assert resp.status_code == 200
    token = resp.json()["access_token"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["employee_id"] == "asha@company.com"
    assert me.json()["role"] == "employee"


async def test_duplicate_email(client):
    await register(client)
    resp = await register(client)
    assert resp.status_code == 409
    assert resp.json()["code"] == "account_exists"


async def test_login(client):
    await register(client)
    ok = await client.post("/api/auth/login", data={"username": "asha@company.com", "password": "secret123"})
    assert ok.status_code == 200
    assert ok.json()["token_type"] == "bearer"

    bad = await client.post("/api/auth/login", data={"username": "asha@company.com", "password": "wrong"})
    assert bad.status_code == 401


async def test_inactive_account_rejected(client):
    token = (await register(client)).json()["access_token"]
    employee = await Employee.find_one(Employee.email == "asha@company.com")
    employee.is_active = False
    await employee.save()

    resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_change_password(client):
    token = (await register(client)).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    wrong = await client.post("/api/auth/change-password", json={"old_password": "nope", "new_password": "x12345"}, headers=headers)
    assert wrong.status_code == 400

    ok = await client.post("/api/auth/change-password", json={"old_password": "secret123", "new_password": "newpass1"}, headers=headers)
    assert ok.status_code == 200
    login = await client.post("/api/auth/login", data={"username": "asha@company.com", "password": "newpass1"})
    assert login.status_code == 200

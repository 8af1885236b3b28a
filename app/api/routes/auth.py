"""
Authentication Routes
Sign-up, login and the current-user dependencies every other router uses
"""
import logging
from datetime import datetime
from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, Field

from app.core.exceptions import ConflictError, ForbiddenError, ValidationError
from app.core.security import hash_password, issue_token, read_token_subject, verify_password
from app.models.employee import Employee, EmployeeCreate, EmployeeResponse, EmployeeRole
from app.services.booking_rules import SessionContext


router = APIRouter()
logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


class Token(BaseModel):
    access_token: str
    token_type: str
    expires_in: int


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=6)


async def get_current_employee(token: str = Depends(oauth2_scheme)) -> Employee:
    """Employee behind the bearer token; 401 if the token is bad or the account is disabled"""
    employee_id = read_token_subject(token)
    employee = None
    if employee_id is not None:
        employee = await Employee.find_one(Employee.employee_id == employee_id)

    if employee is None or not employee.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return employee


async def get_session_context(current_employee: Employee = Depends(get_current_employee)) -> SessionContext:
    """Identity and role of the caller, handed to the booking rules explicitly"""
    return SessionContext.from_employee(current_employee)


@router.post("/register", response_model=Token)
async def register(request: EmployeeCreate):
    """
    Sign up as an employee. The employee ID defaults to the email address.
    Roles other than employee are granted by an admin.
    """
    employee_id = request.employee_id or request.email
    if await Employee.find_one({"$or": [{"email": request.email}, {"employee_id": employee_id}]}):
        raise ConflictError("An account with this email already exists", code="account_exists")

    employee = Employee(
        employee_id=employee_id,
        name=request.name,
        email=request.email,
        department=request.department,
        role=EmployeeRole.EMPLOYEE,
        password_hash=hash_password(request.password),
    )
    await employee.insert()
    logger.info("Registered employee %s", employee.employee_id)

    return issue_token(employee.employee_id, employee.role.value)


@router.post("/login", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends()):
    """
    Login with email (sent as ``username``) and password
    """
    employee = await Employee.find_one(Employee.email == form_data.username)

    if not employee or not verify_password(form_data.password, employee.password_hash):
        logger.warning("Failed login for %s", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not employee.is_active:
        raise ForbiddenError("Account is inactive", code="account_inactive")

    employee.last_login = datetime.utcnow()
    await employee.save()

    return issue_token(employee.employee_id, employee.role.value)


@router.get("/me", response_model=EmployeeResponse)
async def get_current_user(current_employee: Employee = Depends(get_current_employee)):
    return EmployeeResponse.model_validate(current_employee)


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_employee: Employee = Depends(get_current_employee)
):
    if not verify_password(request.old_password, current_employee.password_hash):
        raise ValidationError("Incorrect old password", code="wrong_password")

    current_employee.password_hash = hash_password(request.new_password)
    current_employee.updated_at = datetime.utcnow()
    await current_employee.save()
    logger.info("Password changed for %s", current_employee.employee_id)

    return {"message": "Password changed successfully"}

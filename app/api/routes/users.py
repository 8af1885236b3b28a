"""
User Management Routes
Admin listing of accounts and role changes
"""
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends

from app.core.exceptions import NotFoundError, ValidationError
from app.models.employee import Employee, EmployeeResponse, EmployeeRole, RoleUpdate
from app.api.routes.auth import get_session_context
from app.services import booking_rules as rules
from app.services.booking_rules import Permission, SessionContext

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=List[EmployeeResponse])
async def list_users(
    role: Optional[EmployeeRole] = None,
    ctx: SessionContext = Depends(get_session_context)
):
    """All accounts, optionally filtered by role"""
    rules.authorize(ctx, Permission.MANAGE_USERS)
    query = {"role": role.value} if role else {}
    employees = await Employee.find(query).sort("name").to_list()
    return [EmployeeResponse.model_validate(e) for e in employees]


@router.put("/{employee_id}/role", response_model=EmployeeResponse)
async def update_user_role(
    employee_id: str,
    request: RoleUpdate,
    ctx: SessionContext = Depends(get_session_context)
):
    """Change a user's role (employee, admin, vendor)"""
    rules.authorize(ctx, Permission.MANAGE_USERS)
    if employee_id == ctx.employee_id and request.role != EmployeeRole.ADMIN:
        raise ValidationError("You cannot remove your own admin role")

    employee = await Employee.find_one(Employee.employee_id == employee_id)
    if not employee:
        raise NotFoundError("Employee not found")

    previous = employee.role
    employee.role = request.role
    employee.updated_at = datetime.utcnow()
    await employee.save()

    logger.info("Role of %s changed %s -> %s by %s", employee_id, previous.value, request.role.value, ctx.employee_id)
    return EmployeeResponse.model_validate(employee)

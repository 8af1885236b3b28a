"""
Notification Routes
User-specific alerts and read-tracking
"""
from fastapi import APIRouter, Depends
from typing import List

from app.core.exceptions import NotFoundError
from app.models.notification import Notification
from app.api.routes.auth import get_session_context
from app.services.booking_rules import SessionContext

router = APIRouter()

@router.get("/", response_model=List[Notification])
async def get_my_notifications(
    ctx: SessionContext = Depends(get_session_context),
    unread_only: bool = False
):
    """Get notifications for current user"""
    query = {"recipient_id": ctx.employee_id}
    if unread_only:
        query["is_read"] = False

    return await Notification.find(query).sort("-created_at").limit(20).to_list()

@router.put("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    ctx: SessionContext = Depends(get_session_context)
):
    """Mark a notification as read"""
    notif = await Notification.get(notification_id)
    if not notif or notif.recipient_id != ctx.employee_id:
        raise NotFoundError("Notification not found")

    notif.is_read = True
    await notif.save()
    return {"message": "Notification marked as read"}

@router.put("/read-all")
async def mark_all_as_read(
    ctx: SessionContext = Depends(get_session_context)
):
    """Mark all notifications as read"""
    await Notification.find(
        Notification.recipient_id == ctx.employee_id,
        Notification.is_read == False
    ).update({"$set": {"is_read": True}})

    return {"message": "All notifications marked as read"}

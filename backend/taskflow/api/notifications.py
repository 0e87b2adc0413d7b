"""Notification API endpoints"""
from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, Optional
from taskflow.api.deps import get_current_user, get_notification_service
from taskflow.errors import AppError
from taskflow.models.common import Pagination, paginated
from taskflow.services.notification import NotificationService

router = APIRouter()


@router.get("")
async def get_notifications(
    is_read: Optional[bool] = Query(None, description="Filter by read state"),
    notification_type: Optional[str] = Query(None, alias="type", max_length=30),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: Dict[str, Any] = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Get notifications for the authenticated user"""
    notifications, total = notification_service.get_notifications_for_user(
        user_id=user["_id"],
        is_read=is_read,
        notification_type=notification_type,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return paginated(
        notifications,
        Pagination.build(page, limit, total),
        unread_count=notification_service.unread_count(user["_id"]),
    )


@router.get("/unread-count")
async def get_unread_count(
    user: Dict[str, Any] = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Number of unread notifications"""
    return {"success": True, "data": {"count": notification_service.unread_count(user["_id"])}}


@router.put("/mark-all-read")
async def mark_all_read(
    user: Dict[str, Any] = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Mark every unread notification as read"""
    modified = notification_service.mark_all_as_read(user["_id"])
    return {
        "success": True,
        "message": "All notifications marked as read",
        "data": {"modified_count": modified},
    }


@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Mark a notification as read"""
    notification = notification_service.mark_as_read(notification_id, user["_id"])
    if not notification:
        raise AppError.not_found("Notification not found")
    return {"success": True, "message": "Notification marked as read", "data": notification}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Delete a notification"""
    if not notification_service.delete_notification(notification_id, user["_id"]):
        raise AppError.not_found("Notification not found")
    return {"success": True, "message": "Notification deleted"}

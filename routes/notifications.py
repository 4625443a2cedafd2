"""
In-app notification endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from db import get_db
from models import Notification, User
from schemas.api_models import MarkedReadResponse, NotificationResponse, UnreadCountResponse
from utils.auth_dependencies import get_current_user, get_notifier
from utils.error_handling import get_or_404, PermissionDeniedError
from utils.notifications import NotificationDispatcher

router = APIRouter()


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    return notifier.list_for_user(current_user.id, unread_only=unread_only, limit=limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    return {"unread_count": notifier.unread_count(current_user.id)}


@router.post("/read-all", response_model=MarkedReadResponse)
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    return {"success": True, "updated": notifier.mark_all_as_read(current_user.id)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
    db: Session = Depends(get_db),
):
    notification = get_or_404(db, Notification, notification_id, "Notification")
    if notification.user_id != current_user.id:
        raise PermissionDeniedError("Not your notification", extra={"notification_id": notification_id})
    return notifier.mark_as_read(notification)

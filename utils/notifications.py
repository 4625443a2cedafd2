"""
In-app notification dispatch
Push delivery of these rows to devices happens outside this service.
"""

from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from models import Notification, NotificationType
from utils.structured_logging import get_logger, LogCategory

logger = get_logger("notifications")


class NotificationDispatcher:
    """Writes notification rows; callers treat failures as non-fatal"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: int,
        title: str,
        body: str,
        type: Union[NotificationType, str],
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title=title,
            body=body,
            type=NotificationType(type),
            data=data or {},
        )
        self.db.add(notification)
        self.db.commit()
        logger.info(
            f"Notification '{notification.type.value}' sent",
            category=LogCategory.NOTIFICATION,
            user_id=user_id,
            extra={"notification_id": notification.id},
        )
        return notification

    def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def unread_count(self, user_id: int) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .count()
        )

    def mark_as_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        self.db.commit()
        return notification

    def mark_all_as_read(self, user_id: int) -> int:
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated

# services/notification_service.py

from sqlalchemy.orm import Session
import logging

from dao.notification_dao import NotificationDAO
from models.notification import Notification
from schemas.notification import NotificationResponse, NotificationListResponse
from utils.errors import NotFound, Forbidden

logger = logging.getLogger(__name__)

class NotificationService:
    """Read side of the notification store: listing and read state"""

    def __init__(self, db: Session):
        self.db = db
        self.notification_dao = NotificationDAO(db)

    # ===== QUERY METHODS =====

    def get_notifications(
        self,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50
    ) -> NotificationListResponse:
        """
        Notifications of a user, newest first

        Returns NotificationListResponse with:
        - notifications: List[NotificationResponse]
        - total: all notifications of the user
        - unread_count: int
        """
        notifications = self.notification_dao.get_by_recipient(user_id, unread_only, limit)

        return NotificationListResponse(
            notifications=[self._convert_to_response(n) for n in notifications],
            total=self.notification_dao.count_for_recipient(user_id),
            unread_count=self.notification_dao.get_unread_count(user_id)
        )

    def list_notifications(self, user_id: int, limit: int = 50) -> list:
        return self.get_notifications(user_id, limit=limit).notifications

    def get_unread_count(self, user_id: int) -> int:
        return self.notification_dao.get_unread_count(user_id)

    # ===== UPDATE METHODS =====

    def mark_as_read(self, notification_id: int, user_id: int) -> NotificationResponse:
        """Only the recipient may mark a notification as read"""
        notification = self.notification_dao.get_by_id(notification_id)

        if not notification:
            raise NotFound(f"Notification {notification_id} not found")

        if notification.recipient_id != user_id:
            raise Forbidden("You don't have permission to mark this notification as read")

        return self._convert_to_response(self.notification_dao.mark_as_read(notification))

    def mark_all_as_read(self, user_id: int) -> int:
        count = self.notification_dao.mark_all_as_read(user_id)
        logger.info(f"✅ Marked {count} notifications as read for user {user_id}")
        return count

    # ===== PRIVATE HELPER =====

    def _convert_to_response(self, notification: Notification) -> NotificationResponse:
        return NotificationResponse.model_validate(notification)

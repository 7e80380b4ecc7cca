# dao/notification_dao.py

from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import and_, desc
from datetime import datetime, timezone
import logging

from models.notification import Notification
from utils.errors import Conflict

logger = logging.getLogger(__name__)

class NotificationDAO:
    """DAO for Notification operations"""

    def __init__(self, db: Session):
        self.db = db

    # ===== CREATE =====
    def create(self, notification: Notification) -> Notification:
        """
        Insert one notification row.
        Raises Conflict when the recipient already has a row for the same event.
        """
        try:
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
            logger.info(f"✅ Created Notification ID: {notification.id} for user {notification.recipient_id}")
            return notification
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict(
                f"Notification {notification.kind}/{notification.event_key} already exists for user {notification.recipient_id}"
            ) from e
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error creating Notification: {e}")
            raise

    # ===== READ =====
    def get_by_id(self, notification_id: int) -> Optional[Notification]:
        return self.db.query(Notification)\
            .filter(Notification.id == notification_id)\
            .first()

    def get_by_event(self, recipient_id: int, kind: str, event_key: str) -> Optional[Notification]:
        return self.db.query(Notification)\
            .filter(
                and_(
                    Notification.recipient_id == recipient_id,
                    Notification.kind == kind,
                    Notification.event_key == event_key
                )
            )\
            .first()

    def get_by_recipient(
        self,
        recipient_id: int,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        """Newest first"""
        query = self.db.query(Notification)\
            .filter(Notification.recipient_id == recipient_id)

        if unread_only:
            query = query.filter(Notification.is_read == False)

        return query.order_by(desc(Notification.created_at), desc(Notification.id)).limit(limit).all()

    def count_for_recipient(self, recipient_id: int) -> int:
        return self.db.query(Notification)\
            .filter(Notification.recipient_id == recipient_id)\
            .count()

    # ===== UPDATE =====
    def mark_as_read(self, notification: Notification) -> Notification:
        try:
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = datetime.now(timezone.utc)
                self.db.commit()
                self.db.refresh(notification)
                logger.info(f"✅ Marked notification {notification.id} as read")
            return notification
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error marking notification {notification.id} as read: {e}")
            raise

    def mark_all_as_read(self, recipient_id: int) -> int:
        try:
            updated_count = self.db.query(Notification).filter(
                and_(
                    Notification.recipient_id == recipient_id,
                    Notification.is_read == False
                )
            ).update({
                "is_read": True,
                "read_at": datetime.now(timezone.utc)
            }, synchronize_session=False)

            self.db.commit()
            return updated_count
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error marking all notifications as read for user {recipient_id}: {e}")
            raise

    # ===== UTILITY =====
    def get_unread_count(self, recipient_id: int) -> int:
        return self.db.query(Notification).filter(
            and_(
                Notification.recipient_id == recipient_id,
                Notification.is_read == False
            )
        ).count()

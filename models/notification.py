# models/notification.py

from enum import Enum

from sqlalchemy import Column, Integer, String, Boolean, Text, ForeignKey, DateTime, JSON, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from config.config_database import Base
from models.user import User  # noqa: F401  (mapper registration)


class NotificationKind(str, Enum):
    ANSWER_CREATED = "ANSWER_CREATED"
    QUESTION_APPROVED = "QUESTION_APPROVED"
    QUESTION_REJECTED = "QUESTION_REJECTED"
    MESSAGE_CREATED = "MESSAGE_CREATED"
    VOTE_CAST = "VOTE_CAST"


class Notification(Base):
    """One row per (recipient, event). Only is_read/read_at change after creation."""
    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("recipient_id", "kind", "event_key", name="uq_notifications_recipient_event"),
        Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(50), nullable=False)
    event_key = Column(String(100), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    deep_link = Column(String(500), nullable=False)
    related_refs = Column(JSON, nullable=False, default=dict)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    recipient = relationship("User", foreign_keys=[recipient_id])

# schemas/notification.py

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime


class NotificationResponse(BaseModel):
    id: int
    recipient_id: int
    kind: str
    title: str
    body: Optional[str]
    deep_link: str
    related_refs: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime]

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    unread_count: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkAllReadResponse(BaseModel):
    message: str
    marked_count: int


class FanoutReport(BaseModel):
    """Outcome of one publish() call, for logs and tests. Callers may ignore it."""
    kind: str
    recipients: List[int] = Field(default_factory=list)
    persisted: List[int] = Field(default_factory=list)
    skipped_duplicates: List[int] = Field(default_factory=list)
    persistence_failures: List[int] = Field(default_factory=list)
    push_attempted: int = 0
    push_failed: int = 0

    @property
    def degraded(self) -> bool:
        return bool(self.persistence_failures)

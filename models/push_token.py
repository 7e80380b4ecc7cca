from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from config.config_database import Base
from models.user import User  # noqa: F401  (mapper registration)


class PushToken(Base):
    """Device registration for push delivery. A token belongs to exactly one owner at a time."""
    __tablename__ = "push_tokens"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    token = Column(String(512), nullable=False, unique=True, index=True)
    owner_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_agent = Column(String(512), nullable=True)
    registered_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("User", foreign_keys=[owner_user_id])

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None

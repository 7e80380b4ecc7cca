from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from config.config_database import Base


class QuestionView(Base):
    """Existence of a row means the user's view was already counted."""
    __tablename__ = "question_views"
    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_question_views_user_question"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

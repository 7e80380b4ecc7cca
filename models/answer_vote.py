from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from config.config_database import Base


class AnswerVote(Base):
    """Current existence of a row is the source of truth for 'user has voted'."""
    __tablename__ = "answer_votes"
    __table_args__ = (
        UniqueConstraint("user_id", "answer_id", name="uq_answer_votes_user_answer"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    answer_id = Column(Integer, ForeignKey("answers.id", ondelete="CASCADE"), nullable=False, index=True)
    vote_type = Column(String(20), nullable=False, default="UPVOTE")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

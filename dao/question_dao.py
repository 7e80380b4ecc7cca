from sqlalchemy.orm import Session
from typing import Optional

from models.question import Question
from models.answer import Answer
from models.user import User, STAFF_ROLES


class QuestionDAO:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, question_id: int) -> Optional[Question]:
        return self.db.query(Question).filter(Question.id == question_id).first()

    def create(self, question: Question) -> Question:
        try:
            self.db.add(question)
            self.db.commit()
            self.db.refresh(question)
            return question
        except Exception as e:
            self.db.rollback()
            raise e

    def update(self, question: Question) -> Question:
        try:
            self.db.commit()
            self.db.refresh(question)
            return question
        except Exception as e:
            self.db.rollback()
            raise e

    def increment_views(self, question_id: int) -> int:
        """Atomic +1 in SQL. Caller owns the transaction."""
        return self.db.query(Question)\
            .filter(Question.id == question_id)\
            .update({Question.views_count: Question.views_count + 1}, synchronize_session=False)

    def get_views_count(self, question_id: int) -> int:
        value = self.db.query(Question.views_count).filter(Question.id == question_id).scalar()
        return value or 0

    def get_first_staff_answerer_id(self, question_id: int) -> Optional[int]:
        """Author of the earliest answer written by an advisor or admin."""
        row = self.db.query(Answer.author_id)\
            .join(User, User.id == Answer.author_id)\
            .filter(Answer.question_id == question_id, User.role.in_(STAFF_ROLES))\
            .order_by(Answer.created_at.asc(), Answer.id.asc())\
            .first()
        return row.author_id if row else None

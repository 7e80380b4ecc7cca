from sqlalchemy.orm import Session, joinedload
from typing import List

from models.question_message import QuestionMessage


class MessageDAO:

    def __init__(self, db: Session):
        self.db = db

    def create(self, message: QuestionMessage) -> QuestionMessage:
        try:
            self.db.add(message)
            self.db.commit()
            self.db.refresh(message)
            return message
        except Exception as e:
            self.db.rollback()
            raise e

    def get_for_question(self, question_id: int, skip: int = 0, limit: int = 20) -> List[QuestionMessage]:
        return self.db.query(QuestionMessage)\
            .options(joinedload(QuestionMessage.sender))\
            .filter(QuestionMessage.question_id == question_id)\
            .order_by(QuestionMessage.created_at.asc(), QuestionMessage.id.asc())\
            .offset(skip)\
            .limit(limit)\
            .all()

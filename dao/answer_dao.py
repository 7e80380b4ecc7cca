from sqlalchemy.orm import Session, joinedload
from typing import Optional

from models.answer import Answer


class AnswerDAO:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, answer_id: int) -> Optional[Answer]:
        return self.db.query(Answer)\
            .options(joinedload(Answer.author))\
            .filter(Answer.id == answer_id)\
            .first()

    def get_for_question(self, answer_id: int, question_id: int) -> Optional[Answer]:
        return self.db.query(Answer)\
            .options(joinedload(Answer.author))\
            .filter(Answer.id == answer_id, Answer.question_id == question_id)\
            .first()

    def create(self, answer: Answer) -> Answer:
        try:
            self.db.add(answer)
            self.db.commit()
            self.db.refresh(answer)
            return answer
        except Exception as e:
            self.db.rollback()
            raise e

    def update(self, answer: Answer) -> Answer:
        try:
            self.db.commit()
            self.db.refresh(answer)
            return answer
        except Exception as e:
            self.db.rollback()
            raise e

    def delete(self, answer: Answer) -> None:
        try:
            self.db.delete(answer)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            raise e

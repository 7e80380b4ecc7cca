from sqlalchemy.orm import Session

from models.question_view import QuestionView


class QuestionViewDAO:
    """Flush-only writes: the view counter service owns the transaction."""

    def __init__(self, db: Session):
        self.db = db

    def exists(self, user_id: int, question_id: int) -> bool:
        return self.db.query(QuestionView.id)\
            .filter(QuestionView.user_id == user_id, QuestionView.question_id == question_id)\
            .first() is not None

    def create(self, user_id: int, question_id: int) -> QuestionView:
        view = QuestionView(user_id=user_id, question_id=question_id)
        self.db.add(view)
        self.db.flush()
        return view

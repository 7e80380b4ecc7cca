from sqlalchemy.orm import Session

from models.answer_vote import AnswerVote


class AnswerVoteDAO:
    """Flush-only writes: the vote service owns the transaction."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: int, answer_id: int) -> AnswerVote:
        vote = AnswerVote(user_id=user_id, answer_id=answer_id)
        self.db.add(vote)
        self.db.flush()
        return vote

    def delete_for_user(self, user_id: int, answer_id: int) -> int:
        return self.db.query(AnswerVote)\
            .filter(AnswerVote.user_id == user_id, AnswerVote.answer_id == answer_id)\
            .delete(synchronize_session=False)

    def count_for_answer(self, answer_id: int) -> int:
        return self.db.query(AnswerVote).filter(AnswerVote.answer_id == answer_id).count()

    def has_voted(self, user_id: int, answer_id: int) -> bool:
        return self.db.query(AnswerVote.id)\
            .filter(AnswerVote.user_id == user_id, AnswerVote.answer_id == answer_id)\
            .first() is not None

"""
Idempotent interaction counters: question views and answer votes.

Both rely on a unique (user, subject) row plus one transaction per attempt, so a
lost race on the unique index is read as "someone already did this" rather than
an error.
"""
from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
import logging

from dao.answer_dao import AnswerDAO
from dao.answer_vote_dao import AnswerVoteDAO
from dao.question_dao import QuestionDAO
from dao.question_view_dao import QuestionViewDAO
from schemas.counters import ViewResult, VoteResult
from utils.errors import NotFound

logger = logging.getLogger(__name__)

MAX_TOGGLE_ATTEMPTS = 5


class ViewCounterService:

    def __init__(self, db: Session):
        self.db = db
        self.question_dao = QuestionDAO(db)
        self.view_dao = QuestionViewDAO(db)

    def record_view(self, user_id: int, question_id: int) -> ViewResult:
        """
        First view of a question by a user inserts the view row and bumps
        views_count by one in the same commit; later views change nothing.
        """
        if self.question_dao.get_by_id(question_id) is None:
            raise NotFound(f"Question {question_id} not found")

        if self.view_dao.exists(user_id, question_id):
            return ViewResult(incremented=False, views_count=self.question_dao.get_views_count(question_id))

        try:
            self.view_dao.create(user_id, question_id)
            self.question_dao.increment_views(question_id)
            self.db.commit()
        except IntegrityError:
            # A concurrent first view won the unique index
            self.db.rollback()
            logger.debug(f"Concurrent view of question {question_id} by user {user_id}, not counted")
            return ViewResult(incremented=False, views_count=self.question_dao.get_views_count(question_id))
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error recording view of question {question_id} by user {user_id}: {e}")
            raise

        return ViewResult(incremented=True, views_count=self.question_dao.get_views_count(question_id))


class VoteService:

    def __init__(self, db: Session):
        self.db = db
        self.answer_dao = AnswerDAO(db)
        self.vote_dao = AnswerVoteDAO(db)

    def toggle_vote(self, user_id: int, answer_id: int, question_id: Optional[int] = None) -> VoteResult:
        """
        Add the user's vote, or remove it when it already exists.

        The insert is tried first: losing on the unique index means a vote exists,
        so the same attempt deletes it instead. votes_count is recounted inside the
        mutating transaction.
        """
        answer = self.answer_dao.get_by_id(answer_id)
        if answer is None or (question_id is not None and answer.question_id != question_id):
            raise NotFound(f"Answer {answer_id} not found")

        for attempt in range(1, MAX_TOGGLE_ATTEMPTS + 1):
            try:
                self.vote_dao.create(user_id, answer_id)
                votes_count = self.vote_dao.count_for_answer(answer_id)
                self.db.commit()
                return VoteResult(action="added", votes_count=votes_count)
            except IntegrityError:
                self.db.rollback()
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Error adding vote of user {user_id} on answer {answer_id}: {e}")
                raise

            try:
                deleted = self.vote_dao.delete_for_user(user_id, answer_id)
                if deleted:
                    votes_count = self.vote_dao.count_for_answer(answer_id)
                    self.db.commit()
                    return VoteResult(action="removed", votes_count=votes_count)
                self.db.rollback()
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Error removing vote of user {user_id} on answer {answer_id}: {e}")
                raise

            # The vote disappeared between our insert and delete; start over
            logger.debug(f"Vote toggle race on answer {answer_id} for user {user_id}, attempt {attempt}")

        raise RuntimeError(f"Could not toggle vote of user {user_id} on answer {answer_id}")

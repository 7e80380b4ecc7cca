from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List
import logging

from models.question_watcher import QuestionWatcher

logger = logging.getLogger(__name__)


class WatcherDAO:

    def __init__(self, db: Session):
        self.db = db

    def exists(self, question_id: int, user_id: int) -> bool:
        return self.db.query(QuestionWatcher.id)\
            .filter(QuestionWatcher.question_id == question_id, QuestionWatcher.user_id == user_id)\
            .first() is not None

    def add(self, question_id: int, user_id: int) -> bool:
        """Returns False when the user was already watching."""
        try:
            self.db.add(QuestionWatcher(question_id=question_id, user_id=user_id))
            self.db.commit()
            return True
        except IntegrityError:
            self.db.rollback()
            return False

    def remove(self, question_id: int, user_id: int) -> int:
        try:
            deleted = self.db.query(QuestionWatcher)\
                .filter(QuestionWatcher.question_id == question_id, QuestionWatcher.user_id == user_id)\
                .delete(synchronize_session=False)
            self.db.commit()
            return deleted
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error removing watcher {user_id} from question {question_id}: {e}")
            raise

    def get_watcher_ids(self, question_id: int) -> List[int]:
        rows = self.db.query(QuestionWatcher.user_id)\
            .filter(QuestionWatcher.question_id == question_id)\
            .all()
        return [row.user_id for row in rows]

from dataclasses import dataclass, field
from typing import Set
from sqlalchemy.orm import Session
import logging

from dao.question_dao import QuestionDAO
from dao.user_dao import UserDAO
from dao.watcher_dao import WatcherDAO
from models.notification import NotificationKind
from utils.errors import NotFound

logger = logging.getLogger(__name__)


@dataclass
class RecipientContext:
    question_id: int
    question_title: str
    recipients: Set[int] = field(default_factory=set)


class RecipientResolver:
    """
    Decides who is notified about a domain event. Reads the question graph, never writes it.

    The acting user is removed after every rule has run, so no kind notifies its own actor.
    """

    def __init__(self, db: Session):
        self.db = db
        self.question_dao = QuestionDAO(db)
        self.user_dao = UserDAO(db)
        self.watcher_dao = WatcherDAO(db)

    def recipients_for(self, event) -> Set[int]:
        return self.resolve(event).recipients

    def resolve(self, event) -> RecipientContext:
        question = self.question_dao.get_by_id(event.question_id)
        if not question:
            raise NotFound(f"Question {event.question_id} not found")

        context = RecipientContext(question_id=question.id, question_title=question.title)
        kind = event.kind

        if kind == NotificationKind.VOTE_CAST.value:
            return context

        candidates: Set[int] = set()
        if kind in (NotificationKind.QUESTION_APPROVED.value, NotificationKind.QUESTION_REJECTED.value):
            candidates.add(question.author_id)

        elif kind == NotificationKind.ANSWER_CREATED.value:
            candidates.add(question.author_id)
            candidates.update(self.watcher_dao.get_watcher_ids(question.id))

        elif kind == NotificationKind.MESSAGE_CREATED.value:
            # Author first, then the first staff answerer; actor removal below handles senders
            candidates.add(question.author_id)
            first_staff = self.question_dao.get_first_staff_answerer_id(question.id)
            if first_staff is not None:
                candidates.add(first_staff)
            candidates.update(self.watcher_dao.get_watcher_ids(question.id))

        else:
            logger.warning(f"⚠️ No recipient rule for event kind {kind}")

        candidates.discard(event.actor_id)
        if candidates:
            context.recipients = set(self.user_dao.get_active_ids(candidates))
        return context

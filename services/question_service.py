"""
Question/answer actions that produce live events and notifications.

Every action commits its own transaction first, then emits room events, then hands
the domain event to the fan-out engine. Problems after the commit are logged and
never turned into a failure of the action itself.
"""
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session
import logging

from config.config_database import SessionLocal
from dao.answer_dao import AnswerDAO
from dao.answer_vote_dao import AnswerVoteDAO
from dao.message_dao import MessageDAO
from dao.question_dao import QuestionDAO
from dao.watcher_dao import WatcherDAO
from models.answer import Answer
from models.question import Question, QuestionStatus, ApprovalStatus
from models.question_message import QuestionMessage
from schemas.counters import VoteResult
from schemas.events import AnswerCreated, QuestionApproved, QuestionRejected, MessageCreated, VoteCast
from schemas.question import (
    AnswerResponse,
    MessageResponse,
    MessageListResponse,
    QuestionApprovalResponse,
    WatchResponse
)
from services.connection_gateway import ConnectionGateway, question_room, user_room
from services.identity_service import Identity
from services.interaction_counter_service import VoteService
from services.notification_fanout import NotificationFanoutEngine
from utils.errors import NotFound, Forbidden, ValidationFailed

logger = logging.getLogger(__name__)

MAX_ANSWER_EDITS = 1


def can_view_question(identity: Optional[Identity], question: Question) -> bool:
    """Approved questions are public; otherwise only the author and staff see them."""
    if question.approval_status == ApprovalStatus.APPROVED.value:
        return True
    if identity is None:
        return False
    return identity.is_staff or question.author_id == identity.user_id


def can_join_question_room(identity: Optional[Identity], question_id: int) -> bool:
    """Room authorizer for question:<id>. Runs in a worker thread with its own session."""
    db = SessionLocal()
    try:
        question = QuestionDAO(db).get_by_id(question_id)
        return question is not None and can_view_question(identity, question)
    finally:
        db.close()


class QuestionService:

    def __init__(self, db: Session, gateway: ConnectionGateway, fanout: NotificationFanoutEngine):
        self.db = db
        self.gateway = gateway
        self.fanout = fanout
        self.question_dao = QuestionDAO(db)
        self.answer_dao = AnswerDAO(db)
        self.message_dao = MessageDAO(db)
        self.watcher_dao = WatcherDAO(db)
        self.vote_dao = AnswerVoteDAO(db)

    # ===== Answers =====

    async def create_answer(self, identity: Identity, question_id: int, content: str) -> AnswerResponse:
        question = self._get_question(question_id)
        if question.approval_status != ApprovalStatus.APPROVED.value:
            raise ValidationFailed("Question is not approved yet")

        answer = self.answer_dao.create(Answer(
            question_id=question.id,
            author_id=identity.user_id,
            content=content,
        ))
        logger.info(f"✅ Answer {answer.id} created on question {question.id} by user {identity.user_id}")

        if identity.is_staff and question.status == QuestionStatus.OPEN.value:
            question.status = QuestionStatus.ANSWERED.value
            self.question_dao.update(question)

        payload = self._answer_response(answer)
        await self.gateway.emit_to_room(question_room(question.id), "answer:new", payload)
        await self.gateway.emit_to_room(user_room(question.author_id), "answer:new", payload)

        await self._publish(AnswerCreated(
            question_id=question.id,
            answer_id=answer.id,
            actor_id=identity.user_id,
        ))
        return payload

    async def update_answer(self, identity: Identity, question_id: int, answer_id: int, content: str) -> AnswerResponse:
        question = self._get_question(question_id)
        answer = self._get_answer(answer_id, question_id)

        if answer.author_id != identity.user_id:
            raise Forbidden("Only the author can edit this answer")
        if question.approval_status != ApprovalStatus.APPROVED.value:
            raise ValidationFailed("Question is not approved")
        if answer.edit_count >= MAX_ANSWER_EDITS:
            raise ValidationFailed("Answer can only be edited once")

        if answer.original_content is None:
            answer.original_content = answer.content
        answer.content = content
        answer.edit_count += 1
        answer.edited_at = datetime.now(timezone.utc)
        answer = self.answer_dao.update(answer)

        payload = self._answer_response(answer)
        await self.gateway.emit_to_room(question_room(question_id), "answer:updated", payload)
        return payload

    async def delete_answer(self, identity: Identity, question_id: int, answer_id: int) -> None:
        answer = self._get_answer(answer_id, question_id)
        if answer.author_id != identity.user_id and not identity.is_admin:
            raise Forbidden("Only the author or an admin can delete this answer")

        self.answer_dao.delete(answer)
        logger.info(f"🗑️ Answer {answer_id} deleted by user {identity.user_id}")

        await self.gateway.emit_to_room(
            question_room(question_id),
            "answer:deleted",
            {"id": answer_id, "question_id": question_id}
        )

    async def toggle_vote(self, identity: Identity, question_id: int, answer_id: int) -> VoteResult:
        result = VoteService(self.db).toggle_vote(identity.user_id, answer_id, question_id)

        await self.gateway.emit_to_room(
            question_room(question_id),
            "answer:updated",
            {"id": answer_id, "question_id": question_id, "votes_count": result.votes_count}
        )
        await self._publish(VoteCast(question_id=question_id, answer_id=answer_id, actor_id=identity.user_id))
        return result

    # ===== Conversation =====

    async def post_message(self, identity: Identity, question_id: int, content: str) -> MessageResponse:
        question = self._get_question(question_id)
        if not can_view_question(identity, question):
            raise Forbidden("You cannot post on this question")

        message = self.message_dao.create(QuestionMessage(
            question_id=question.id,
            sender_id=identity.user_id,
            content=content,
        ))
        payload = MessageResponse.model_validate(message)

        await self.gateway.emit_to_room(question_room(question.id), "message:new", payload)
        await self._publish(MessageCreated(
            question_id=question.id,
            message_id=message.id,
            actor_id=identity.user_id,
            actor_role=identity.role,
        ))
        return payload

    def list_messages(self, identity: Optional[Identity], question_id: int, page: int = 1, page_size: int = 20) -> MessageListResponse:
        question = self._get_question(question_id)
        if not can_view_question(identity, question):
            raise Forbidden("You cannot view this question")
        skip = (max(page, 1) - 1) * page_size
        messages = self.message_dao.get_for_question(question_id, skip=skip, limit=page_size)
        return MessageListResponse(messages=[MessageResponse.model_validate(m) for m in messages])

    # ===== Moderation =====

    async def approve_question(self, identity: Identity, question_id: int) -> QuestionApprovalResponse:
        question = self._get_question(question_id)
        question.approval_status = ApprovalStatus.APPROVED.value
        question.rejection_reason = None
        question = self.question_dao.update(question)
        logger.info(f"✅ Question {question_id} approved by user {identity.user_id}")

        await self._publish(QuestionApproved(question_id=question.id, actor_id=identity.user_id))
        return QuestionApprovalResponse.model_validate(question)

    async def reject_question(self, identity: Identity, question_id: int, reason: str) -> QuestionApprovalResponse:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailed("A rejection reason is required")

        question = self._get_question(question_id)
        question.approval_status = ApprovalStatus.REJECTED.value
        question.rejection_reason = reason
        question = self.question_dao.update(question)
        logger.info(f"Question {question_id} rejected by user {identity.user_id}")

        await self._publish(QuestionRejected(question_id=question.id, actor_id=identity.user_id, reason=reason))
        return QuestionApprovalResponse.model_validate(question)

    # ===== Watchers =====

    def watch(self, identity: Identity, question_id: int) -> WatchResponse:
        question = self._get_question(question_id)
        if not can_view_question(identity, question):
            raise Forbidden("You cannot watch this question")
        self.watcher_dao.add(question_id, identity.user_id)
        return WatchResponse(watching=True)

    def unwatch(self, identity: Identity, question_id: int) -> WatchResponse:
        self._get_question(question_id)
        self.watcher_dao.remove(question_id, identity.user_id)
        return WatchResponse(watching=False)

    def is_watching(self, identity: Identity, question_id: int) -> WatchResponse:
        self._get_question(question_id)
        return WatchResponse(watching=self.watcher_dao.exists(question_id, identity.user_id))

    # ===== Helpers =====

    def _get_question(self, question_id: int) -> Question:
        question = self.question_dao.get_by_id(question_id)
        if not question:
            raise NotFound(f"Question {question_id} not found")
        return question

    def _get_answer(self, answer_id: int, question_id: int) -> Answer:
        answer = self.answer_dao.get_for_question(answer_id, question_id)
        if not answer:
            raise NotFound(f"Answer {answer_id} not found")
        return answer

    def _answer_response(self, answer: Answer) -> AnswerResponse:
        response = AnswerResponse.model_validate(answer)
        response.votes_count = self.vote_dao.count_for_answer(answer.id)
        return response

    async def _publish(self, event) -> None:
        try:
            await self.fanout.publish(event)
        except Exception as e:
            logger.error(f"❌ Notification fan-out for {event.kind} {event.event_key} failed: {e}", exc_info=True)

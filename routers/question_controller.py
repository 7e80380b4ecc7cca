# routers/question_controller.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from config.config_database import get_db
from schemas.common import SuccessResponse
from schemas.counters import ViewResult, VoteResult
from schemas.question import (
    AnswerCreate, AnswerUpdate, AnswerResponse,
    MessageCreate, MessageResponse, MessageListResponse,
    WatchResponse
)
from services.connection_gateway import ConnectionGateway, get_gateway
from services.identity_service import Identity
from services.interaction_counter_service import ViewCounterService
from services.notification_fanout import NotificationFanoutEngine, get_fanout_engine
from services.question_service import QuestionService
from utils.auth import require_user, get_optional_identity

router = APIRouter(prefix="/api/questions", tags=["Questions"])


def get_question_service(
    db: Session = Depends(get_db),
    gateway: ConnectionGateway = Depends(get_gateway),
    fanout: NotificationFanoutEngine = Depends(get_fanout_engine)
) -> QuestionService:
    return QuestionService(db, gateway, fanout)


# ===== Counters =====

@router.post("/{question_id}/view", response_model=ViewResult)
async def record_view(
    question_id: int,
    current_user: Identity = Depends(require_user()),
    db: Session = Depends(get_db)
):
    """Counts the first view of a question per user"""
    return ViewCounterService(db).record_view(current_user.user_id, question_id)


@router.post("/{question_id}/answers/{answer_id}/vote", response_model=VoteResult)
async def toggle_vote(
    question_id: int,
    answer_id: int,
    current_user: Identity = Depends(require_user()),
    service: QuestionService = Depends(get_question_service)
):
    return await service.toggle_vote(current_user, question_id, answer_id)


# ===== Answers =====

@router.post("/{question_id}/answers", response_model=AnswerResponse, status_code=status.HTTP_201_CREATED)
async def create_answer(
    question_id: int,
    request: AnswerCreate,
    current_user: Identity = Depends(require_user()),
    service: QuestionService = Depends(get_question_service)
):
    return await service.create_answer(current_user, question_id, request.content)


@router.patch("/{question_id}/answers/{answer_id}", response_model=AnswerResponse)
async def update_answer(
    question_id: int,
    answer_id: int,
    request: AnswerUpdate,
    current_user: Identity = Depends(require_user()),
    service: QuestionService = Depends(get_question_service)
):
    """The author may edit an answer once"""
    return await service.update_answer(current_user, question_id, answer_id, request.content)


@router.delete("/{question_id}/answers/{answer_id}", response_model=SuccessResponse)
async def delete_answer(
    question_id: int,
    answer_id: int,
    current_user: Identity = Depends(require_user()),
    service: QuestionService = Depends(get_question_service)
):
    await service.delete_answer(current_user, question_id, answer_id)
    return SuccessResponse(message="Answer deleted")


# ===== Conversation =====

@router.get("/{question_id}/messages", response_model=MessageListResponse)
async def list_messages(
    question_id: int,
    page: int = Query(1, ge=1),
    current_user: Optional[Identity] = Depends(get_optional_identity),
    service: QuestionService = Depends(get_question_service)
):
    return service.list_messages(current_user, question_id, page=page)


@router.post("/{question_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def post_message(
    question_id: int,
    request: MessageCreate,
    current_user: Identity = Depends(require_user()),
    service: QuestionService = Depends(get_question_service)
):
    return await service.post_message(current_user, question_id, request.content)


# ===== Watchers =====

@router.get("/{question_id}/watch", response_model=WatchResponse)
async def is_watching(
    question_id: int,
    current_user: Identity = Depends(require_user()),
    service: QuestionService = Depends(get_question_service)
):
    return service.is_watching(current_user, question_id)


@router.post("/{question_id}/watch", response_model=WatchResponse)
async def watch_question(
    question_id: int,
    current_user: Identity = Depends(require_user()),
    service: QuestionService = Depends(get_question_service)
):
    return service.watch(current_user, question_id)


@router.delete("/{question_id}/watch", response_model=WatchResponse)
async def unwatch_question(
    question_id: int,
    current_user: Identity = Depends(require_user()),
    service: QuestionService = Depends(get_question_service)
):
    return service.unwatch(current_user, question_id)

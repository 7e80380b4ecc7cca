# routers/admin_question_controller.py
from fastapi import APIRouter, Depends

from schemas.question import QuestionApprovalResponse, RejectQuestionRequest
from services.identity_service import Identity
from services.question_service import QuestionService
from routers.question_controller import get_question_service
from utils.auth import require_admin

router = APIRouter(prefix="/api/admin/questions", tags=["Admin - Questions"])


@router.post("/{question_id}/approve", response_model=QuestionApprovalResponse)
async def approve_question(
    question_id: int,
    current_user: Identity = Depends(require_admin()),
    service: QuestionService = Depends(get_question_service)
):
    return await service.approve_question(current_user, question_id)


@router.post("/{question_id}/reject", response_model=QuestionApprovalResponse)
async def reject_question(
    question_id: int,
    request: RejectQuestionRequest,
    current_user: Identity = Depends(require_admin()),
    service: QuestionService = Depends(get_question_service)
):
    return await service.reject_question(current_user, question_id, request.reason)

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.config_database import get_db
from schemas.common import SuccessResponse
from schemas.notification import (
    NotificationResponse,
    NotificationListResponse,
    UnreadCountResponse,
    MarkAllReadResponse
)
from schemas.push_token import PushTokenRegisterRequest, PushTokenRemoveRequest, PushTokenResponse
from services.identity_service import Identity
from services.notification_service import NotificationService
from services.push_token_service import PushTokenRegistry
from utils.auth import require_user

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    current_user: Identity = Depends(require_user()),
    db: Session = Depends(get_db)
):
    """Notifications of the current user, newest first"""
    service = NotificationService(db)
    return service.get_notifications(
        user_id=current_user.user_id,
        unread_only=unread_only,
        limit=limit
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: Identity = Depends(require_user()),
    db: Session = Depends(get_db)
):
    service = NotificationService(db)
    return UnreadCountResponse(unread_count=service.get_unread_count(current_user.user_id))


@router.patch("/read-all", response_model=MarkAllReadResponse)
async def mark_all_as_read(
    current_user: Identity = Depends(require_user()),
    db: Session = Depends(get_db)
):
    service = NotificationService(db)
    count = service.mark_all_as_read(current_user.user_id)
    return MarkAllReadResponse(message=f"Marked {count} notifications as read", marked_count=count)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_as_read(
    notification_id: int,
    current_user: Identity = Depends(require_user()),
    db: Session = Depends(get_db)
):
    service = NotificationService(db)
    return service.mark_as_read(notification_id, current_user.user_id)


# ===== Push tokens =====

@router.post("/token", response_model=PushTokenResponse)
async def register_push_token(
    request: PushTokenRegisterRequest,
    current_user: Identity = Depends(require_user()),
    db: Session = Depends(get_db)
):
    """Register (or re-parent) this device's push token for the current user"""
    registry = PushTokenRegistry(db)
    return registry.register(current_user.user_id, request.token, request.user_agent)


@router.delete("/token", response_model=SuccessResponse)
async def remove_push_token(
    request: PushTokenRemoveRequest,
    current_user: Identity = Depends(require_user()),
    db: Session = Depends(get_db)
):
    """Unknown tokens and tokens of other users are ignored"""
    registry = PushTokenRegistry(db)
    removed = registry.revoke(current_user.user_id, request.token)
    return SuccessResponse(message="Push token removed" if removed else "Push token not registered")

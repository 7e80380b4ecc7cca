from typing import List, Optional
from sqlalchemy.orm import Session
import logging

from dao.push_token_dao import PushTokenDAO
from models.push_token import PushToken
from utils.errors import ValidationFailed

logger = logging.getLogger(__name__)


def mask_token(token: str) -> str:
    """Log-safe token prefix"""
    return f"{token[:12]}..." if token and len(token) > 12 else token


class PushTokenRegistry:
    """Durable user -> device token bindings. Pure persistence, no network calls."""

    def __init__(self, db: Session):
        self.db = db
        self.dao = PushTokenDAO(db)

    def register(self, user_id: int, token: str, device_hint: Optional[str] = None) -> PushToken:
        """
        Idempotent upsert by token. A token registered under another owner is
        re-parented to user_id and any revocation is cleared.
        """
        token = (token or "").strip()
        if not token:
            raise ValidationFailed("Push token is required")

        existing = self.dao.get_by_token(token)
        previous_owner = existing.owner_user_id if existing else None

        push_token = self.dao.upsert(user_id, token, device_hint)

        if previous_owner is None:
            logger.info(f"✅ Registered push token {mask_token(token)} for user {user_id}")
        elif previous_owner != user_id:
            logger.info(f"🔁 Re-parented push token {mask_token(token)} from user {previous_owner} to user {user_id}")
        return push_token

    def revoke(self, user_id: int, token: str) -> bool:
        """No-op (not an error) when the token is unknown or belongs to someone else."""
        token = (token or "").strip()
        if not token:
            return False
        revoked = self.dao.revoke_for_owner(user_id, token) > 0
        if revoked:
            logger.info(f"🗑️ Revoked push token {mask_token(token)} for user {user_id}")
        return revoked

    def revoke_rejected(self, token: str) -> bool:
        """Soft-revoke after the push provider permanently rejected the token."""
        revoked = self.dao.revoke_token(token) > 0
        if revoked:
            logger.warning(f"⚠️ Push token {mask_token(token)} permanently rejected by provider, revoked")
        return revoked

    def tokens_for(self, user_id: int) -> List[str]:
        return [t.token for t in self.dao.get_active_for_user(user_id)]

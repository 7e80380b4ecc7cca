from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional, List
from datetime import datetime, timezone

from models.push_token import PushToken


class PushTokenDAO:

    def __init__(self, db: Session):
        self.db = db

    def get_by_token(self, token: str) -> Optional[PushToken]:
        return self.db.query(PushToken).filter(PushToken.token == token).first()

    def get_active_for_user(self, user_id: int) -> List[PushToken]:
        return self.db.query(PushToken)\
            .filter(PushToken.owner_user_id == user_id, PushToken.revoked_at.is_(None))\
            .order_by(PushToken.id.asc())\
            .all()

    def upsert(self, user_id: int, token: str, user_agent: Optional[str]) -> PushToken:
        """
        Insert or re-parent by token. A concurrent insert of the same token
        loses on the unique index and falls back to the update path.
        """
        for _ in range(2):
            existing = self.get_by_token(token)
            try:
                if existing:
                    existing.owner_user_id = user_id
                    existing.user_agent = user_agent
                    existing.revoked_at = None
                    existing.updated_at = datetime.now(timezone.utc)
                    self.db.commit()
                    self.db.refresh(existing)
                    return existing

                push_token = PushToken(token=token, owner_user_id=user_id, user_agent=user_agent)
                self.db.add(push_token)
                self.db.commit()
                self.db.refresh(push_token)
                return push_token
            except IntegrityError:
                self.db.rollback()
            except Exception as e:
                self.db.rollback()
                raise e
        raise RuntimeError(f"Could not upsert push token for user {user_id}")

    def revoke_for_owner(self, user_id: int, token: str) -> int:
        try:
            updated = self.db.query(PushToken)\
                .filter(
                    PushToken.token == token,
                    PushToken.owner_user_id == user_id,
                    PushToken.revoked_at.is_(None)
                )\
                .update({PushToken.revoked_at: datetime.now(timezone.utc)}, synchronize_session=False)
            self.db.commit()
            return updated
        except Exception as e:
            self.db.rollback()
            raise e

    def revoke_token(self, token: str) -> int:
        try:
            updated = self.db.query(PushToken)\
                .filter(PushToken.token == token, PushToken.revoked_at.is_(None))\
                .update({PushToken.revoked_at: datetime.now(timezone.utc)}, synchronize_session=False)
            self.db.commit()
            return updated
        except Exception as e:
            self.db.rollback()
            raise e

from sqlalchemy.orm import Session
from typing import Optional, List, Iterable
from models.user import User

class UserDAO:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def get_active_ids(self, user_ids: Iterable[int]) -> List[int]:
        ids = list(set(user_ids))
        if not ids:
            return []
        rows = self.db.query(User.id).filter(User.id.in_(ids), User.is_active == True).all()
        return [row.id for row in rows]

    def create(self, user: User) -> User:
        try:
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
            return user
        except Exception as e:
            self.db.rollback()
            raise e

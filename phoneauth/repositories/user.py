from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from ..models.user import User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_phone(self, phone: str) -> Optional[User]:
        # Any status; phone is unique across all users
        stmt = select(User).where(User.phone == phone)
        return self.db.execute(stmt).scalar_one_or_none()

    def get(self, user_id: str) -> Optional[User]:
        stmt = select(User).where(User.id == user_id, User.status == "active")
        return self.db.execute(stmt).scalar_one_or_none()

    def phone_exists(self, phone: str) -> bool:
        stmt = select(func.count(User.id)).where(User.phone == phone, User.status == "active")
        return self.db.execute(stmt).scalar_one() > 0

    def superadmin_exists(self) -> bool:
        stmt = select(func.count(User.id)).where(User.is_superadmin.is_(True))
        return self.db.execute(stmt).scalar_one() > 0

    def create(self, phone: str, **fields) -> User:
        user = User(phone=phone, **fields)
        self.db.add(user)
        self.db.flush()
        return user

    def update(self, user: User, **fields) -> User:
        for key, value in fields.items():
            setattr(user, key, value)
        self.db.flush()
        return user

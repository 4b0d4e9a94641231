from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..models.user_session import UserSession


class UserSessionRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_active_by_user(self, user_id: str) -> List[UserSession]:
        stmt = (
            select(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .order_by(UserSession.last_active_at.desc())
        )
        return list(self.db.execute(stmt).scalars())

    def find_by_id_and_user(self, session_id: str, user_id: str) -> Optional[UserSession]:
        stmt = select(UserSession).where(UserSession.id == session_id, UserSession.user_id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_active_by_device(self, user_id: str, device_id: str) -> Optional[UserSession]:
        # Several live rows can only appear through concurrent logins; newest wins
        stmt = (
            select(UserSession)
            .where(
                UserSession.user_id == user_id,
                UserSession.device_id == device_id,
                UserSession.is_active.is_(True),
            )
            .order_by(UserSession.last_active_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create(self, user_id: str, device_id: str, now: datetime, **details) -> UserSession:
        session = UserSession(
            user_id=user_id,
            device_id=device_id,
            device_name=details.get("device_name"),
            device_os=details.get("device_os"),
            app_version=details.get("app_version"),
            ip_address=details.get("ip_address"),
            is_active=True,
            last_active_at=now,
            created_at=now,
        )
        self.db.add(session)
        self.db.flush()
        return session

    def touch(self, session: UserSession, now: datetime, ip_address: Optional[str] = None) -> UserSession:
        session.last_active_at = now
        if ip_address:
            session.ip_address = ip_address
        self.db.flush()
        return session

    def deactivate(self, session_id: str) -> None:
        self.db.execute(
            update(UserSession)
            .where(UserSession.id == session_id)
            .values(is_active=False)
            .execution_options(synchronize_session="evaluate")
        )

    def deactivate_all_for_user(self, user_id: str) -> int:
        stmt = (
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session="evaluate")
        )
        return self.db.execute(stmt).rowcount

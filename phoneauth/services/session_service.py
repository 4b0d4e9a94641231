import logging
from datetime import datetime
from typing import Optional, List

from sqlalchemy.orm import Session

from ..core.database import utcnow
from ..core.errors import SessionNotFoundError
from ..models.user_session import UserSession
from ..repositories.refresh_token import RefreshTokenRepository
from ..repositories.user_session import UserSessionRepository

logger = logging.getLogger(__name__)


class SessionService:
    """Device sessions of a user: upsert on login/refresh, list, logout."""

    def __init__(self, db: Session):
        self.db = db
        self.sessions = UserSessionRepository(db)
        self.refresh_tokens = RefreshTokenRepository(db)

    def find_or_create(
        self,
        user_id: str,
        device_id: str,
        device_info: Optional[dict] = None,
        ip_address: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> UserSession:
        """
        Touch the live session for (user, device) or open a new one.
        Does not commit; callers fold it into their own unit of work.
        """
        now = now or utcnow()
        session = self.sessions.find_active_by_device(user_id, device_id)
        if session is not None:
            return self.sessions.touch(session, now, ip_address)

        info = device_info or {}
        return self.sessions.create(
            user_id,
            device_id,
            now,
            device_name=info.get("device_name"),
            device_os=info.get("device_os"),
            app_version=info.get("app_version"),
            ip_address=ip_address,
        )

    def get_user_sessions(self, user_id: str) -> List[UserSession]:
        return self.sessions.find_active_by_user(user_id)

    def logout_session(self, session_id: str, user_id: str) -> None:
        session = self.sessions.find_by_id_and_user(session_id, user_id)
        if session is None:
            raise SessionNotFoundError()
        self.sessions.deactivate(session.id)
        self.db.commit()

    def logout_all_sessions(self, user_id: str) -> None:
        now = utcnow()
        deactivated = self.sessions.deactivate_all_for_user(user_id)
        revoked = self.refresh_tokens.revoke_all_for_user(user_id, now)
        self.db.commit()
        logger.info(f"User {user_id} logged out everywhere: {deactivated} sessions, {revoked} refresh tokens")

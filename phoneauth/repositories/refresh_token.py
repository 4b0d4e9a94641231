from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.security import hash_refresh_token
from ..models.refresh_token import RefreshToken


class RefreshTokenRepository:
    """Refresh-token store. Only the sha256 of a raw token is ever written."""

    def __init__(self, db: Session):
        self.db = db

    def store(
        self,
        user_id: str,
        raw_token: str,
        expires_at: datetime,
        created_at: datetime,
        device_info: Optional[dict] = None,
        ip_address: Optional[str] = None,
    ) -> RefreshToken:
        record = RefreshToken(
            user_id=user_id,
            token_hash=hash_refresh_token(raw_token),
            device_info=device_info,
            ip_address=ip_address,
            expires_at=expires_at,
            created_at=created_at,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def find_by_hash(self, token_hash: str) -> Optional[RefreshToken]:
        stmt = select(RefreshToken).where(RefreshToken.token_hash == token_hash)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_raw(self, raw_token: str) -> Optional[RefreshToken]:
        return self.find_by_hash(hash_refresh_token(raw_token))

    def revoke(self, token_id: str, now: datetime) -> bool:
        """Revoke one token. Returns False if it was already revoked."""
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        return self.db.execute(stmt).rowcount == 1

    def revoke_all_for_user(self, user_id: str, now: datetime) -> int:
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        return self.db.execute(stmt).rowcount

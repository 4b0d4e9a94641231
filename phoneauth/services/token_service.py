from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.database import utcnow
from ..core.security import create_token, decode_token, hash_refresh_token
from ..models.refresh_token import RefreshToken
from ..repositories.refresh_token import RefreshTokenRepository


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str


class TokenService:
    """
    Mints access/refresh JWTs and keeps the refresh-token store.

    Access and refresh tokens are signed with different secrets. A refresh
    token is only accepted when its signature is good AND its stored record
    exists, is unrevoked and has not passed its own `expires_at`.
    """

    def __init__(self, db: Session, settings: Settings):
        self.settings = settings
        self.refresh_tokens = RefreshTokenRepository(db)

    def _claims(self, user_id: str, phone: str, token_type: str, is_superadmin: bool) -> dict:
        return {"sub": user_id, "phone": phone, "type": token_type, "is_superadmin": is_superadmin}

    def create_access_token(self, user_id: str, phone: str, is_superadmin: bool = False) -> str:
        return create_token(
            self._claims(user_id, phone, "access", is_superadmin),
            self.settings.JWT_SECRET_KEY,
            self.settings.JWT_ALGORITHM,
            self.settings.access_token_ttl,
        )

    def create_refresh_token(self, user_id: str, phone: str, is_superadmin: bool = False) -> str:
        return create_token(
            self._claims(user_id, phone, "refresh", is_superadmin),
            self.settings.JWT_REFRESH_SECRET_KEY,
            self.settings.JWT_ALGORITHM,
            self.settings.refresh_token_ttl,
        )

    def issue_pair(self, user_id: str, phone: str, is_superadmin: bool = False) -> TokenPair:
        return TokenPair(
            access_token=self.create_access_token(user_id, phone, is_superadmin),
            refresh_token=self.create_refresh_token(user_id, phone, is_superadmin),
        )

    def decode_access(self, token: str) -> Optional[dict]:
        return decode_token(token, self.settings.JWT_SECRET_KEY, self.settings.JWT_ALGORITHM, "access")

    def verify_refresh(self, token: str, now: Optional[datetime] = None) -> Optional[dict]:
        """Claims of a usable refresh token, or None for any kind of failure."""
        payload = decode_token(token, self.settings.JWT_REFRESH_SECRET_KEY, self.settings.JWT_ALGORITHM, "refresh")
        if payload is None:
            return None

        stored = self.refresh_tokens.find_by_hash(hash_refresh_token(token))
        if stored is None or not stored.is_valid(now or utcnow()):
            return None
        if stored.user_id != payload["sub"]:
            return None
        return payload

    def store_refresh(
        self,
        user_id: str,
        raw_token: str,
        device_info: Optional[dict] = None,
        ip_address: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RefreshToken:
        now = now or utcnow()
        return self.refresh_tokens.store(
            user_id=user_id,
            raw_token=raw_token,
            expires_at=now + self.settings.refresh_token_ttl,
            created_at=now,
            device_info=device_info,
            ip_address=ip_address,
        )

    def find_refresh(self, raw_token: str) -> Optional[RefreshToken]:
        return self.refresh_tokens.find_by_raw(raw_token)

    def revoke(self, record: RefreshToken, now: Optional[datetime] = None) -> bool:
        return self.refresh_tokens.revoke(record.id, now or utcnow())

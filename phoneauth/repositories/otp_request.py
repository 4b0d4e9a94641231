from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import Session

from ..models.otp_request import OtpRequest


class OtpRequestRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, phone: str, otp_hash: str, purpose: str, expires_at: datetime, created_at: datetime) -> OtpRequest:
        otp_request = OtpRequest(
            phone=phone,
            otp_hash=otp_hash,
            purpose=purpose,
            attempts=0,
            expires_at=expires_at,
            created_at=created_at,
        )
        self.db.add(otp_request)
        self.db.flush()
        return otp_request

    def get(self, otp_id: str) -> Optional[OtpRequest]:
        return self.db.get(OtpRequest, otp_id)

    def find_active_by_phone_and_purpose(self, phone: str, purpose: str) -> Optional[OtpRequest]:
        stmt = (
            select(OtpRequest)
            .where(
                OtpRequest.phone == phone,
                OtpRequest.purpose == purpose,
                OtpRequest.verified_at.is_(None),
            )
            .order_by(OtpRequest.created_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def count_recent(self, phone: str, purpose: str, since: datetime) -> int:
        stmt = select(func.count(OtpRequest.id)).where(
            OtpRequest.phone == phone,
            OtpRequest.purpose == purpose,
            OtpRequest.created_at > since,
        )
        return self.db.execute(stmt).scalar_one()

    def increment_attempts(self, otp_id: str, max_attempts: int) -> bool:
        """Atomically bump `attempts` unless the cap is already reached."""
        stmt = (
            update(OtpRequest)
            .where(OtpRequest.id == otp_id, OtpRequest.attempts < max_attempts)
            .values(attempts=OtpRequest.attempts + 1)
            .execution_options(synchronize_session="evaluate")
        )
        return self.db.execute(stmt).rowcount == 1

    def mark_verified(self, otp_id: str, now: datetime, max_attempts: int) -> bool:
        """Set `verified_at` only while the request is still open."""
        stmt = (
            update(OtpRequest)
            .where(
                OtpRequest.id == otp_id,
                OtpRequest.verified_at.is_(None),
                OtpRequest.attempts < max_attempts,
                OtpRequest.expires_at > now,
            )
            .values(verified_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        return self.db.execute(stmt).rowcount == 1

    def delete_stale(self, expired_before: datetime, created_before: datetime) -> int:
        stmt = (
            delete(OtpRequest)
            .where(
                OtpRequest.expires_at < expired_before,
                OtpRequest.created_at < created_before,
            )
            .execution_options(synchronize_session="evaluate")
        )
        return self.db.execute(stmt).rowcount

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.database import utcnow
from ..core.security import generate_otp, hash_otp, verify_otp_hash
from ..models.otp_request import OtpRequest
from ..repositories.otp_request import OtpRequestRepository

logger = logging.getLogger(__name__)


@dataclass
class OtpVerification:
    valid: bool = False
    expired: bool = False
    max_attempts_exceeded: bool = False


class OtpService:
    """
    Issues and verifies one-time codes.

    Each OtpRequest moves from created to exactly one of verified, expired
    or attempts-exhausted. An unknown id, an id issued to another phone and
    an already verified request all report a plain invalid result so that
    callers cannot probe which ids exist.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.otp_requests = OtpRequestRepository(db)

    def generate_code(self) -> str:
        return generate_otp(self.settings.OTP_LENGTH)

    def hash_code(self, code: str) -> str:
        return hash_otp(code, self.settings.OTP_HASH_ROUNDS)

    def verify_code(self, code: str, otp_hash: str) -> bool:
        return verify_otp_hash(code, otp_hash, self.settings.OTP_HASH_ROUNDS)

    def create_request(self, phone: str, purpose: str, now: Optional[datetime] = None) -> Tuple[OtpRequest, str]:
        """Persist a new OtpRequest and return it with the raw code."""
        now = now or utcnow()
        code = self.generate_code()
        otp_request = self.otp_requests.create(
            phone=phone,
            otp_hash=self.hash_code(code),
            purpose=purpose,
            expires_at=now + self.settings.otp_ttl,
            created_at=now,
        )
        self.db.commit()
        logger.info(f"OTP {otp_request.id} issued for {purpose}")
        return otp_request, code

    def verify_request(
        self,
        otp_id: str,
        code: str,
        phone: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OtpVerification:
        now = now or utcnow()
        otp_request = self.otp_requests.get(otp_id)

        if otp_request is None or (phone is not None and otp_request.phone != phone):
            return OtpVerification()

        if otp_request.verified_at is not None:
            return OtpVerification()

        if now >= otp_request.expires_at:
            logger.info(f"OTP {otp_id} rejected: expired")
            return OtpVerification(expired=True)

        if otp_request.attempts >= self.settings.OTP_MAX_ATTEMPTS:
            logger.info(f"OTP {otp_id} rejected: attempts exhausted")
            return OtpVerification(max_attempts_exceeded=True)

        if len(code) != self.settings.OTP_LENGTH or not self.verify_code(code, otp_request.otp_hash):
            self.otp_requests.increment_attempts(otp_id, self.settings.OTP_MAX_ATTEMPTS)
            self.db.commit()
            logger.info(f"OTP {otp_id} rejected: wrong code")
            return OtpVerification()

        # A concurrent verify may have consumed or exhausted the request meanwhile
        if not self.otp_requests.mark_verified(otp_id, now, self.settings.OTP_MAX_ATTEMPTS):
            self.db.rollback()
            return OtpVerification()

        self.db.commit()
        return OtpVerification(valid=True)

    def purge_stale(self, now: Optional[datetime] = None) -> int:
        """
        Delete requests that are expired and older than the rate-limit window.
        Rows still inside the window are kept because the limiter counts them.
        """
        now = now or utcnow()
        deleted = self.otp_requests.delete_stale(
            expired_before=now,
            created_before=now - self.settings.rate_limit_window,
        )
        self.db.commit()
        if deleted:
            logger.info(f"Purged {deleted} stale OTP requests")
        return deleted

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.database import utcnow
from ..repositories.otp_request import OtpRequestRepository

logger = logging.getLogger(__name__)


class OtpRateLimiter:
    """
    Caps OTP issuance per (phone, purpose) over a trailing window.
    Counts stored OtpRequest rows, so the limit survives restarts and is
    shared by every worker using the same database.
    """

    def __init__(self, db: Session, settings: Settings):
        self.settings = settings
        self.otp_requests = OtpRequestRepository(db)

    def allow(self, phone: str, purpose: str, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        since = now - self.settings.rate_limit_window
        count = self.otp_requests.count_recent(phone, purpose, since)
        if count >= self.settings.OTP_RATE_LIMIT_REQUESTS:
            logger.warning(f"OTP rate limit hit for {phone} ({purpose}): {count} requests in window")
            return False
        return True

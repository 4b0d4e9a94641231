import hmac
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.database import utcnow
from ..core.errors import (
    InvalidOtpError,
    InvalidRefreshTokenError,
    OtpAttemptsExceededError,
    OtpExpiredError,
    RateLimitedError,
    UserInactiveError,
    UserNotFoundError,
)
from ..core.sms import SmsSender
from ..models.otp_request import OtpPurpose
from ..models.user import User
from ..models.user_session import UserSession
from ..repositories.user import UserRepository
from .otp_service import OtpService
from .rate_limiter import OtpRateLimiter
from .session_service import SessionService
from .token_service import TokenPair, TokenService

logger = logging.getLogger(__name__)


@dataclass
class VerifyOtpResult:
    user: User
    tokens: TokenPair
    is_new_user: bool
    session: Optional[UserSession] = None


class AuthService:
    """
    Phone login flows: send-OTP, verify-OTP (issuing tokens) and
    refresh-token rotation.
    """

    def __init__(self, db: Session, settings: Settings, sms: SmsSender):
        self.db = db
        self.settings = settings
        self.sms = sms
        self.users = UserRepository(db)
        self.rate_limiter = OtpRateLimiter(db, settings)
        self.otp = OtpService(db, settings)
        self.tokens = TokenService(db, settings)
        self.sessions = SessionService(db)

    def send_otp(self, phone: str, purpose: str, background_tasks: BackgroundTasks) -> dict:
        """
        Issue an OTP for `phone`. Delivery is queued on `background_tasks`
        and runs after the request is committed.
        """
        purpose = OtpPurpose(purpose).value

        if (
            self.settings.REQUIRE_REGISTERED_PHONE_FOR_LOGIN
            and purpose == OtpPurpose.LOGIN.value
            and not self.users.phone_exists(phone)
        ):
            raise UserNotFoundError()

        if not self.rate_limiter.allow(phone, purpose):
            raise RateLimitedError()

        otp_request, code = self.otp.create_request(phone, purpose)

        # A failed SMS does not undo the committed request
        background_tasks.add_task(self._dispatch_otp, phone, code)

        expires_in = int((otp_request.expires_at - otp_request.created_at).total_seconds())
        return {
            "otp_id": otp_request.id,
            "expires_in": expires_in,
            "message": "OTP sent successfully",
        }

    async def _dispatch_otp(self, phone: str, code: str) -> None:
        if not await self.sms.send_otp(phone, code):
            logger.warning(f"OTP SMS to {phone} was not delivered")

    def verify_otp(
        self,
        phone: str,
        otp: str,
        otp_id: str,
        device_info: Optional[dict] = None,
        ip_address: Optional[str] = None,
    ) -> VerifyOtpResult:
        bootstrap = self._is_bootstrap_login(phone, otp)

        if not bootstrap:
            verification = self.otp.verify_request(otp_id, otp, phone=phone)
            if verification.max_attempts_exceeded:
                raise OtpAttemptsExceededError()
            if verification.expired:
                raise OtpExpiredError()
            if not verification.valid:
                raise InvalidOtpError()

        now = utcnow()
        try:
            user = self.users.find_by_phone(phone)
            if user is not None and user.status != "active":
                logger.warning(f"OTP login for inactive user {user.id} refused")
                raise UserInactiveError()
            is_new_user = user is None

            if is_new_user:
                user = self.users.create(
                    phone,
                    phone_verified=True,
                    status="active",
                    user_type="superadmin" if bootstrap else "business_owner",
                    is_superadmin=bootstrap,
                    language_preference="en",
                    last_login_at=now,
                )
                logger.info(f"Created user {user.id} on first OTP login")
            else:
                changes = {"phone_verified": True, "last_login_at": now}
                # Superadmin is only ever granted here, never revoked
                if bootstrap:
                    changes.update(is_superadmin=True, user_type="superadmin")
                self.users.update(user, **changes)

            tokens = self.tokens.issue_pair(user.id, user.phone, user.is_superadmin)
            self.tokens.store_refresh(user.id, tokens.refresh_token, device_info, ip_address, now)
            session = self._track_device(user.id, device_info, ip_address, now)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        return VerifyOtpResult(user=user, tokens=tokens, is_new_user=is_new_user, session=session)

    def refresh_token(self, refresh_token: str, ip_address: Optional[str] = None) -> TokenPair:
        now = utcnow()
        payload = self.tokens.verify_refresh(refresh_token, now)
        if payload is None:
            raise InvalidRefreshTokenError()

        current = self.tokens.find_refresh(refresh_token)
        user_id = payload["sub"]
        new_tokens = self.tokens.issue_pair(user_id, payload["phone"], bool(payload.get("is_superadmin")))

        try:
            # Single use: whoever revokes first wins the rotation
            if not self.tokens.revoke(current, now):
                self.db.rollback()
                raise InvalidRefreshTokenError()

            ip_address = ip_address or current.ip_address
            self.tokens.store_refresh(user_id, new_tokens.refresh_token, current.device_info, ip_address, now)
            self._track_device(user_id, current.device_info, ip_address, now)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Rotated refresh token {current.id} for user {user_id}")
        return new_tokens

    def _track_device(
        self,
        user_id: str,
        device_info: Optional[dict],
        ip_address: Optional[str],
        now: datetime,
    ) -> Optional[UserSession]:
        device_id = (device_info or {}).get("device_id")
        if not device_id:
            return None
        return self.sessions.find_or_create(user_id, str(device_id), device_info, ip_address, now)

    def _is_bootstrap_login(self, phone: str, otp: str) -> bool:
        """
        The configured bootstrap credential creates the first superadmin.
        It stops working as soon as any superadmin exists.
        """
        if not self.settings.bootstrap_enabled or phone != self.settings.BOOTSTRAP_SUPERADMIN_PHONE:
            return False
        if not hmac.compare_digest(otp.encode(), self.settings.BOOTSTRAP_SUPERADMIN_CODE.encode()):
            return False
        if self.users.superadmin_exists():
            logger.warning(f"Bootstrap credential presented for {phone} after a superadmin exists; ignored")
            return False
        logger.warning(f"Bootstrap superadmin credential used for {phone}")
        return True

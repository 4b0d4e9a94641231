import enum
import uuid
from sqlalchemy import Integer, String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from ..core.database import Base, utcnow


class OtpPurpose(str, enum.Enum):
    LOGIN = "login"
    REGISTRATION = "registration"
    VERIFY_PHONE = "verify_phone"
    VERIFY_EMAIL = "verify_email"


class OtpRequest(Base):
    """
    One issued OTP. The raw code is never stored, only its bcrypt hash.
    `expires_at` is fixed at creation; `attempts` only grows; a set
    `verified_at` makes the request terminal.
    """
    __tablename__ = "otp_requests"
    __table_args__ = (Index("ix_otp_requests_phone_purpose_created", "phone", "purpose", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    phone: Mapped[str] = mapped_column(String(15), nullable=False)
    otp_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    purpose: Mapped[str] = mapped_column(String(20), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

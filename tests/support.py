import unittest
from sqlalchemy.orm import sessionmaker

from phoneauth.core.config import Settings
from phoneauth.core.database import Base, build_engine
from phoneauth.models.user import User
from phoneauth.models.otp_request import OtpRequest  # noqa: F401
from phoneauth.models.refresh_token import RefreshToken  # noqa: F401
from phoneauth.models.user_session import UserSession  # noqa: F401

PHONE = "9876543210"
OTHER_PHONE = "9123456780"


def make_settings(**overrides) -> Settings:
    # Pin everything the tests depend on so a local .env cannot leak in
    values = dict(
        SQLALCHEMY_DATABASE_URL="sqlite://",
        JWT_SECRET_KEY="test-access-secret",
        JWT_REFRESH_SECRET_KEY="test-refresh-secret",
        ACCESS_TOKEN_EXPIRE_MINUTES=15,
        REFRESH_TOKEN_EXPIRE_DAYS=30,
        OTP_LENGTH=6,
        OTP_EXPIRE_MINUTES=5,
        OTP_MAX_ATTEMPTS=5,
        OTP_HASH_ROUNDS=4,
        OTP_RATE_LIMIT_REQUESTS=3,
        OTP_RATE_LIMIT_WINDOW_MINUTES=60,
        REQUIRE_REGISTERED_PHONE_FOR_LOGIN=False,
        SMS_API_KEY="",
        BOOTSTRAP_SUPERADMIN_PHONE="",
        BOOTSTRAP_SUPERADMIN_CODE="",
    )
    values.update(overrides)
    return Settings(**values)


class RecordingSms:
    """Stands in for SmsSender and keeps every code it was asked to send."""

    def __init__(self, delivered: bool = True):
        self.delivered = delivered
        self.sent = []

    async def send_otp(self, phone: str, otp_code: str) -> bool:
        self.sent.append((phone, otp_code))
        return self.delivered

    def last_code(self, phone: str = PHONE) -> str:
        codes = [code for sent_phone, code in self.sent if sent_phone == phone]
        if not codes:
            raise AssertionError(f"no OTP sent to {phone}")
        return codes[-1]


def wrong_code(code: str) -> str:
    return "100000" if code != "100000" else "100001"


class DatabaseTestCase(unittest.TestCase):
    """Fresh in-memory database per test."""

    settings_overrides: dict = {}

    def setUp(self):
        self.settings = make_settings(**self.settings_overrides)
        self.engine = build_engine("sqlite://")
        Base.metadata.create_all(bind=self.engine)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.db = self.SessionLocal()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()

    def make_user(self, phone: str = PHONE, **fields) -> User:
        user = User(phone=phone, phone_verified=True, **fields)
        self.db.add(user)
        self.db.commit()
        return user

import os
from dataclasses import dataclass, field
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

# The bootstrap code is compared without an attempt counter
BOOTSTRAP_CODE_MIN_LENGTH = 32


def _env(name: str, default: str = ""):
    return field(default_factory=lambda: os.getenv(name, default))


def _env_int(name: str, default: int):
    return field(default_factory=lambda: int(os.getenv(name, str(default))))


def _env_bool(name: str, default: bool = False):
    return field(default_factory=lambda: os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on"))


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, read from the environment once at startup."""

    APP_NAME: str = "Phone Auth Service"
    SQLALCHEMY_DATABASE_URL: str = _env("DATABASE_URL", "sqlite:///./phoneauth.db")
    CORS_ORIGINS: str = _env("CORS_ORIGINS", "*")
    LOG_LEVEL: str = _env("LOG_LEVEL", "INFO")

    JWT_SECRET_KEY: str = _env("JWT_SECRET_KEY", "change_this_secret")
    JWT_REFRESH_SECRET_KEY: str = _env("JWT_REFRESH_SECRET_KEY", "change_this_refresh_secret")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 15)
    REFRESH_TOKEN_EXPIRE_DAYS: int = _env_int("REFRESH_TOKEN_EXPIRE_DAYS", 30)

    OTP_LENGTH: int = _env_int("OTP_LENGTH", 6)
    OTP_EXPIRE_MINUTES: int = _env_int("OTP_EXPIRE_MINUTES", 5)
    OTP_MAX_ATTEMPTS: int = _env_int("OTP_MAX_ATTEMPTS", 5)
    OTP_HASH_ROUNDS: int = _env_int("OTP_HASH_ROUNDS", 10)
    OTP_RATE_LIMIT_REQUESTS: int = _env_int("OTP_RATE_LIMIT_REQUESTS", 3)
    OTP_RATE_LIMIT_WINDOW_MINUTES: int = _env_int("OTP_RATE_LIMIT_WINDOW_MINUTES", 60)
    REQUIRE_REGISTERED_PHONE_FOR_LOGIN: bool = _env_bool("REQUIRE_REGISTERED_PHONE_FOR_LOGIN")

    # SMS gateway
    SMS_API_URL: str = _env("SMS_API_URL", "https://control.msg91.com/api/v5/flow/")
    SMS_API_KEY: str = _env("SMS_API_KEY", "")
    SMS_SENDER_ID: str = _env("SMS_SENDER_ID", "")
    SMS_TIMEOUT_SECONDS: int = _env_int("SMS_TIMEOUT_SECONDS", 10)

    # One-time bootstrap of the first superadmin. Both must be set to enable it.
    BOOTSTRAP_SUPERADMIN_PHONE: str = _env("BOOTSTRAP_SUPERADMIN_PHONE", "")
    BOOTSTRAP_SUPERADMIN_CODE: str = _env("BOOTSTRAP_SUPERADMIN_CODE", "")

    def __post_init__(self):
        if self.JWT_SECRET_KEY == self.JWT_REFRESH_SECRET_KEY:
            raise ValueError("JWT_SECRET_KEY and JWT_REFRESH_SECRET_KEY must differ")
        if self.OTP_LENGTH < 4:
            raise ValueError("OTP_LENGTH must be at least 4")
        if self.bootstrap_enabled and len(self.BOOTSTRAP_SUPERADMIN_CODE) < BOOTSTRAP_CODE_MIN_LENGTH:
            raise ValueError(f"BOOTSTRAP_SUPERADMIN_CODE must be at least {BOOTSTRAP_CODE_MIN_LENGTH} characters")

    @property
    def otp_ttl(self) -> timedelta:
        return timedelta(minutes=self.OTP_EXPIRE_MINUTES)

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(minutes=self.OTP_RATE_LIMIT_WINDOW_MINUTES)

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.REFRESH_TOKEN_EXPIRE_DAYS)

    @property
    def bootstrap_enabled(self) -> bool:
        return bool(self.BOOTSTRAP_SUPERADMIN_PHONE and self.BOOTSTRAP_SUPERADMIN_CODE)


settings = Settings()

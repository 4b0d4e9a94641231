from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from .core.config import Settings, settings
from .core.database import get_db
from .core.errors import InvalidAccessTokenError
from .core.security import http_bearer
from .core.sms import SmsSender
from .models.user import User
from .repositories.user import UserRepository
from .services.auth_service import AuthService
from .services.session_service import SessionService
from .services.token_service import TokenService
from .services.user_service import UserService


def get_settings() -> Settings:
    return settings


def get_sms_sender(settings: Settings = Depends(get_settings)) -> SmsSender:
    return SmsSender(settings)


def get_auth_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    sms: SmsSender = Depends(get_sms_sender),
) -> AuthService:
    return AuthService(db, settings, sms)


def get_session_service(db: Session = Depends(get_db)) -> SessionService:
    return SessionService(db)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Resolve the bearer access token to an active user."""
    if credentials is None:
        raise InvalidAccessTokenError("Missing bearer token")

    payload = TokenService(db, settings).decode_access(credentials.credentials)
    if payload is None:
        raise InvalidAccessTokenError()

    user = UserRepository(db).get(payload["sub"])
    if user is None:
        raise InvalidAccessTokenError("User not found")
    return user

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import jwt
from fastapi.security import HTTPBearer
from passlib.context import CryptContext


@lru_cache(maxsize=None)
def otp_context(rounds: int) -> CryptContext:
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=rounds,
        bcrypt__truncate_error=False,
    )


def generate_otp(length: int = 6) -> str:
    """Uniformly random numeric code with no leading zero."""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(10 ** length - low))


def hash_otp(code: str, rounds: int) -> str:
    return otp_context(rounds).hash(code)


def verify_otp_hash(code: str, otp_hash: str, rounds: int) -> bool:
    # bcrypt verify is constant-time with respect to the supplied code
    return otp_context(rounds).verify(code, otp_hash)


def hash_refresh_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


def create_token(data: dict, secret: str, algorithm: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": now + expires_delta, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str, expected_type: str) -> Optional[dict]:
    """Return the claims of a valid token of the expected type, else None."""
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.PyJWTError:
        return None
    if payload.get("type") != expected_type or not payload.get("sub"):
        return None
    return payload


# HTTP bearer auth scheme reused across routers
http_bearer = HTTPBearer(auto_error=False)

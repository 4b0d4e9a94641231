from fastapi import status


class AuthError(Exception):
    """
    Base class for caller-visible authentication errors.
    Each subclass maps to a stable HTTP status and error code.
    """
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "AUTH_ERROR"
    message: str = "Authentication error"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class RateLimitedError(AuthError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "OTP_RATE_LIMITED"
    message = "Too many OTP requests. Please try again later."


class InvalidOtpError(AuthError):
    code = "OTP_INVALID"
    message = "Invalid OTP. Please try again."


class OtpExpiredError(AuthError):
    code = "OTP_EXPIRED"
    message = "OTP has expired. Please request a new OTP."


class OtpAttemptsExceededError(AuthError):
    code = "OTP_ATTEMPTS_EXCEEDED"
    message = "Maximum attempts exceeded. Please request a new OTP."


class InvalidRefreshTokenError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "REFRESH_TOKEN_INVALID"
    message = "Invalid or expired refresh token"


class InvalidAccessTokenError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "ACCESS_TOKEN_INVALID"
    message = "Invalid token"


class SessionNotFoundError(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "SESSION_NOT_FOUND"
    message = "Session not found"


class UserNotFoundError(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "USER_NOT_FOUND"
    message = "User not found"


class UserInactiveError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "USER_INACTIVE"
    message = "This account is not active"

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from ..dependencies import get_auth_service
from ..schemas.auth import (
    SendOtpRequest,
    SendOtpResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
    RefreshTokenRequest,
    TokenResponse,
    UserSummary,
)
from ..services.auth_service import AuthService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post("/send-otp", response_model=SendOtpResponse)
def send_otp(
    payload: SendOtpRequest,
    background_tasks: BackgroundTasks,
    auth: AuthService = Depends(get_auth_service),
):
    """Issue an OTP for the phone; the SMS goes out after the response."""
    result = auth.send_otp(payload.phone, payload.purpose.value, background_tasks)
    return SendOtpResponse(**result)


@router.post("/verify-otp", response_model=VerifyOtpResponse)
def verify_otp(payload: VerifyOtpRequest, request: Request, auth: AuthService = Depends(get_auth_service)):
    device_info = payload.device_info.model_dump(exclude_none=True) if payload.device_info else None
    result = auth.verify_otp(
        payload.phone,
        payload.otp,
        payload.otp_id,
        device_info=device_info,
        ip_address=_client_ip(request),
    )
    return VerifyOtpResponse(
        user=UserSummary.model_validate(result.user),
        tokens=TokenResponse(
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
        ),
        is_new_user=result.is_new_user,
    )


@router.post("/refresh-token", response_model=TokenResponse)
def refresh_token(payload: RefreshTokenRequest, request: Request, auth: AuthService = Depends(get_auth_service)):
    tokens = auth.refresh_token(payload.refresh_token, ip_address=_client_ip(request))
    return TokenResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)

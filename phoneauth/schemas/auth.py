from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from ..models.otp_request import OtpPurpose

PHONE_PATTERN = r"^[6-9][0-9]{9}$"


class DeviceInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    device_id: Optional[str] = Field(default=None, max_length=100)
    device_name: Optional[str] = Field(default=None, max_length=100)
    device_os: Optional[str] = Field(default=None, max_length=50)
    app_version: Optional[str] = Field(default=None, max_length=20)

class SendOtpRequest(BaseModel):
    phone: str = Field(pattern=PHONE_PATTERN)
    purpose: OtpPurpose = OtpPurpose.LOGIN

class SendOtpResponse(BaseModel):
    otp_id: str
    expires_in: int
    message: str

class VerifyOtpRequest(BaseModel):
    phone: str = Field(pattern=PHONE_PATTERN)
    otp: str = Field(min_length=4, max_length=128)
    otp_id: str
    device_info: Optional[DeviceInfo] = None

class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    phone: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone_verified: bool
    is_superadmin: bool

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

class VerifyOtpResponse(BaseModel):
    user: UserSummary
    tokens: TokenResponse
    is_new_user: bool

class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(min_length=1)

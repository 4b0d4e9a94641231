from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime

class UserProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    phone: str
    phone_verified: bool
    name: Optional[str] = None
    email: Optional[str] = None
    email_verified: bool
    user_type: str
    language_preference: str
    is_superadmin: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

class UpdateProfileRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    language_preference: Optional[str] = Field(default=None, min_length=2, max_length=10)

class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    device_id: str
    device_name: Optional[str] = None
    device_os: Optional[str] = None
    app_version: Optional[str] = None
    ip_address: Optional[str] = None
    is_active: bool
    last_active_at: datetime
    created_at: datetime

"""
Content API — Auth and profile schemas
"""
from datetime import date, datetime
from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class ProfileUpdate(BaseModel):
    display_name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=32)
    first_name: str | None = Field(None, max_length=128)
    last_name: str | None = Field(None, max_length=128)
    nickname: str | None = Field(None, max_length=128)
    date_of_birth: date | None = None
    gender: str | None = None
    height: float | None = Field(None, gt=0)
    height_unit: str | None = None
    weight: float | None = Field(None, gt=0)
    weight_unit: str | None = None
    activity_level: str | None = None
    dietary_preference: str | None = None
    allergies: list[str] | None = None


class ProfileResponse(ProfileUpdate):
    uid: str
    email: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Registration ──────────────────────────────────────────────

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    display_name: str = Field(..., min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=32)
    provider: str = "email"
    provider_type: str = "local"


class RegisteredUser(BaseModel):
    uid: str
    display_name: str | None
    email: str
    phone: str | None
    provider: str
    provider_type: str
    created_at: datetime
    last_sign_in_at: datetime | None

    model_config = {"from_attributes": True}


class RegisterResponse(BaseModel):
    message: str = "Account created successfully"
    user: RegisteredUser


class EmailAvailability(BaseModel):
    email: str
    is_available: bool


# ── Admin-managed members ─────────────────────────────────────

class MemberCreate(BaseModel):
    nickname: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    subscription_status: str | None = None


class MemberUpdate(BaseModel):
    nickname: str | None = Field(None, min_length=1, max_length=128)
    email: EmailStr | None = None
    subscription_status: str | None = None


class MemberSummary(BaseModel):
    user_id: str
    nickname: str
    email: str

    model_config = {"from_attributes": True}


class MemberResponse(MemberSummary):
    user_type: str
    subscription_status: str
    created_at: datetime

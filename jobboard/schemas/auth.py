"""Authentication schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from jobboard.core.roles import SELF_REGISTERABLE_ROLES, Role
from jobboard.utils.validators import validate_password_strength


class CamelModel(BaseModel):
    """JSON bodies use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_password(value: str) -> str:
    is_valid, errors = validate_password_strength(value)
    if not is_valid:
        raise ValueError(". ".join(errors))
    return value


class RegisterRequest(CamelModel):
    """Register request schema."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str
    role: Optional[Role] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v: Optional[Role]) -> Optional[Role]:
        if v is not None and v not in SELF_REGISTERABLE_ROLES:
            raise ValueError("Role must be applicant or employer")
        return v


class LoginRequest(CamelModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(CamelModel):
    """Fallback body for clients that cannot send the refresh cookie."""

    refresh_token: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    password: str

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _check_password(v)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, v: str) -> str:
        return _check_password(v)


class UserResponse(CamelModel):
    """Public view of a user; never includes secrets."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    name: str
    email: str
    role: Role
    avatar: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AuthData(CamelModel):
    user: UserResponse
    access_token: str


class AuthResponse(CamelModel):
    """Register / login response schema."""

    status: str = "success"
    data: AuthData


class AccessTokenData(CamelModel):
    access_token: str


class TokenResponse(CamelModel):
    status: str = "success"
    data: AccessTokenData
    message: Optional[str] = None


class UserData(CamelModel):
    user: UserResponse


class UserEnvelope(CamelModel):
    status: str = "success"
    data: UserData


class MessageResponse(CamelModel):
    status: str = "success"
    message: str
    reset_url: Optional[str] = None

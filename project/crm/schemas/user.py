# crm/schemas/user.py

from typing import Literal, Optional
from pydantic import EmailStr, Field

from crm.schemas.base import CamelModel

Role = Literal["admin", "builder", "channel_partner", "customer"]


class SignupRequest(CamelModel):
    """
    Регистрация. Если роль не указана, пользователь становится channel_partner
    (см. services/auth.py, DEFAULT_SIGNUP_ROLE).
    """
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)
    full_name: str = Field(..., min_length=2, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    role: Optional[Role] = None


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(CamelModel):
    """Передаются только те поля, которые нужно изменить."""
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)


class PasswordChange(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=256)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=256)


class VerifyEmailRequest(CamelModel):
    token: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    """Публичная проекция пользователя."""
    id: str
    email: str
    full_name: str
    phone: Optional[str] = None
    role: str
    email_verified: bool
    referral_code: Optional[str] = None

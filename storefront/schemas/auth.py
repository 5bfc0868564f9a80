"""
Pydantic схемы аутентификации и профиля.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from storefront.schemas.base import PartialUpdate


class RegisterRequest(BaseModel):
    """Регистрация. Для SUPER_ADMIN нужен invite_token."""

    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    is_agree: bool = False
    role: Optional[str] = None
    invite_token: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(PartialUpdate):
    NULLABLE = ("phone", "avatar_url")
    REQUIRED_TEXT = ("first_name", "last_name")

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    avatar_url: Optional[str] = None


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordReset(BaseModel):
    token: str
    new_password: str = Field(..., min_length=6)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)

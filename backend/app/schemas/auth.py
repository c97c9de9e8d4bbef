"""Schemas for authentication endpoints."""

import re

from pydantic import BaseModel, EmailStr, Field, constr, field_validator

from app.schemas.users import UserRead

PHONE_PATTERN = r"^\+?[1-9]\d{7,14}$"
_PASSWORD_RULES = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])")


class SignupRequest(BaseModel):
    """Payload for creating a new account."""

    name: constr(strip_whitespace=True, min_length=2, max_length=100) = Field(
        ..., description="Display name shown to contacts"
    )
    email: EmailStr = Field(..., description="Unique e-mail address used to log in")
    phone: constr(pattern=PHONE_PATTERN) = Field(..., description="Unique phone number in E.164 form")
    password: constr(min_length=8, max_length=128) = Field(
        ..., description="Plain text password that will be hashed before storing"
    )

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, value: str) -> str:
        if not _PASSWORD_RULES.match(value):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, "
                "one number, and one special character"
            )
        return value


class LoginRequest(BaseModel):
    """Payload for user login."""

    email: EmailStr = Field(..., description="Account e-mail")
    password: constr(min_length=1, max_length=128) = Field(..., description="Account password")


class Token(BaseModel):
    """Token pair returned after successful authentication."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type, always 'bearer'")
    refresh_token: str = Field(..., description="Opaque refresh token")
    expires_in: int = Field(..., description="Number of seconds until the access token expires")


class AuthSession(BaseModel):
    """Account and tokens returned by signup and login."""

    user: UserRead
    tokens: Token


class RefreshRequest(BaseModel):
    """Payload carrying a refresh token."""

    refresh_token: constr(min_length=1) = Field(..., description="Refresh token issued at login")

"""Authentication-related schemas."""
from __future__ import annotations

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, Field, field_validator

from opslink.schemas.user import UserRead


class SignupRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    discord_username: str = Field(..., min_length=2, max_length=64)
    discord_user_id: str = Field(..., min_length=1, max_length=64)
    discord_tag: str | None = Field(default=None, max_length=16)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        """Format check only; the address is stored exactly as entered."""
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValueError(str(exc)) from exc
        return value


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class EmailRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=256)
    password: str = Field(..., min_length=8, max_length=128)


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserRead


class MessageResponse(BaseModel):
    message: str


class PairingCode(BaseModel):
    code: str
    expires_in: int


class PairingClaim(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)

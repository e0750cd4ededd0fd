"""Authentication endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.core.config import get_settings
from opslink.core.dependencies import get_current_user, get_db, get_mailer
from opslink.core.errors import InvalidOrExpiredToken
from opslink.core.security import issue_access_token
from opslink.models.user import User
from opslink.schemas.auth import (
    EmailRequest,
    LoginRequest,
    MessageResponse,
    PairingClaim,
    PairingCode,
    ResetPasswordRequest,
    SignupRequest,
    TokenResponse,
)
from opslink.schemas.user import UserRead
from opslink.services import users as user_service
from opslink.services.notifications import Mailer
from opslink.services.pairing import claim_pairing_code, create_pairing_code, get_pairing_store

router = APIRouter(tags=["auth"])


@router.post("/signup", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: SignupRequest,
    session: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    await user_service.register_user(session, payload, mailer)
    await session.commit()
    return MessageResponse(message="Account created. Check your email to verify your account.")


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_db)) -> TokenResponse:
    token, user = await user_service.login(session, payload.email, payload.password)
    await session.commit()
    return TokenResponse(token=token, user=UserRead.model_validate(user))


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    payload: EmailRequest,
    session: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    await user_service.resend_verification(session, payload.email, mailer)
    await session.commit()
    return MessageResponse(message="Verification email sent")


@router.get("/verify-email")
async def verify_email(token: str | None = None, session: AsyncSession = Depends(get_db)) -> RedirectResponse:
    frontend = get_settings().frontend_url.rstrip("/")
    user = await user_service.verify_email(session, token)
    if not user:
        return RedirectResponse(f"{frontend}/verify-failed", status_code=status.HTTP_302_FOUND)
    await session.commit()
    return RedirectResponse(f"{frontend}/verify-success", status_code=status.HTTP_302_FOUND)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: EmailRequest,
    session: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    await user_service.request_password_reset(session, payload.email, mailer)
    await session.commit()
    return MessageResponse(message="Password reset email sent")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(payload: ResetPasswordRequest, session: AsyncSession = Depends(get_db)) -> MessageResponse:
    await user_service.reset_password(session, payload.token, payload.password)
    await session.commit()
    return MessageResponse(message="Password updated. Please log in again.")


@router.post("/pairing", response_model=PairingCode, status_code=status.HTTP_201_CREATED)
async def create_pairing(current_user: User = Depends(get_current_user)) -> PairingCode:
    store = get_pairing_store()
    return PairingCode(code=create_pairing_code(current_user.id, store), expires_in=int(store.ttl))


@router.post("/pairing/claim", response_model=TokenResponse)
async def claim_pairing(payload: PairingClaim, session: AsyncSession = Depends(get_db)) -> TokenResponse:
    user_id = claim_pairing_code(payload.code)
    user = await user_service.get_user(session, user_id) if user_id is not None else None
    if not user:
        raise InvalidOrExpiredToken("Invalid or expired pairing code")
    token = issue_access_token(user.id, user.token_version)
    return TokenResponse(token=token, user=UserRead.model_validate(user))

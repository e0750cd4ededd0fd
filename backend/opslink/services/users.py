"""User service functions for registration, verification and sessions."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.core.config import get_settings
from opslink.core.errors import (
    Conflict,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFound,
    SessionExpired,
    Unauthenticated,
    Unverified,
    ValidationError,
)
from opslink.core.security import (
    PasswordHasher,
    access_token_signer,
    generate_token,
    hash_token,
    issue_access_token,
)
from opslink.models.user import User
from opslink.schemas.auth import SignupRequest
from opslink.services.notifications import Mailer

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def get_user(session: AsyncSession, user_id: int) -> User | None:
    return await session.get(User, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_discord_username(session: AsyncSession, discord_username: str) -> User | None:
    result = await session.execute(select(User).where(User.discord_username == discord_username))
    return result.scalar_one_or_none()


def _assign_verification_token(user: User) -> str:
    settings = get_settings()
    token = generate_token()
    user.email_verification_token = hash_token(token)
    user.email_verification_expires = _now() + timedelta(hours=settings.verification_token_ttl_hours)
    return token


async def register_user(session: AsyncSession, data: SignupRequest, mailer: Mailer) -> User:
    """Create an unverified account and mail its verification link.

    Uniqueness is checked field by field so the caller learns which one
    collided. A mail failure propagates and the caller must roll back.
    """
    if await get_user_by_email(session, data.email):
        raise Conflict("Account with this email already exists", field="email")
    if await get_user_by_discord_username(session, data.discord_username):
        raise Conflict("Account with this Discord username already exists", field="discord_username")
    result = await session.execute(select(User.id).where(User.discord_user_id == data.discord_user_id))
    if result.first() is not None:
        raise Conflict("Account with this Discord ID already exists", field="discord_user_id")

    user = User(
        email=data.email,
        password_hash=PasswordHasher.hash(data.password),
        discord_username=data.discord_username,
        discord_user_id=data.discord_user_id,
        discord_tag=data.discord_tag,
        role="user",
        is_verified=False,
        token_version=0,
    )
    token = _assign_verification_token(user)
    session.add(user)
    await session.flush()

    await mailer.send_verification_email(user.email, token)
    logger.info("Registered user %s", user.id)
    return user


async def resend_verification(session: AsyncSession, email: str, mailer: Mailer) -> None:
    user = await get_user_by_email(session, email)
    if not user:
        raise NotFound("User not found")
    if user.is_verified:
        raise ValidationError("Email is already verified")
    token = _assign_verification_token(user)
    await session.flush()
    await mailer.send_verification_email(user.email, token)


async def verify_email(session: AsyncSession, token: str | None) -> User | None:
    """Mark the matching account verified; ``None`` when no live token matches."""

    if not token:
        return None
    result = await session.execute(
        select(User).where(
            User.email_verification_token == hash_token(token),
            User.email_verification_expires > _now(),
        )
    )
    user = result.scalar_one_or_none()
    if not user:
        return None
    user.is_verified = True
    user.email_verification_token = None
    user.email_verification_expires = None
    await session.flush()
    return user


async def authenticate_user(session: AsyncSession, email: str, password: str) -> User:
    user = await get_user_by_email(session, email)
    if not user or not PasswordHasher.verify(password, user.password_hash):
        raise InvalidCredentials()
    if not user.is_verified:
        raise Unverified()
    if PasswordHasher.needs_rehash(user.password_hash):
        user.password_hash = PasswordHasher.hash(password)
        await session.flush()
    return user


async def login(session: AsyncSession, email: str, password: str) -> tuple[str, User]:
    user = await authenticate_user(session, email, password)
    return issue_access_token(user.id, user.token_version), user


async def request_password_reset(session: AsyncSession, email: str, mailer: Mailer) -> None:
    settings = get_settings()
    user = await get_user_by_email(session, email)
    if not user:
        raise NotFound("User not found")
    token = generate_token()
    user.password_reset_token = hash_token(token)
    user.password_reset_expires = _now() + timedelta(minutes=settings.reset_token_ttl_minutes)
    await session.flush()
    await mailer.send_password_reset_email(user.email, token)


async def reset_password(session: AsyncSession, token: str, new_password: str) -> User:
    """Replace the password and bump the session epoch, revoking every issued token."""

    result = await session.execute(
        select(User).where(
            User.password_reset_token == hash_token(token),
            User.password_reset_expires > _now(),
        )
    )
    user = result.scalar_one_or_none()
    if not user:
        raise InvalidOrExpiredToken()
    user.password_hash = PasswordHasher.hash(new_password)
    user.password_reset_token = None
    user.password_reset_expires = None
    user.token_version = (user.token_version or 0) + 1
    await session.flush()
    logger.info("Password reset for user %s, session epoch now %s", user.id, user.token_version)
    return user


async def resolve_session(session: AsyncSession, token: str | None) -> User:
    """Return the user a bearer credential belongs to.

    A credential without a ``ver`` claim counts as epoch 0.
    """
    if not token:
        raise Unauthenticated()
    try:
        payload = access_token_signer().loads(token)
    except ValueError as exc:
        raise Unauthenticated() from exc

    user_id = payload.get("sub")
    if not isinstance(user_id, int):
        raise Unauthenticated("Invalid token payload")

    user = await get_user(session, user_id)
    if not user:
        raise Unauthenticated()

    if payload.get("ver", 0) != user.token_version:
        raise SessionExpired()
    return user


async def search_users(session: AsyncSession, query: str | None, limit: int = 10) -> list[User]:
    query = (query or "").strip()
    if not query:
        return []
    escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    result = await session.execute(
        select(User)
        .where(func.lower(User.discord_username).like(f"%{escaped}%", escape="\\"))
        .order_by(User.discord_username)
        .limit(limit)
    )
    return list(result.scalars().all())


async def purge_expired_tokens(session: AsyncSession) -> None:
    """Clear expired verification and reset token pairs."""

    now = _now()
    await session.execute(
        update(User)
        .where(User.email_verification_expires.is_not(None), User.email_verification_expires <= now)
        .values(email_verification_token=None, email_verification_expires=None)
    )
    await session.execute(
        update(User)
        .where(User.password_reset_expires.is_not(None), User.password_reset_expires <= now)
        .values(password_reset_token=None, password_reset_expires=None)
    )

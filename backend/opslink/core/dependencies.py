"""Reusable dependencies for FastAPI routes."""
from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.core.config import get_settings
from opslink.core.errors import Forbidden, Unauthenticated, Unverified
from opslink.core.policy import Capability, authorize
from opslink.core.security import SecretManager
from opslink.db.session import get_session
from opslink.models.user import User
from opslink.services.notifications import Mailer, NotificationDispatcher
from opslink.services.oauth import ProviderRegistry, build_registry
from opslink.services.users import resolve_session


async def get_db() -> AsyncIterator[AsyncSession]:
    async with get_session() as session:
        yield session


async def get_secret_manager() -> SecretManager:
    return SecretManager()


async def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher.from_settings()


async def get_mailer() -> Mailer:
    return Mailer()


async def get_provider_registry() -> ProviderRegistry:
    return build_registry()


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_db),
) -> User:
    return await resolve_session(session, _bearer_token(authorization))


async def get_optional_user(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_db),
) -> User | None:
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        return await resolve_session(session, token)
    except Unauthenticated:
        return None


async def get_verified_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_verified:
        raise Unverified()
    return current_user


def require_capability(capability: Capability) -> Callable[..., Awaitable[User]]:
    """Dependency factory enforcing the authorization policy for a capability."""

    async def _dependency(current_user: User = Depends(get_current_user)) -> User:
        authorize(current_user, capability)
        return current_user

    return _dependency


async def require_bot(x_bot_token: str | None = Header(default=None)) -> None:
    """Gate bot-only endpoints when a bot key is configured."""

    expected = get_settings().bot_api_key
    if expected and x_bot_token != expected:
        raise Forbidden("Invalid bot token")

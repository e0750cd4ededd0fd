"""Service layer for public profiles, hand-added socials and OAuth links."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.core.config import get_settings
from opslink.core.errors import Forbidden, NotFound, ValidationError
from opslink.core.policy import Capability, is_allowed
from opslink.core.security import SecretManager, SessionSigner
from opslink.models.user import SocialConnection, SocialProfile, User
from opslink.schemas.profile import ConnectionRead, DiscordWidget, ProfileRead, SocialRead
from opslink.services.oauth import OAuthError, OAuthProvider, ProviderRegistry

logger = logging.getLogger(__name__)

OAUTH_STATE_SALT = "opslink-oauth-state"

SOCIAL_URL_TEMPLATES = {
    "twitter": "https://twitter.com/{handle}",
    "instagram": "https://instagram.com/{handle}",
    "github": "https://github.com/{handle}",
    "discord": "https://discord.com/users/{handle}",
    "tiktok": "https://www.tiktok.com/@{handle}",
    "linkedin": "https://linkedin.com/in/{handle}",
}


def social_url(platform: str, handle: str) -> str:
    template = SOCIAL_URL_TEMPLATES.get(platform)
    return template.format(handle=handle) if template else handle


async def list_socials(session: AsyncSession, user_id: int) -> list[SocialProfile]:
    result = await session.execute(
        select(SocialProfile).where(SocialProfile.user_id == user_id).order_by(SocialProfile.id)
    )
    return list(result.scalars().all())


async def list_connections(session: AsyncSession, user_id: int) -> list[SocialConnection]:
    result = await session.execute(
        select(SocialConnection).where(SocialConnection.user_id == user_id).order_by(SocialConnection.provider)
    )
    return list(result.scalars().all())


def _widget(user: User) -> DiscordWidget | None:
    if not user.discord_user_id:
        return None
    avatar = (
        f"https://cdn.discordapp.com/avatars/{user.discord_user_id}/{user.discord_avatar}.png"
        if user.discord_avatar
        else "https://cdn.discordapp.com/embed/avatars/0.png"
    )
    return DiscordWidget(
        avatar=avatar,
        username=user.discord_username or "",
        status=user.discord_status or "offline",
        activity=user.discord_activity or "",
        badges=list(user.discord_badges or []),
    )


async def build_profile(session: AsyncSession, user_id: int | None, requester: User | None) -> ProfileRead:
    """Public view of a user; email and Discord id only for self or privileged viewers."""

    if user_id is None and requester is not None:
        user = requester
    else:
        user = await session.get(User, user_id)
        if not user:
            raise NotFound("User not found")

    profile = ProfileRead(
        id=user.id,
        discord_username=user.discord_username or "",
        discord_tag=user.discord_tag or "",
        role=user.role or "user",
        is_verified=bool(user.is_verified),
        socials=[SocialRead.model_validate(item) for item in await list_socials(session, user.id)],
        discord_widget=_widget(user),
    )
    is_self = requester is not None and requester.id == user.id
    if is_self or is_allowed(requester, Capability.VIEW_PRIVATE_PROFILE):
        profile.email = user.email
        profile.discord_user_id = user.discord_user_id
    return profile


async def build_connections(session: AsyncSession, user_id: int | None, requester: User | None) -> list[ConnectionRead]:
    if user_id is None and requester is not None:
        user_id = requester.id
    elif not await session.get(User, user_id):
        raise NotFound("User not found")

    items = [
        ConnectionRead(platform=link.provider, username=link.username or "", profile_url=link.profile_url or "")
        for link in await list_connections(session, user_id)
    ]
    items.extend(
        ConnectionRead(platform=social.platform, username=social.handle, profile_url=social.url)
        for social in await list_socials(session, user_id)
    )
    return items


async def add_social(session: AsyncSession, user: User, platform: str | None, handle: str | None) -> SocialProfile:
    if not platform or not platform.strip() or not handle or not handle.strip():
        raise ValidationError("Platform and handle required")
    platform = platform.strip().lower()
    handle = handle.strip()
    social = SocialProfile(user_id=user.id, platform=platform, handle=handle, url=social_url(platform, handle))
    session.add(social)
    await session.flush()
    return social


async def delete_social(session: AsyncSession, user: User, social_id: int) -> None:
    social = await session.get(SocialProfile, social_id)
    if not social:
        raise NotFound("Social not found")
    if social.user_id != user.id:
        raise Forbidden("Not allowed")
    await session.delete(social)
    await session.flush()


def require_provider(registry: ProviderRegistry, name: str) -> OAuthProvider:
    provider = registry.get(name)
    if provider is None:
        raise NotFound(f"Unknown provider '{name}'")
    if not provider.configured:
        raise ValidationError(f"Provider '{name}' is not configured")
    return provider


def _state_signer() -> SessionSigner:
    return SessionSigner(OAUTH_STATE_SALT, max_age=get_settings().oauth_state_ttl_seconds)


def issue_oauth_state(user: User, provider: str) -> str:
    return _state_signer().dumps({"sub": user.id, "provider": provider})


def read_oauth_state(state: str | None, provider: str) -> int | None:
    if not state:
        return None
    try:
        payload = _state_signer().loads(state)
    except ValueError:
        return None
    if payload.get("provider") != provider or not isinstance(payload.get("sub"), int):
        return None
    return payload["sub"]


async def link_account(
    session: AsyncSession,
    provider: OAuthProvider,
    user_id: int,
    code: str,
    secret_manager: SecretManager,
) -> SocialConnection:
    """Complete the authorization-code flow and store the link with encrypted tokens."""

    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    try:
        tokens = await provider.exchange_code(code)
        identity = provider.extract_identity(await provider.fetch_profile(tokens))
    except (OAuthError, ValueError) as exc:
        logger.warning("OAuth link for %s failed: %s", provider.name, exc)
        raise ValidationError(f"Could not connect {provider.name}") from exc

    result = await session.execute(
        select(SocialConnection).where(SocialConnection.user_id == user.id, SocialConnection.provider == provider.name)
    )
    link = result.scalar_one_or_none()
    if link is None:
        link = SocialConnection(user_id=user.id, provider=provider.name)
        session.add(link)
    link.username = identity.username
    link.profile_url = identity.profile_url
    link.access_token_encrypted = secret_manager.encrypt(tokens.access_token)
    link.refresh_token_encrypted = secret_manager.encrypt(tokens.refresh_token)
    await session.flush()
    logger.info("Linked %s account for user %s", provider.name, user.id)
    return link


async def unlink_account(session: AsyncSession, user: User, provider: str) -> None:
    result = await session.execute(
        select(SocialConnection).where(SocialConnection.user_id == user.id, SocialConnection.provider == provider)
    )
    link = result.scalar_one_or_none()
    if not link:
        raise NotFound(f"No {provider} connection")
    await session.delete(link)
    await session.flush()

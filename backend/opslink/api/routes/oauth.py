"""OAuth social account linking endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.core.config import get_settings
from opslink.core.dependencies import get_current_user, get_db, get_provider_registry, get_secret_manager
from opslink.core.errors import NotFound, ValidationError
from opslink.core.security import SecretManager
from opslink.models.user import User
from opslink.schemas.auth import MessageResponse
from opslink.schemas.profile import AuthorizationUrl
from opslink.services import profiles as profile_service
from opslink.services.oauth import ProviderRegistry

router = APIRouter(prefix="/oauth", tags=["oauth"])


@router.get("/{provider}/authorize", response_model=AuthorizationUrl)
async def authorize(
    provider: str,
    registry: ProviderRegistry = Depends(get_provider_registry),
    current_user: User = Depends(get_current_user),
) -> AuthorizationUrl:
    oauth_provider = profile_service.require_provider(registry, provider)
    state = profile_service.issue_oauth_state(current_user, oauth_provider.name)
    return AuthorizationUrl(url=oauth_provider.authorization_url(state))


@router.get("/{provider}/callback")
async def callback(
    provider: str,
    code: str | None = None,
    state: str | None = None,
    session: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
    secret_manager: SecretManager = Depends(get_secret_manager),
) -> RedirectResponse:
    oauth_provider = profile_service.require_provider(registry, provider)
    frontend = get_settings().frontend_url.rstrip("/")
    user_id = profile_service.read_oauth_state(state, oauth_provider.name)
    if user_id is None or not code:
        return RedirectResponse(f"{frontend}/profile?connected={provider}&status=failed", status_code=302)
    try:
        await profile_service.link_account(session, oauth_provider, user_id, code, secret_manager)
    except ValidationError:
        return RedirectResponse(f"{frontend}/profile?connected={provider}&status=failed", status_code=302)
    await session.commit()
    return RedirectResponse(f"{frontend}/profile?connected={provider}&status=success", status_code=302)


@router.delete("/{provider}", response_model=MessageResponse)
async def unlink(
    provider: str,
    session: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    if registry.get(provider) is None:
        raise NotFound(f"Unknown provider '{provider}'")
    await profile_service.unlink_account(session, current_user, provider)
    await session.commit()
    return MessageResponse(message=f"{provider} disconnected")

"""Profile and hand-added social link endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.core.dependencies import get_current_user, get_db, get_optional_user
from opslink.models.user import User
from opslink.schemas.auth import MessageResponse
from opslink.schemas.profile import ConnectionList, ProfileRead, SocialCreate, SocialRead
from opslink.services import profiles as profile_service

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileRead, response_model_exclude_none=True)
async def get_own_profile(
    session: AsyncSession = Depends(get_db),
    requester: User = Depends(get_current_user),
) -> ProfileRead:
    return await profile_service.build_profile(session, None, requester)


@router.get("/connections", response_model=ConnectionList)
async def get_own_connections(
    session: AsyncSession = Depends(get_db),
    requester: User = Depends(get_current_user),
) -> ConnectionList:
    return ConnectionList(socials=await profile_service.build_connections(session, None, requester))


@router.post("/socials", response_model=SocialRead, status_code=status.HTTP_201_CREATED)
async def add_social(
    payload: SocialCreate,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SocialRead:
    social = await profile_service.add_social(session, current_user, payload.platform, payload.handle)
    await session.commit()
    return SocialRead.model_validate(social)


@router.delete("/socials/{social_id}", response_model=MessageResponse)
async def delete_social(
    social_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    await profile_service.delete_social(session, current_user, social_id)
    await session.commit()
    return MessageResponse(message="Social removed")


@router.get("/{user_id}", response_model=ProfileRead, response_model_exclude_none=True)
async def get_profile(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    requester: User | None = Depends(get_optional_user),
) -> ProfileRead:
    return await profile_service.build_profile(session, user_id, requester)


@router.get("/{user_id}/connections", response_model=ConnectionList)
async def get_connections(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    requester: User | None = Depends(get_optional_user),
) -> ConnectionList:
    return ConnectionList(socials=await profile_service.build_connections(session, user_id, requester))

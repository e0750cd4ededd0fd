"""Current-user and user search endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.core.dependencies import get_current_user, get_db
from opslink.models.user import User
from opslink.schemas.user import UserRead, UserSearchResult
from opslink.services import users as user_service

router = APIRouter(tags=["users"])


@router.get("/user", response_model=UserRead)
async def get_me(current_user: User = Depends(get_current_user)) -> UserRead:
    return UserRead.model_validate(current_user)


@router.get("/users/search", response_model=list[UserSearchResult])
async def search_users(
    q: str | None = None,
    session: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_user),
) -> list[UserSearchResult]:
    users = await user_service.search_users(session, q)
    return [UserSearchResult(username=user.discord_username, role=user.role) for user in users]

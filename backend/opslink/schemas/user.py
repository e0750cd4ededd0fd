"""Pydantic schemas for user records."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserRead(BaseModel):
    id: int
    email: str
    discord_username: str
    discord_user_id: str
    discord_tag: str | None = None
    role: str
    is_verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserSearchResult(BaseModel):
    username: str
    role: str

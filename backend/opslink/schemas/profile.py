"""Pydantic schemas for public profiles and social links."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SocialCreate(BaseModel):
    platform: str | None = Field(default=None, max_length=32)
    handle: str | None = Field(default=None, max_length=128)


class SocialRead(BaseModel):
    id: int
    platform: str
    handle: str
    url: str

    model_config = ConfigDict(from_attributes=True)


class ConnectionRead(BaseModel):
    platform: str
    connected: bool = True
    username: str = ""
    profile_url: str = ""


class ConnectionList(BaseModel):
    socials: list[ConnectionRead]


class DiscordWidget(BaseModel):
    avatar: str
    username: str
    status: str
    activity: str
    badges: list[str]


class ProfileRead(BaseModel):
    id: int
    discord_username: str
    discord_tag: str
    role: str
    is_verified: bool
    email: str | None = None
    discord_user_id: str | None = None
    socials: list[SocialRead] = []
    discord_widget: DiscordWidget | None = None


class AuthorizationUrl(BaseModel):
    url: str

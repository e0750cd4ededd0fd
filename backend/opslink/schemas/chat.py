"""Pydantic schemas for direct messages."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ParticipantRead(BaseModel):
    id: int
    discord_username: str

    model_config = ConfigDict(from_attributes=True)


class ChatSummary(BaseModel):
    id: int
    participants: list[ParticipantRead]
    last_message: str
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatMessageRead(BaseModel):
    id: int
    sender_id: int
    sender_username: str
    content: str
    created_at: datetime


class ChatRead(BaseModel):
    id: int
    participants: list[ParticipantRead]
    messages: list[ChatMessageRead]


class ChatStart(BaseModel):
    username: str | None = None


class ChatStarted(BaseModel):
    chat_id: int


class MessageCreate(BaseModel):
    content: str | None = Field(default=None, max_length=4000)

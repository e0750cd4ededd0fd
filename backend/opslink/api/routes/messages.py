"""Direct message endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.core.dependencies import get_current_user, get_db
from opslink.models.user import User
from opslink.schemas.auth import MessageResponse
from opslink.schemas.chat import (
    ChatMessageRead,
    ChatRead,
    ChatStart,
    ChatStarted,
    ChatSummary,
    MessageCreate,
    ParticipantRead,
)
from opslink.services import chats as chat_service

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=list[ChatSummary])
async def list_chats(
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ChatSummary]:
    chats = await chat_service.list_chats(session, current_user)
    return [ChatSummary.model_validate(chat) for chat in chats]


@router.post("/start", response_model=ChatStarted)
async def start_chat(
    payload: ChatStart,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChatStarted:
    chat = await chat_service.start_chat(session, current_user, payload.username)
    await session.commit()
    return ChatStarted(chat_id=chat.id)


@router.get("/{chat_id}", response_model=ChatRead)
async def get_chat(
    chat_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChatRead:
    chat = await chat_service.get_chat(session, chat_id, current_user)
    return ChatRead(
        id=chat.id,
        participants=[ParticipantRead.model_validate(item) for item in chat.participants],
        messages=[
            ChatMessageRead(
                id=message.id,
                sender_id=message.sender_id,
                sender_username=message.sender.discord_username,
                content=message.content,
                created_at=message.created_at,
            )
            for message in chat.messages
        ],
    )


@router.post("/{chat_id}", response_model=MessageResponse)
async def send_message(
    chat_id: int,
    payload: MessageCreate,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    await chat_service.send_message(session, chat_id, current_user, payload.content)
    await session.commit()
    return MessageResponse(message="Message sent")

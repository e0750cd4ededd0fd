"""Service layer for two-party direct messages."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from opslink.core.errors import Forbidden, NotFound, ValidationError
from opslink.models.chat import Chat, ChatMessage, chat_participants
from opslink.models.user import User, utcnow
from opslink.services.users import get_user_by_discord_username


def _load_options():
    return (
        selectinload(Chat.participants),
        selectinload(Chat.messages).selectinload(ChatMessage.sender),
    )


async def list_chats(session: AsyncSession, user: User) -> list[Chat]:
    result = await session.execute(
        select(Chat)
        .join(chat_participants, chat_participants.c.chat_id == Chat.id)
        .where(chat_participants.c.user_id == user.id)
        .options(*_load_options())
        .order_by(Chat.updated_at.desc(), Chat.id.desc())
    )
    return list(result.scalars().unique().all())


async def get_chat(session: AsyncSession, chat_id: int, user: User) -> Chat:
    result = await session.execute(select(Chat).options(*_load_options()).where(Chat.id == chat_id))
    chat = result.scalar_one_or_none()
    if not chat:
        raise NotFound("Chat not found")
    if user.id not in {participant.id for participant in chat.participants}:
        raise Forbidden("Not a participant of this chat")
    return chat


async def start_chat(session: AsyncSession, user: User, username: str | None) -> Chat:
    """Return the existing chat between the two users or open a new one."""

    if not username or not username.strip():
        raise ValidationError("Username is required")
    target = await get_user_by_discord_username(session, username.strip())
    if not target:
        raise NotFound("User not found")
    if target.id == user.id:
        raise ValidationError("Cannot start a chat with yourself")

    for chat in await list_chats(session, user):
        if {participant.id for participant in chat.participants} == {user.id, target.id}:
            return chat

    chat = Chat(participants=[user, target], messages=[])
    session.add(chat)
    await session.flush()
    return chat


async def send_message(session: AsyncSession, chat_id: int, user: User, content: str | None) -> ChatMessage:
    if not content or not content.strip():
        raise ValidationError("Message content is required")
    chat = await get_chat(session, chat_id, user)
    message = ChatMessage(sender_id=user.id, content=content.strip())
    chat.messages.append(message)
    chat.updated_at = utcnow()
    await session.flush()
    return message

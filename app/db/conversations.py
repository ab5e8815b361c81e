"""Conversation persistence for the chatbot."""

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.messages import MessageRole
from app.db.models import Conversation, Message

SNIPPET_LENGTH = 100


@dataclass
class ConversationSummary:
    """Conversation metadata for the admin list."""

    conversation: Conversation
    message_count: int
    last_message: str


class ConversationStore:
    """Database-backed store of conversations and their messages."""

    def __init__(self, db: AsyncSession):
        """Initialize the store.

        Args:
            db: SQLAlchemy async session.
        """
        self._db = db

    async def create(
        self,
        user_name: str | None = None,
        user_email: str | None = None,
        is_logged: bool = True,
    ) -> Conversation:
        """Create a conversation with a fresh server-issued session id."""
        conversation = Conversation(
            session_id=str(uuid.uuid4()),
            user_name=user_name,
            user_email=user_email,
            is_logged=is_logged,
        )
        self._db.add(conversation)
        await self._db.flush()
        return conversation

    async def rollback(self) -> None:
        """Discard unflushed and uncommitted changes from an abandoned turn."""
        await self._db.rollback()

    async def get_by_session_id(self, session_id: str) -> Conversation | None:
        result = await self._db.execute(
            select(Conversation).where(Conversation.session_id == session_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        session_id: str,
        user_name: str | None = None,
        user_email: str | None = None,
        is_logged: bool = True,
    ) -> Conversation:
        """Find the conversation for a session id, creating it if missing.

        Creation is a single insert-or-ignore on the unique session id, so
        two concurrent first messages end up sharing one conversation.
        """
        values = {
            "session_id": session_id,
            "user_name": user_name,
            "user_email": user_email,
            "is_logged": is_logged,
        }
        dialect = self._db.bind.dialect.name if self._db.bind is not None else ""

        match dialect:
            case "postgresql":
                stmt = postgresql.insert(Conversation).values(**values)
            case "sqlite":
                stmt = sqlite.insert(Conversation).values(**values)
            case _:
                existing = await self.get_by_session_id(session_id)
                if existing is not None:
                    return existing
                self._db.add(Conversation(**values))
                await self._db.flush()
                return await self.get_by_session_id(session_id)

        await self._db.execute(stmt.on_conflict_do_nothing(index_elements=["session_id"]))
        conversation = await self.get_by_session_id(session_id)
        if conversation is None:
            raise RuntimeError(f"Conversation for session {session_id} was not created")
        return conversation

    async def recent_messages(self, conversation_id: int, limit: int = 10) -> list[Message]:
        """Return the latest `limit` messages, oldest first."""
        if limit <= 0:
            return []
        result = await self._db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))

    async def add_turn(
        self,
        conversation: Conversation,
        user_content: str,
        assistant_content: str,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
    ) -> list[Message]:
        """Record a user/assistant exchange if the conversation is logged.

        Returns:
            The created messages, empty when logging is disabled.
        """
        if not conversation.is_logged:
            return []

        messages = [
            Message(
                conversation_id=conversation.id,
                role=MessageRole.USER.value,
                content=user_content,
                token_count=prompt_tokens,
            ),
            Message(
                conversation_id=conversation.id,
                role=MessageRole.ASSISTANT.value,
                content=assistant_content,
                token_count=completion_tokens,
            ),
        ]
        # Flushed one at a time so ids follow creation order.
        for message in messages:
            self._db.add(message)
            await self._db.flush()
        conversation.updated_at = messages[-1].created_at
        await self._db.flush()
        return messages

    async def list_all(self, limit: int = 50, offset: int = 0) -> list[ConversationSummary]:
        """List conversations, most recently updated first."""
        message_count = (
            select(func.count(Message.id))
            .where(Message.conversation_id == Conversation.id)
            .correlate(Conversation)
            .scalar_subquery()
        )
        last_message = (
            select(Message.content)
            .where(Message.conversation_id == Conversation.id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
            .correlate(Conversation)
            .scalar_subquery()
        )
        result = await self._db.execute(
            select(Conversation, message_count, last_message)
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return [
            ConversationSummary(
                conversation=conversation,
                message_count=count or 0,
                last_message=(last or "")[:SNIPPET_LENGTH],
            )
            for conversation, count, last in result.all()
        ]

    async def get_with_messages(self, conversation_id: int) -> Conversation | None:
        result = await self._db.execute(
            select(Conversation)
            .options(selectinload(Conversation.messages))
            .where(Conversation.id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def toggle_resolved(self, conversation_id: int) -> Conversation | None:
        """Flip the resolved flag. Returns None if not found."""
        conversation = await self._db.get(Conversation, conversation_id)
        if conversation is None:
            return None
        conversation.resolved = not conversation.resolved
        await self._db.flush()
        return conversation

    async def delete(self, conversation_id: int) -> bool:
        """Delete a conversation and its messages.

        Returns:
            True if deleted, False if not found.
        """
        found = await self._db.scalar(
            select(Conversation.id).where(Conversation.id == conversation_id)
        )
        if found is None:
            return False
        await self._db.execute(delete(Message).where(Message.conversation_id == conversation_id))
        await self._db.execute(delete(Conversation).where(Conversation.id == conversation_id))
        await self._db.flush()
        return True

    def _day_column(self):
        """UTC calendar day of a message, as an SQL expression."""
        dialect = self._db.bind.dialect.name if self._db.bind is not None else ""
        if dialect == "postgresql":
            return func.to_char(func.timezone("UTC", Message.created_at), "YYYY-MM-DD")
        return func.date(Message.created_at)

    async def usage_stats(self) -> dict[str, Any]:
        """Total token usage and usage per UTC day, aggregated in the database."""
        counted = Message.token_count.is_not(None)
        totals = await self._db.execute(
            select(func.coalesce(func.sum(Message.token_count), 0), func.count(Message.id)).where(
                counted
            )
        )
        total_tokens, total_messages = totals.one()

        day = self._day_column().label("day")
        per_day = await self._db.execute(
            select(day, func.sum(Message.token_count)).where(counted).group_by(day).order_by(day)
        )

        return {
            "total_tokens": int(total_tokens),
            "total_messages": total_messages,
            "by_day": {_day_key(value): int(tokens or 0) for value, tokens in per_day.all()},
        }


def _day_key(value: str | date) -> str:
    return value if isinstance(value, str) else value.isoformat()

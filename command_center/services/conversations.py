# =============================================================================
# Conversation Store: Append-Only Transcript
# =============================================================================
#
# Conversations are ordered, append-only message sequences. The
# orchestrator is the only writer and never edits or deletes a message.
#
# ORDERING:
# Messages read back in append order. The SQL store orders by the
# autoincrement primary key rather than by timestamp for this reason.
#
# PARTICIPANTS:
# Appending a message attributed to an agent adds that agent to the
# conversation's participant list if it is not already there.
#
# ARCHITECTURE:
#   ConversationStore (Protocol)
#   ├── InMemoryConversationStore
#   └── SqlConversationStore - agent_conversations / agent_messages tables
# =============================================================================

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from command_center.db.models import ConversationRecord, MessageRecord
from command_center.errors import PersistenceError

logger = logging.getLogger(__name__)

MessageRole = Literal["user", "agent", "assistant"]


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class Message:
    """A single stored turn."""

    role: MessageRole
    content: str
    agent_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ConversationState:
    """A conversation and its transcript, in append order."""

    id: str
    user_id: str
    title: str | None = None
    messages: list[Message] = field(default_factory=list)
    participants: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class ConversationStore(Protocol):
    async def create_conversation(
        self,
        user_id: str,
        title: str | None = None,
        participants: list[str] | None = None,
    ) -> str:
        ...

    async def append_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        agent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        ...

    async def get_recent_messages(
        self, conversation_id: str, limit: int = 20,
    ) -> list[Message]:
        """The last `limit` messages, oldest first."""
        ...

    async def get_conversation(
        self, conversation_id: str,
    ) -> ConversationState | None:
        ...

    async def list_conversations(
        self, user_id: str, limit: int = 20,
    ) -> list[ConversationState]:
        """Conversations for a user, most recently updated first (no messages)."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: In-memory
# ---------------------------------------------------------------------------


class InMemoryConversationStore:
    """Conversations held in a dict; state belongs to the instance."""

    def __init__(self) -> None:
        self._conversations: dict[str, ConversationState] = {}

    async def create_conversation(
        self,
        user_id: str,
        title: str | None = None,
        participants: list[str] | None = None,
    ) -> str:
        conversation_id = str(uuid.uuid4())
        self._conversations[conversation_id] = ConversationState(
            id=conversation_id,
            user_id=user_id,
            title=title,
            participants=list(participants or []),
        )
        return conversation_id

    async def append_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        agent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise PersistenceError(f"Conversation not found: {conversation_id}")

        message = Message(
            role=role,
            content=content,
            agent_id=agent_id,
            metadata=dict(metadata or {}),
        )
        conversation.messages.append(message)
        conversation.updated_at = message.created_at
        if agent_id and agent_id not in conversation.participants:
            conversation.participants.append(agent_id)

    async def get_recent_messages(
        self, conversation_id: str, limit: int = 20,
    ) -> list[Message]:
        conversation = self._conversations.get(conversation_id)
        if conversation is None or limit <= 0:
            return []
        return list(conversation.messages[-limit:])

    async def get_conversation(
        self, conversation_id: str,
    ) -> ConversationState | None:
        return self._conversations.get(conversation_id)

    async def list_conversations(
        self, user_id: str, limit: int = 20,
    ) -> list[ConversationState]:
        owned = [c for c in self._conversations.values() if c.user_id == user_id]
        owned.sort(key=lambda c: c.updated_at, reverse=True)
        return [
            ConversationState(
                id=c.id,
                user_id=c.user_id,
                title=c.title,
                participants=list(c.participants),
                created_at=c.created_at,
                updated_at=c.updated_at,
            )
            for c in owned[:limit]
        ]


# ---------------------------------------------------------------------------
# Implementation 2: SQL
# ---------------------------------------------------------------------------


class SqlConversationStore:
    """
    Conversation store over `agent_conversations` and `agent_messages`.

    Every SQLAlchemy failure is re-raised as `PersistenceError`; the
    orchestrator logs those without failing the request.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_conversation(
        self,
        user_id: str,
        title: str | None = None,
        participants: list[str] | None = None,
    ) -> str:
        conversation_id = str(uuid.uuid4())
        try:
            async with self._session_factory() as session:
                session.add(ConversationRecord(
                    id=conversation_id,
                    user_id=user_id,
                    title=title,
                    participants=list(participants or []),
                ))
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create conversation: {e}") from e
        return conversation_id

    async def append_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        agent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        try:
            async with self._session_factory() as session:
                conversation = await session.get(ConversationRecord, conversation_id)
                if conversation is None:
                    raise PersistenceError(
                        f"Conversation not found: {conversation_id}"
                    )
                session.add(MessageRecord(
                    conversation_id=conversation_id,
                    role=role,
                    agent_id=agent_id,
                    content=content,
                    metadata_=metadata or None,
                ))
                conversation.updated_at = func.now()
                if agent_id and agent_id not in (conversation.participants or []):
                    # Reassign so the JSON column is flagged dirty
                    conversation.participants = [
                        *(conversation.participants or []), agent_id,
                    ]
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to append message to {conversation_id}: {e}"
            ) from e

    async def get_recent_messages(
        self, conversation_id: str, limit: int = 20,
    ) -> list[Message]:
        if limit <= 0:
            return []
        stmt = (
            select(MessageRecord)
            .where(MessageRecord.conversation_id == conversation_id)
            .order_by(MessageRecord.id.desc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to read messages for {conversation_id}: {e}"
            ) from e
        return [_to_message(row) for row in reversed(rows)]

    async def get_conversation(
        self, conversation_id: str,
    ) -> ConversationState | None:
        try:
            async with self._session_factory() as session:
                record = await session.get(ConversationRecord, conversation_id)
                if record is None:
                    return None
                rows = (await session.execute(
                    select(MessageRecord)
                    .where(MessageRecord.conversation_id == conversation_id)
                    .order_by(MessageRecord.id)
                )).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to load conversation {conversation_id}: {e}"
            ) from e

        state = _to_state(record)
        state.messages = [_to_message(row) for row in rows]
        return state

    async def list_conversations(
        self, user_id: str, limit: int = 20,
    ) -> list[ConversationState]:
        stmt = (
            select(ConversationRecord)
            .where(ConversationRecord.user_id == user_id)
            .order_by(ConversationRecord.updated_at.desc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list conversations: {e}") from e
        return [_to_state(row) for row in rows]


def _to_message(row: MessageRecord) -> Message:
    return Message(
        role=row.role,  # type: ignore[arg-type]
        content=row.content,
        agent_id=row.agent_id,
        created_at=row.created_at,
        metadata=row.metadata_ or {},
    )


def _to_state(row: ConversationRecord) -> ConversationState:
    return ConversationState(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        participants=list(row.participants or []),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

# =============================================================================
# Database Models: SQLAlchemy ORM
# =============================================================================
#
# Tables backing the SQL implementations of the collaborator stores.
#
# SCHEMA OVERVIEW:
#
# ┌──────────────────┐      ┌─────────────────────────────┐
# │  agents          │      │  agent_knowledge            │
# ├──────────────────┤      ├─────────────────────────────┤
# │ id (PK, text)    │─1:N─▶│ id (PK, uuid text)          │
# │ name             │      │ agent_id (FK → agents.id)   │
# │ specialization   │      │ type, title, content        │
# │ system_prompt    │      │ summary, source_url         │
# │ position         │      │ metadata_ (json)            │
# └──────────────────┘      └─────────────────────────────┘
#
# ┌──────────────────────┐      ┌──────────────────────────────────┐
# │  agent_conversations │      │  agent_messages                  │
# ├──────────────────────┤      ├──────────────────────────────────┤
# │ id (PK, uuid text)   │─1:N─▶│ id (PK, autoincrement)           │
# │ user_id, title       │      │ conversation_id (FK)             │
# │ participants (json)  │      │ role, agent_id, content          │
# │ created/updated_at   │      │ metadata_ (json), created_at     │
# └──────────────────────┘      └──────────────────────────────────┘
#
# DESIGN DECISIONS:
#
# 1. Messages are ordered by their autoincrement id, not by timestamp.
#    Two appends within the same clock tick must still read back in the
#    order they were written.
#
# 2. `position` on agents preserves registration order, which the keyword
#    router uses to break score ties.
#
# 3. Generic `JSON` (not JSONB) so the same models run on PostgreSQL and
#    SQLite. The trailing underscore on `metadata_` avoids the clash with
#    SQLAlchemy's declarative `.metadata`.
# =============================================================================

from datetime import datetime

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class AgentRecord(Base):
    """A registered specialist agent."""

    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    specialization: Mapped[str | None] = mapped_column(Text, nullable=True)
    system_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AgentRecord(id='{self.id}', name='{self.name}')>"


class KnowledgeEntry(Base):
    """
    A knowledge item owned by one agent (ingested URL, document, note).

    Only read by the orchestration core, to ground an agent's answer.
    """

    __tablename__ = "agent_knowledge"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    agent_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False,
    )
    # 'url', 'document', 'text', 'file'
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="text")
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata", JSON, nullable=True, default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_knowledge_agent", "agent_id"),
        Index("idx_knowledge_type", "type"),
    )

    def __repr__(self) -> str:
        return f"<KnowledgeEntry(id='{self.id}', agent_id='{self.agent_id}')>"


class ConversationRecord(Base):
    """A conversation between a user and one or more agents."""

    __tablename__ = "agent_conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(255), nullable=False, default="default",
    )
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # JSON array of agent ids that have spoken in the conversation
    participants: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_conversations_user", "user_id", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<ConversationRecord(id='{self.id}', user_id='{self.user_id}')>"


class MessageRecord(Base):
    """One appended turn of a conversation."""

    __tablename__ = "agent_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("agent_conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    # 'user', 'agent', 'assistant'
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    agent_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata", JSON, nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_messages_conversation", "conversation_id", "id"),
    )

    def __repr__(self) -> str:
        return (
            f"<MessageRecord(id={self.id}, conversation_id='{self.conversation_id}', "
            f"role='{self.role}')>"
        )

# =============================================================================
# Agent Knowledge: Snippet Lookup for Grounding
# =============================================================================
#
# Each specialist owns a small knowledge collection (ingested URLs,
# documents, notes). Before an agent answers, the executor pulls the most
# relevant snippets and appends them to the agent's system prompt.
#
# DESIGN DECISION: Term-overlap text search, not embeddings.
# Knowledge collections are small and per-agent. Matching on the query's
# significant terms is good enough to pick a handful of snippets and needs
# no embedding model. A vector-backed store can implement the same
# protocol later.
#
# ARCHITECTURE:
#   KnowledgeStore (Protocol)
#   ├── InMemoryKnowledgeStore - list of entries, ranked by term overlap
#   └── SqlKnowledgeStore      - ILIKE over title/content/summary
# =============================================================================

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from command_center.db.models import KnowledgeEntry
from command_center.errors import PersistenceError

logger = logging.getLogger(__name__)

# Words that carry no topical signal in a search query
_STOPWORDS = frozenset({
    "the", "and", "for", "with", "how", "what", "who", "why", "when",
    "where", "does", "did", "can", "could", "should", "would", "you",
    "your", "my", "our", "are", "was", "were", "this", "that", "from",
    "about", "into", "please", "tell", "explain", "set", "get",
})

_TERM_RE = re.compile(r"[a-z0-9][a-z0-9/+.\-]*[a-z0-9]|[a-z0-9]")


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class KnowledgeSnippet:
    """A knowledge entry as returned by a search."""

    title: str
    content: str | None = None
    summary: str | None = None
    type: str = "text"
    source_url: str | None = None
    metadata: dict = field(default_factory=dict)
    id: str | None = None

    @property
    def body(self) -> str:
        """Content when present, otherwise the summary."""
        return self.content or self.summary or ""


class KnowledgeStore(Protocol):
    async def search(
        self, agent_id: str, query: str, limit: int = 5,
    ) -> list[KnowledgeSnippet]:
        """
        Return up to `limit` snippets for `agent_id` relevant to `query`,
        most relevant first.
        """
        ...

    async def add(
        self,
        agent_id: str,
        title: str,
        content: str | None = None,
        summary: str | None = None,
        type: str = "text",
        source_url: str | None = None,
        metadata: dict | None = None,
    ) -> KnowledgeSnippet:
        """Store a new entry for `agent_id` and return it with its id."""
        ...


def extract_terms(query: str) -> list[str]:
    """
    Split a query into lowercase significant terms (deduplicated, in order).

    Short tokens and stopwords are dropped; if that leaves nothing, the
    stripped query itself is used as the single term.
    """
    seen: dict[str, None] = {}
    for term in _TERM_RE.findall(query.lower()):
        if len(term) >= 3 and term not in _STOPWORDS:
            seen.setdefault(term, None)
    if not seen and query.strip():
        return [query.strip().lower()]
    return list(seen)


# ---------------------------------------------------------------------------
# Implementation 1: In-memory
# ---------------------------------------------------------------------------


@dataclass
class _StoredEntry:
    agent_id: str
    snippet: KnowledgeSnippet
    created_at: datetime
    sequence: int


class InMemoryKnowledgeStore:
    """Knowledge entries held in process; useful for development and tests."""

    def __init__(self) -> None:
        self._entries: list[_StoredEntry] = []

    async def add(
        self,
        agent_id: str,
        title: str,
        content: str | None = None,
        summary: str | None = None,
        type: str = "text",
        source_url: str | None = None,
        metadata: dict | None = None,
    ) -> KnowledgeSnippet:
        snippet = KnowledgeSnippet(
            id=str(uuid.uuid4()),
            title=title,
            content=content,
            summary=summary,
            type=type,
            source_url=source_url,
            metadata=metadata or {},
        )
        self._entries.append(_StoredEntry(
            agent_id=agent_id,
            snippet=snippet,
            created_at=datetime.now(UTC),
            sequence=len(self._entries),
        ))
        return snippet

    async def search(
        self, agent_id: str, query: str, limit: int = 5,
    ) -> list[KnowledgeSnippet]:
        terms = extract_terms(query)
        if not terms or limit <= 0:
            return []

        scored: list[tuple[int, int, KnowledgeSnippet]] = []
        for entry in self._entries:
            if entry.agent_id != agent_id:
                continue
            snippet = entry.snippet
            haystack = " ".join(
                part for part in (snippet.title, snippet.content, snippet.summary)
                if part
            ).lower()
            hits = sum(1 for term in terms if term in haystack)
            if hits:
                scored.append((hits, entry.sequence, snippet))

        # Most matching terms first, newest first on ties
        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [snippet for _, _, snippet in scored[:limit]]


# ---------------------------------------------------------------------------
# Implementation 2: SQL
# ---------------------------------------------------------------------------


class SqlKnowledgeStore:
    """
    Knowledge lookup over the `agent_knowledge` table.

    Rows matching any query term are fetched (newest first) and re-ranked
    by how many terms they contain.
    """

    # Rows fetched per term before re-ranking
    _CANDIDATE_FACTOR = 4

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def search(
        self, agent_id: str, query: str, limit: int = 5,
    ) -> list[KnowledgeSnippet]:
        terms = extract_terms(query)
        if not terms or limit <= 0:
            return []

        conditions = []
        for term in terms:
            pattern = f"%{term}%"
            conditions.extend([
                KnowledgeEntry.title.ilike(pattern),
                KnowledgeEntry.content.ilike(pattern),
                KnowledgeEntry.summary.ilike(pattern),
            ])

        stmt = (
            select(KnowledgeEntry)
            .where(KnowledgeEntry.agent_id == agent_id, or_(*conditions))
            .order_by(KnowledgeEntry.created_at.desc())
            .limit(limit * self._CANDIDATE_FACTOR)
        )

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Knowledge search failed for {agent_id}: {e}"
            ) from e

        ranked = sorted(
            enumerate(rows),
            key=lambda item: (-_count_hits(item[1], terms), item[0]),
        )
        return [_to_snippet(row) for _, row in ranked[:limit]]

    async def add(
        self,
        agent_id: str,
        title: str,
        content: str | None = None,
        summary: str | None = None,
        type: str = "text",
        source_url: str | None = None,
        metadata: dict | None = None,
    ) -> KnowledgeSnippet:
        """Insert a knowledge entry and return it with its id."""
        entry_id = str(uuid.uuid4())
        try:
            async with self._session_factory() as session:
                session.add(KnowledgeEntry(
                    id=entry_id,
                    agent_id=agent_id,
                    type=type,
                    title=title,
                    content=content,
                    summary=summary,
                    source_url=source_url,
                    metadata_=metadata or {},
                ))
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to add knowledge: {e}") from e
        return KnowledgeSnippet(
            id=entry_id,
            title=title,
            content=content,
            summary=summary,
            type=type,
            source_url=source_url,
            metadata=metadata or {},
        )


def _count_hits(row: KnowledgeEntry, terms: list[str]) -> int:
    haystack = " ".join(
        part for part in (row.title, row.content, row.summary) if part
    ).lower()
    return sum(1 for term in terms if term in haystack)


def _to_snippet(row: KnowledgeEntry) -> KnowledgeSnippet:
    return KnowledgeSnippet(
        id=row.id,
        title=row.title,
        content=row.content,
        summary=row.summary,
        type=row.type,
        source_url=row.source_url,
        metadata=row.metadata_ or {},
    )

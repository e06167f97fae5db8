# =============================================================================
# Agent Registry: Specialist Descriptors
# =============================================================================
#
# The registry owns the agent roster: id, display name, specialization and
# the base system prompt each specialist answers with. The orchestration
# core only reads from it.
#
# ARCHITECTURE:
#   AgentRegistry (Protocol)
#   ├── InMemoryAgentRegistry - seeded with DEFAULT_AGENTS, keeps order
#   └── SqlAgentRegistry      - `agents` table via async SQLAlchemy
#
# The reserved "orchestrator" agent is the generalist that answers when no
# specialist matches. It is never offered to the router as a candidate.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from command_center.db.models import AgentRecord
from command_center.errors import PersistenceError

logger = logging.getLogger(__name__)

ORCHESTRATOR_AGENT_ID = "orchestrator"


@dataclass(frozen=True)
class AgentDescriptor:
    """An immutable view of a registered specialist."""

    id: str
    name: str
    specialization: str
    system_prompt: str
    description: str = ""


class AgentRegistry(Protocol):
    async def list_agents(
        self, include_orchestrator: bool = False,
    ) -> list[AgentDescriptor]:
        """Return agents in registration order."""
        ...

    async def get_agent(self, agent_id: str) -> AgentDescriptor | None:
        ...


# ---------------------------------------------------------------------------
# Default roster
# ---------------------------------------------------------------------------

DEFAULT_AGENTS: tuple[AgentDescriptor, ...] = (
    AgentDescriptor(
        id="highlevel-specialist",
        name="HighLevel Specialist",
        description=(
            "Expert in GoHighLevel CRM, workflows, automations, "
            "and integrations"
        ),
        specialization=(
            "GoHighLevel support, workflows, automations, LC Phone, "
            "Twilio porting"
        ),
        system_prompt=(
            "You are a GoHighLevel expert support specialist. You help with:\n"
            "- Workflow and automation setup\n"
            "- LC Phone and Twilio number porting\n"
            "- CRM configuration and pipelines\n"
            "- Email/SMS campaigns\n"
            "- Calendar and appointment settings\n"
            "- API integrations and webhooks\n"
            "Be professional, thorough, and provide step-by-step guidance."
        ),
    ),
    AgentDescriptor(
        id="hybrid-grid",
        name="Hybrid Grid Analyst",
        description=(
            "Financial markets analyst for day trading NQ futures, "
            "forex, and crypto"
        ),
        specialization=(
            "Day trading, NQ futures, EUR/USD forex, SOL/BTC crypto, "
            "technical analysis"
        ),
        system_prompt=(
            "You are a financial markets analyst specializing in day "
            "trading. You analyze:\n"
            "- NQ/ES futures and NASDAQ movements\n"
            "- EUR/USD and major forex pairs\n"
            "- SOL, BTC, and crypto markets\n"
            "- Technical indicators and price action\n"
            "- Risk management strategies\n"
            "Provide data-driven analysis with specific levels and trade ideas."
        ),
    ),
    AgentDescriptor(
        id="dev-ops",
        name="DevOps Engineer",
        description="Full-stack development, deployments, Git, and infrastructure",
        specialization=(
            "Node.js, React, Python, Git, Docker, cloud deployments, debugging"
        ),
        system_prompt=(
            "You are a senior DevOps engineer and full-stack developer. "
            "You help with:\n"
            "- Code debugging and optimization\n"
            "- Deployment pipelines and CI/CD\n"
            "- Docker and containerization\n"
            "- Cloud infrastructure (AWS, GCP, Railway, Render)\n"
            "- Database management\n"
            "- API development\n"
            "Write clean, efficient code and explain technical concepts clearly."
        ),
    ),
    AgentDescriptor(
        id="content-creator",
        name="Content Creator",
        description=(
            "Marketing copy, social media, email campaigns, "
            "and content strategy"
        ),
        specialization=(
            "Copywriting, social media, email marketing, SEO, brand voice"
        ),
        system_prompt=(
            "You are a creative content specialist. You create:\n"
            "- Compelling marketing copy\n"
            "- Social media posts and campaigns\n"
            "- Email sequences and newsletters\n"
            "- Blog posts and articles\n"
            "- Brand messaging and voice\n"
            "Write engaging, conversion-focused content tailored to the "
            "target audience."
        ),
    ),
    AgentDescriptor(
        id="business-analyst",
        name="Business Analyst",
        description=(
            "Business strategy, metrics, processes, and operational efficiency"
        ),
        specialization=(
            "Business analysis, KPIs, process optimization, strategic planning"
        ),
        system_prompt=(
            "You are a business analyst and strategist. You help with:\n"
            "- Business metrics and KPI tracking\n"
            "- Process optimization and efficiency\n"
            "- Strategic planning and goal setting\n"
            "- Market analysis and competitive research\n"
            "- Financial projections and modeling\n"
            "Provide actionable insights backed by data and industry best "
            "practices."
        ),
    ),
    AgentDescriptor(
        id="legal-contracts",
        name="Contract Navigator",
        description="Contract review, legal terms, compliance, and documentation",
        specialization=(
            "Contract analysis, legal terms, compliance, business agreements"
        ),
        system_prompt=(
            "You are a contract and legal document specialist. You help with:\n"
            "- Contract review and analysis\n"
            "- Legal term explanations\n"
            "- Compliance requirements\n"
            "- Business agreement structures\n"
            "- Risk identification in contracts\n"
            "Note: You provide general guidance, not legal advice. Recommend "
            "professional legal counsel for binding decisions."
        ),
    ),
    AgentDescriptor(
        id=ORCHESTRATOR_AGENT_ID,
        name="Command Center AI",
        description="Main orchestrator that routes requests to specialist agents",
        specialization=(
            "Task routing, agent coordination, multi-agent orchestration"
        ),
        system_prompt=(
            "You are the Command Center AI orchestrator. Your role is to:\n"
            "1. Understand user requests and determine which specialist "
            "agent(s) should handle them\n"
            "2. Route queries to the appropriate agent based on their "
            "specialization\n"
            "3. Coordinate multi-agent responses when needed\n"
            "4. Synthesize information from multiple agents\n"
            "5. Maintain conversation context across agent handoffs\n\n"
            "Available agents and their specializations will be provided "
            "in context.\n"
            "Always explain which agent you're delegating to and why."
        ),
    ),
)


# ---------------------------------------------------------------------------
# Implementation 1: In-memory
# ---------------------------------------------------------------------------


class InMemoryAgentRegistry:
    """Registry backed by a tuple of descriptors; order is registration order."""

    def __init__(
        self, agents: Iterable[AgentDescriptor] = DEFAULT_AGENTS,
    ) -> None:
        self._agents: dict[str, AgentDescriptor] = {a.id: a for a in agents}

    async def list_agents(
        self, include_orchestrator: bool = False,
    ) -> list[AgentDescriptor]:
        return [
            a for a in self._agents.values()
            if include_orchestrator or a.id != ORCHESTRATOR_AGENT_ID
        ]

    async def get_agent(self, agent_id: str) -> AgentDescriptor | None:
        return self._agents.get(agent_id)


# ---------------------------------------------------------------------------
# Implementation 2: SQL
# ---------------------------------------------------------------------------


class SqlAgentRegistry:
    """
    Registry backed by the `agents` table.

    Agents are listed in insertion order (by `position`), which is the
    order the keyword router breaks ties with.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_agents(
        self, include_orchestrator: bool = False,
    ) -> list[AgentDescriptor]:
        stmt = select(AgentRecord).order_by(AgentRecord.position, AgentRecord.id)
        if not include_orchestrator:
            stmt = stmt.where(AgentRecord.id != ORCHESTRATOR_AGENT_ID)
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list agents: {e}") from e
        return [_to_descriptor(row) for row in rows]

    async def get_agent(self, agent_id: str) -> AgentDescriptor | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(AgentRecord, agent_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load agent {agent_id}: {e}") from e
        return _to_descriptor(row) if row else None

    async def seed_defaults(
        self, agents: tuple[AgentDescriptor, ...] = DEFAULT_AGENTS,
    ) -> int:
        """Insert the default roster when the table is empty. Returns rows added."""
        async with self._session_factory() as session:
            existing = (
                await session.execute(select(AgentRecord.id).limit(1))
            ).first()
            if existing:
                return 0
            for position, agent in enumerate(agents):
                session.add(AgentRecord(
                    id=agent.id,
                    name=agent.name,
                    description=agent.description,
                    specialization=agent.specialization,
                    system_prompt=agent.system_prompt,
                    position=position,
                ))
            await session.commit()
        logger.info("Seeded %d default agents", len(agents))
        return len(agents)


def _to_descriptor(row: AgentRecord) -> AgentDescriptor:
    return AgentDescriptor(
        id=row.id,
        name=row.name,
        specialization=row.specialization or "",
        system_prompt=row.system_prompt or "",
        description=row.description or "",
    )

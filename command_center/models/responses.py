# =============================================================================
# API Response Models: Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the API and are
# serialised by alias (camelCase). Route handlers build them from the
# orchestrator's dataclasses with the `from_*` constructors below, so the
# agents package never depends on the HTTP layer.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from command_center.agents.executor import AgentExecutionResult
from command_center.agents.keyword_router import RoutingDecision
from command_center.agents.orchestrator import (
    DirectChatResult,
    OrchestrationResult,
)
from command_center.services.conversations import ConversationState, Message
from command_center.services.knowledge import KnowledgeSnippet
from command_center.services.registry import AgentDescriptor


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    """Response for GET /health - confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


class RoutingResponse(_CamelModel):
    primary_agent: str | None
    secondary_agents: list[str] = Field(default_factory=list)
    confidence: float
    reasoning: str
    is_multi_agent: bool
    strategy: Literal["keyword", "ai"]

    @classmethod
    def from_decision(cls, decision: RoutingDecision) -> RoutingResponse:
        return cls(
            primary_agent=decision.primary_agent,
            secondary_agents=list(decision.secondary_agents),
            confidence=decision.confidence,
            reasoning=decision.reasoning,
            is_multi_agent=decision.is_multi_agent,
            strategy=decision.strategy,
        )


class RouteResponse(_CamelModel):
    """Response for POST /orchestrator/route."""

    routing: RoutingResponse


# ---------------------------------------------------------------------------
# Orchestrated Chat
# ---------------------------------------------------------------------------


class AgentRef(_CamelModel):
    id: str
    name: str


class AgentResponseItem(_CamelModel):
    """One specialist's contribution to a multi-agent answer."""

    agent_id: str
    agent_name: str | None = None
    response: str | None = None
    error: str | None = None
    knowledge_used: int = 0

    @classmethod
    def from_result(cls, result: AgentExecutionResult) -> AgentResponseItem:
        return cls(
            agent_id=result.agent_id,
            agent_name=result.agent_name,
            response=result.response,
            error=result.error,
            knowledge_used=result.knowledge_used,
        )


class OrchestratedReply(_CamelModel):
    type: Literal["orchestrator", "single-agent", "multi-agent"]
    content: str
    routing: RoutingResponse
    routing_status: str
    agent: AgentRef | None = None
    knowledge_used: int | None = None
    agent_responses: list[AgentResponseItem] | None = None
    synthesis_status: str | None = None
    error: str | None = None


class OrchestrateResponse(_CamelModel):
    """Response for POST /orchestrator/chat."""

    conversation_id: str
    response: OrchestratedReply
    agents_used: list[str]

    @classmethod
    def from_result(cls, result: OrchestrationResult) -> OrchestrateResponse:
        reply = result.response
        return cls(
            conversation_id=result.conversation_id,
            agents_used=list(result.agents_used),
            response=OrchestratedReply(
                type=reply.type,
                content=reply.content,
                routing=RoutingResponse.from_decision(reply.routing),
                routing_status=reply.routing_status,
                agent=AgentRef(**reply.agent) if reply.agent else None,
                knowledge_used=reply.knowledge_used,
                agent_responses=(
                    [AgentResponseItem.from_result(r) for r in reply.agent_responses]
                    if reply.agent_responses is not None else None
                ),
                synthesis_status=reply.synthesis_status,
                error=reply.error,
            ),
        )


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


class AgentResponse(_CamelModel):
    id: str
    name: str
    description: str
    specialization: str

    @classmethod
    def from_descriptor(cls, agent: AgentDescriptor) -> AgentResponse:
        return cls(
            id=agent.id,
            name=agent.name,
            description=agent.description,
            specialization=agent.specialization,
        )


class DirectChatResponse(_CamelModel):
    """Response for POST /agents/{agent_id}/chat."""

    conversation_id: str
    agent: AgentRef
    content: str
    knowledge_used: int = 0
    error: str | None = None

    @classmethod
    def from_result(cls, result: DirectChatResult) -> DirectChatResponse:
        return cls(
            conversation_id=result.conversation_id,
            agent=AgentRef(id=result.agent_id, name=result.agent_name),
            content=result.response,
            knowledge_used=result.knowledge_used,
            error=result.error,
        )


# ---------------------------------------------------------------------------
# Knowledge
# ---------------------------------------------------------------------------


class KnowledgeEntryResponse(_CamelModel):
    id: str | None = None
    title: str
    content: str | None = None
    summary: str | None = None
    type: str = "text"
    source_url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_snippet(cls, snippet: KnowledgeSnippet) -> KnowledgeEntryResponse:
        return cls(
            id=snippet.id,
            title=snippet.title,
            content=snippet.content,
            summary=snippet.summary,
            type=snippet.type,
            source_url=snippet.source_url,
            metadata=snippet.metadata,
        )


class KnowledgeSearchResponse(_CamelModel):
    results: list[KnowledgeEntryResponse] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


class MessageResponse(_CamelModel):
    role: str
    content: str
    agent_id: str | None = None
    created_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_message(cls, message: Message) -> MessageResponse:
        return cls(
            role=message.role,
            content=message.content,
            agent_id=message.agent_id,
            created_at=message.created_at,
            metadata=message.metadata,
        )


class ConversationSummary(_CamelModel):
    id: str
    user_id: str
    title: str | None = None
    participants: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_state(cls, state: ConversationState) -> ConversationSummary:
        return cls(
            id=state.id,
            user_id=state.user_id,
            title=state.title,
            participants=list(state.participants),
            created_at=state.created_at,
            updated_at=state.updated_at,
        )


class ConversationDetail(ConversationSummary):
    messages: list[MessageResponse] = Field(default_factory=list)

    @classmethod
    def from_state(cls, state: ConversationState) -> ConversationDetail:
        summary = ConversationSummary.from_state(state)
        return cls(
            **summary.model_dump(),
            messages=[MessageResponse.from_message(m) for m in state.messages],
        )


class ConversationCreatedResponse(_CamelModel):
    conversation_id: str

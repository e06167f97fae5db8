# =============================================================================
# LangGraph Orchestrator: Routing, Dispatch, Synthesis, Persistence
# =============================================================================
#
# The orchestrator wires routing, agent execution, synthesis and the
# conversation transcript into a LangGraph StateGraph:
#
# GRAPH TOPOLOGY:
#
#   START ─▶ resolve_conversation ─▶ record_user_message ─▶ route
#                                                             │
#              ┌──────────────────────┬───────────────────────┤
#              ▼                      ▼                       ▼
#        answer_general        dispatch_single         dispatch_multi
#              │                      │                       │
#              │                      │                  synthesize
#              │                      │                       │
#              └──────────────────────┴───────▶ persist_responses ─▶ END
#
# ORDERING:
#   The user message is stored before routing starts, so a failure in any
#   later node still leaves the user's turn on record. Agent and assistant
#   messages are written only after fan-in, in a fixed order.
#
# DESIGN DECISION: One compiled graph per Orchestrator instance.
# All mutable state (LLM client, stores, compiled graph) belongs to the
# instance. Two orchestrators never share caches, and each test builds
# its own.
#
# DESIGN DECISION: Persistence failures never fail the request.
# The user gets an answer even when the store is down; the failure is
# logged as a warning.
#
# DESIGN DECISION: Plain TypedDict state.
# No checkpointer is configured, so state may hold dataclasses and
# provider objects that are not JSON-serialisable.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from command_center.agents.ai_router import AIRouter
from command_center.agents.dispatcher import dispatch
from command_center.agents.executor import (
    AgentExecutionResult,
    AgentExecutor,
    build_messages,
)
from command_center.agents.keyword_router import RoutingDecision
from command_center.agents.outcomes import Outcome, OutcomeStatus
from command_center.agents.synthesizer import (
    APOLOGY_MESSAGE,
    SynthesizedResponse,
    Synthesizer,
)
from command_center.config import Settings, get_settings
from command_center.db.engine import get_session_factory, init_models
from command_center.errors import (
    AgentNotFoundError,
    BackendError,
    InvalidRequestError,
    PersistenceError,
)
from command_center.services.conversations import (
    ConversationStore,
    InMemoryConversationStore,
    Message,
    SqlConversationStore,
)
from command_center.services.knowledge import (
    InMemoryKnowledgeStore,
    KnowledgeStore,
    SqlKnowledgeStore,
)
from command_center.services.llm import LLMProvider, create_llm_provider
from command_center.services.registry import (
    ORCHESTRATOR_AGENT_ID,
    AgentRegistry,
    InMemoryAgentRegistry,
    SqlAgentRegistry,
)

logger = logging.getLogger(__name__)

ResponseType = Literal["orchestrator", "single-agent", "multi-agent"]

TITLE_MAX_CHARS = 50

_FALLBACK_ORCHESTRATOR_PROMPT = (
    "You are the Command Center AI orchestrator. Answer general questions "
    "directly and point the user to the right specialist when relevant."
)


# ---------------------------------------------------------------------------
# Result Types
# ---------------------------------------------------------------------------


@dataclass
class OrchestrationResponse:
    """
    The reply and how it was produced.

    `type` always matches the branch taken; UIs branch on it.
    """

    type: ResponseType
    content: str
    routing: RoutingDecision
    agent: dict[str, str] | None = None            # single-agent only
    agent_responses: list[AgentExecutionResult] | None = None  # multi only
    knowledge_used: int | None = None              # single-agent only
    routing_status: str = OutcomeStatus.OK.value
    synthesis_status: str | None = None            # multi only
    error: str | None = None


@dataclass
class OrchestrationResult:
    conversation_id: str
    response: OrchestrationResponse
    agents_used: list[str] = field(default_factory=list)


@dataclass
class DirectChatResult:
    conversation_id: str
    agent_id: str
    agent_name: str
    response: str
    knowledge_used: int = 0
    error: str | None = None


# ---------------------------------------------------------------------------
# Graph State Schema
# ---------------------------------------------------------------------------


class OrchestrationState(TypedDict, total=False):
    """
    State that flows through the graph.

    total=False so nodes only return the keys they update.
    """

    # --- Input ---
    message: str
    user_id: str
    conversation_id: str | None

    # --- Intermediate ---
    history: list[Message]
    routing: Outcome[RoutingDecision]
    agent_results: list[AgentExecutionResult]
    synthesis: Outcome[SynthesizedResponse]

    # --- Output ---
    response: OrchestrationResponse
    agents_used: list[str]


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class Orchestrator:
    """
    Top-level entry point: orchestrate, route_only, chat_direct.

    Construct one per application (or per test) and call `aclose()` when
    done.
    """

    def __init__(
        self,
        llm: LLMProvider,
        registry: AgentRegistry,
        knowledge: KnowledgeStore,
        conversations: ConversationStore,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._llm = llm
        self._registry = registry
        self._knowledge = knowledge
        self._conversations = conversations
        self.router = AIRouter(llm, registry, self._settings)
        self.executor = AgentExecutor(llm, registry, knowledge, self._settings)
        self.synthesizer = Synthesizer(llm)
        self._graph = self._build_graph()
        self._closed = False

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    @property
    def knowledge(self) -> KnowledgeStore:
        return self._knowledge

    @property
    def conversations(self) -> ConversationStore:
        return self._conversations

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def orchestrate(
        self,
        message: str,
        conversation_id: str | None = None,
        user_id: str = "default",
    ) -> OrchestrationResult:
        """
        Route `message`, run the chosen agent(s), persist the turn and
        return the reply.

        Raises:
            InvalidRequestError: If the message is empty.
        """
        _require_message(message)

        logger.info(
            "Orchestrating: message='%s', conversation_id=%s, user_id=%s",
            message[:80], conversation_id, user_id,
        )

        state: OrchestrationState = await self._graph.ainvoke({
            "message": message,
            "user_id": user_id,
            "conversation_id": conversation_id,
        })

        result = OrchestrationResult(
            conversation_id=state["conversation_id"],
            response=state["response"],
            agents_used=state["agents_used"],
        )
        logger.info(
            "Orchestration complete: type=%s, agents=%s",
            result.response.type, result.agents_used,
        )
        return result

    async def route_only(self, message: str) -> RoutingDecision:
        """Routing decision for `message`, without executing any agent."""
        _require_message(message)
        outcome = await self.router.route(message)
        return outcome.value

    async def chat_direct(
        self,
        agent_id: str,
        message: str,
        conversation_id: str | None = None,
        user_id: str = "default",
    ) -> DirectChatResult:
        """
        Chat with one agent, bypassing routing.

        Raises:
            InvalidRequestError: If the message is empty.
            AgentNotFoundError: If the agent is not registered.
        """
        _require_message(message)
        agent = await self._registry.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)

        history: list[Message] = []
        if conversation_id:
            history = await self._load_history(
                conversation_id, self._settings.direct_history_limit,
            )
        else:
            conversation_id = await self._create_conversation(
                user_id, f"Chat with {agent_id}", [agent_id],
            )

        await self._append(conversation_id, "user", message)

        [result] = await self._dispatch([agent_id], message, history)

        if result.succeeded:
            await self._append(
                conversation_id, "agent", result.response or "", agent_id,
            )
            return DirectChatResult(
                conversation_id=conversation_id,
                agent_id=result.agent_id,
                agent_name=result.agent_name or agent.name,
                response=result.response or "",
                knowledge_used=result.knowledge_used,
            )

        await self._append(
            conversation_id, "assistant", APOLOGY_MESSAGE,
            ORCHESTRATOR_AGENT_ID, {"error": result.error, "agent": agent_id},
        )
        return DirectChatResult(
            conversation_id=conversation_id,
            agent_id=agent_id,
            agent_name=agent.name,
            response=APOLOGY_MESSAGE,
            error=result.error,
        )

    async def aclose(self) -> None:
        """Release the LLM client. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        close = getattr(self._llm, "aclose", None)
        if close is not None:
            await close()

    # -----------------------------------------------------------------------
    # Graph Assembly
    # -----------------------------------------------------------------------

    def _build_graph(self):
        builder = StateGraph(OrchestrationState)
        builder.add_node("resolve_conversation", self._resolve_conversation_node)
        builder.add_node("record_user_message", self._record_user_message_node)
        builder.add_node("route", self._route_node)
        builder.add_node("answer_general", self._answer_general_node)
        builder.add_node("dispatch_single", self._dispatch_single_node)
        builder.add_node("dispatch_multi", self._dispatch_multi_node)
        builder.add_node("synthesize", self._synthesize_node)
        builder.add_node("persist_responses", self._persist_responses_node)

        builder.add_edge(START, "resolve_conversation")
        builder.add_edge("resolve_conversation", "record_user_message")
        builder.add_edge("record_user_message", "route")
        builder.add_conditional_edges(
            "route",
            _select_branch,
            {
                "general": "answer_general",
                "single": "dispatch_single",
                "multi": "dispatch_multi",
            },
        )
        builder.add_edge("dispatch_multi", "synthesize")
        builder.add_edge("answer_general", "persist_responses")
        builder.add_edge("dispatch_single", "persist_responses")
        builder.add_edge("synthesize", "persist_responses")
        builder.add_edge("persist_responses", END)
        return builder.compile()

    # -----------------------------------------------------------------------
    # Node Functions
    # -----------------------------------------------------------------------
    # Each node receives the full state and returns a partial update dict.
    # -----------------------------------------------------------------------

    async def _resolve_conversation_node(self, state: OrchestrationState) -> dict:
        conversation_id = state.get("conversation_id")
        if conversation_id:
            history = await self._load_history(
                conversation_id, self._settings.history_window,
            )
            return {"conversation_id": conversation_id, "history": history}

        conversation_id = await self._create_conversation(
            state["user_id"], state["message"][:TITLE_MAX_CHARS],
        )
        return {"conversation_id": conversation_id, "history": []}

    async def _record_user_message_node(self, state: OrchestrationState) -> dict:
        await self._append(state["conversation_id"], "user", state["message"])
        return {}

    async def _route_node(self, state: OrchestrationState) -> dict:
        outcome = await self.router.route(state["message"], state.get("history"))
        return {"routing": outcome}

    async def _answer_general_node(self, state: OrchestrationState) -> dict:
        routing = state["routing"]
        error: str | None = None
        try:
            content = await self._answer_as_orchestrator(
                state["message"], state.get("history", []),
            )
        except (BackendError, TimeoutError) as e:
            error = str(e) or type(e).__name__
            logger.warning("Orchestrator answer failed: %s", error)
            content = APOLOGY_MESSAGE
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.exception("Unexpected orchestrator answer failure")
            content = APOLOGY_MESSAGE

        response = OrchestrationResponse(
            type="orchestrator",
            content=content,
            routing=routing.value,
            routing_status=routing.status.value,
            error=error,
        )
        return {"response": response, "agents_used": [ORCHESTRATOR_AGENT_ID]}

    async def _dispatch_single_node(self, state: OrchestrationState) -> dict:
        routing = state["routing"]
        primary = routing.value.primary_agent
        [result] = await self._dispatch(
            [primary], state["message"], state.get("history", []),
        )

        agent_name = result.agent_name
        if agent_name is None:
            agent_name = await self._agent_name(primary)

        response = OrchestrationResponse(
            type="single-agent",
            content=result.response if result.succeeded else APOLOGY_MESSAGE,
            routing=routing.value,
            agent={"id": primary, "name": agent_name},
            knowledge_used=result.knowledge_used,
            routing_status=routing.status.value,
            error=result.error,
        )
        return {
            "agent_results": [result],
            "response": response,
            "agents_used": [primary],
        }

    async def _dispatch_multi_node(self, state: OrchestrationState) -> dict:
        agent_ids = state["routing"].value.agent_ids
        results = await self._dispatch(
            agent_ids, state["message"], state.get("history", []),
        )
        return {"agent_results": results, "agents_used": agent_ids}

    async def _synthesize_node(self, state: OrchestrationState) -> dict:
        routing = state["routing"]
        results = state["agent_results"]
        outcome = await self.synthesizer.synthesize(state["message"], results)
        response = OrchestrationResponse(
            type="multi-agent",
            content=outcome.value.content,
            routing=routing.value,
            agent_responses=results,
            routing_status=routing.status.value,
            synthesis_status=outcome.status.value,
            error=outcome.reason if not outcome.is_ok else None,
        )
        return {"synthesis": outcome, "response": response}

    async def _persist_responses_node(self, state: OrchestrationState) -> dict:
        conversation_id = state["conversation_id"]
        response = state["response"]
        routing = response.routing.to_dict()

        if response.type == "multi-agent":
            synthesis = state["synthesis"]
            for result in state.get("agent_results", []):
                if result.succeeded:
                    await self._append(
                        conversation_id, "agent", result.response or "",
                        result.agent_id,
                    )
            await self._append(
                conversation_id, "assistant", response.content,
                ORCHESTRATOR_AGENT_ID,
                {
                    "synthesized": True,
                    "agents": list(synthesis.value.contributors),
                    "synthesis_status": synthesis.status.value,
                    "routing": routing,
                },
            )
        elif response.error is not None:
            await self._append(
                conversation_id, "assistant", response.content,
                ORCHESTRATOR_AGENT_ID,
                {"error": response.error, "routing": routing},
            )
        else:
            agent_id = (
                response.agent["id"] if response.agent else ORCHESTRATOR_AGENT_ID
            )
            await self._append(
                conversation_id, "agent", response.content, agent_id,
                {"routing": routing},
            )
        return {}

    # -----------------------------------------------------------------------
    # Internal Helpers
    # -----------------------------------------------------------------------

    async def _dispatch(
        self,
        agent_ids: Sequence[str],
        message: str,
        history: Sequence[Message],
    ) -> list[AgentExecutionResult]:
        cfg = self._settings
        return await dispatch(
            self.executor,
            agent_ids,
            message,
            history,
            max_parallelism=cfg.dispatch_max_parallelism,
            agent_timeout=cfg.agent_timeout_seconds,
            deadline=cfg.request_timeout_seconds,
        )

    async def _answer_as_orchestrator(
        self, message: str, history: Sequence[Message],
    ) -> str:
        try:
            orchestrator = await self._registry.get_agent(ORCHESTRATOR_AGENT_ID)
        except PersistenceError as e:
            logger.warning("Could not load orchestrator agent: %s", e)
            orchestrator = None
        base_prompt = (
            orchestrator.system_prompt if orchestrator
            else _FALLBACK_ORCHESTRATOR_PROMPT
        )
        roster = await self._roster_context()
        system_prompt = f"{base_prompt}\n\n{roster}" if roster else base_prompt

        response = await asyncio.wait_for(
            self._llm.complete(
                messages=build_messages(
                    message, history, self._settings.history_window,
                ),
                system=system_prompt,
            ),
            timeout=self._settings.agent_timeout_seconds,
        )
        if not response.content.strip():
            raise BackendError(
                "Orchestrator answer was empty", provider=response.provider,
            )
        return response.content

    async def _roster_context(self) -> str:
        try:
            agents = await self._registry.list_agents()
        except PersistenceError as e:
            logger.warning("Could not list agents for orchestrator: %s", e)
            return ""
        if not agents:
            return ""
        lines = ["Available Specialist Agents:\n"]
        for agent in agents:
            lines.append(f"**{agent.name}** (ID: {agent.id})")
            lines.append(f"  Specialization: {agent.specialization}\n")
        return "\n".join(lines)

    async def _agent_name(self, agent_id: str) -> str:
        try:
            agent = await self._registry.get_agent(agent_id)
        except PersistenceError:
            agent = None
        return agent.name if agent else agent_id

    async def _create_conversation(
        self,
        user_id: str,
        title: str,
        participants: list[str] | None = None,
    ) -> str:
        try:
            return await self._conversations.create_conversation(
                user_id, title, participants or [],
            )
        except PersistenceError as e:
            conversation_id = str(uuid.uuid4())
            logger.warning(
                "Could not create conversation (%s); continuing unsaved as %s",
                e, conversation_id,
            )
            return conversation_id

    async def _load_history(self, conversation_id: str, limit: int) -> list[Message]:
        try:
            return await self._conversations.get_recent_messages(
                conversation_id, limit,
            )
        except PersistenceError as e:
            logger.warning(
                "Could not load history for %s: %s", conversation_id, e,
            )
            return []

    async def _append(
        self,
        conversation_id: str,
        role: str,
        content: str,
        agent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        try:
            await self._conversations.append_message(
                conversation_id, role, content, agent_id, metadata,  # type: ignore[arg-type]
            )
        except PersistenceError as e:
            logger.warning(
                "Failed to persist %s message to %s: %s",
                role, conversation_id, e,
            )


# ---------------------------------------------------------------------------
# Module Helpers
# ---------------------------------------------------------------------------


def _select_branch(state: OrchestrationState) -> str:
    decision = state["routing"].value
    if decision.primary_agent is None:
        return "general"
    if decision.is_multi_agent and decision.secondary_agents:
        return "multi"
    return "single"


def _require_message(message: str | None) -> None:
    if message is None or not message.strip():
        raise InvalidRequestError("Message is required")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


async def build_orchestrator(
    settings: Settings | None = None,
    llm: LLMProvider | None = None,
) -> Orchestrator:
    """
    Assemble an Orchestrator from settings.

    `store_backend="memory"` keeps everything in-process with the default
    agent roster. `store_backend="sql"` creates missing tables and seeds
    the roster on first start.

    Raises:
        ValueError: If no API key is configured for the LLM provider, or
            the store backend is unknown.
    """
    cfg = settings or get_settings()
    llm = llm or create_llm_provider(cfg)

    if cfg.store_backend == "memory":
        registry: AgentRegistry = InMemoryAgentRegistry()
        knowledge: KnowledgeStore = InMemoryKnowledgeStore()
        conversations: ConversationStore = InMemoryConversationStore()
    elif cfg.store_backend == "sql":
        await init_models(cfg)
        session_factory = get_session_factory(cfg)
        sql_registry = SqlAgentRegistry(session_factory)
        await sql_registry.seed_defaults()
        registry = sql_registry
        knowledge = SqlKnowledgeStore(session_factory)
        conversations = SqlConversationStore(session_factory)
    else:
        raise ValueError(f"Unknown store backend: {cfg.store_backend!r}")

    logger.info(
        "Orchestrator ready: store_backend=%s, provider=%s",
        cfg.store_backend, getattr(llm, "provider_name", type(llm).__name__),
    )
    return Orchestrator(llm, registry, knowledge, conversations, cfg)

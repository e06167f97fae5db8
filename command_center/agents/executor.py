# =============================================================================
# Agent Executor: One Specialist, Knowledge-Grounded
# =============================================================================
#
# Runs a single specialist against a message:
#
#   1. Look up the agent (AgentNotFoundError if unregistered)
#   2. Pull up to `knowledge_limit` snippets from the agent's knowledge
#   3. Append them to the agent's system prompt as a delimited block
#   4. Send the bounded history + the message to the backend
#
# DESIGN DECISION: No persistence here.
# The executor is called concurrently by the dispatcher; writing to the
# transcript from here would interleave turns. The orchestrator persists
# results after fan-in, in a fixed order.
#
# DESIGN DECISION: Knowledge lookup failure is not fatal.
# An agent that cannot reach its knowledge still answers from its base
# prompt. A backend failure, by contrast, propagates as BackendError.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from command_center.config import Settings, get_settings
from command_center.errors import AgentNotFoundError, BackendError, PersistenceError
from command_center.services.conversations import Message
from command_center.services.knowledge import KnowledgeSnippet, KnowledgeStore
from command_center.services.llm import LLMProvider
from command_center.services.registry import AgentRegistry

logger = logging.getLogger(__name__)

KNOWLEDGE_HEADER = "Relevant information from your knowledge base:"


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class AgentExecutionResult:
    """
    Outcome of one agent call.

    Exactly one of `response` / `error` is set. The dispatcher builds
    error results directly; the executor only ever returns successes.
    """

    agent_id: str
    agent_name: str | None = None
    response: str | None = None
    error: str | None = None
    knowledge_used: int = 0
    provider: str | None = None
    model: str | None = None

    def __post_init__(self) -> None:
        if (self.response is None) == (self.error is None):
            raise ValueError(
                "AgentExecutionResult needs exactly one of response or error"
            )

    @property
    def succeeded(self) -> bool:
        return self.response is not None

    @classmethod
    def failure(
        cls, agent_id: str, error: str, agent_name: str | None = None,
    ) -> AgentExecutionResult:
        return cls(agent_id=agent_id, agent_name=agent_name, error=error)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class AgentExecutor:
    def __init__(
        self,
        llm: LLMProvider,
        registry: AgentRegistry,
        knowledge: KnowledgeStore,
        settings: Settings | None = None,
    ) -> None:
        self._llm = llm
        self._registry = registry
        self._knowledge = knowledge
        self._settings = settings or get_settings()

    async def execute(
        self,
        agent_id: str,
        message: str,
        history: Sequence[Message] = (),
    ) -> AgentExecutionResult:
        """
        Answer `message` as `agent_id`.

        Raises:
            AgentNotFoundError: If the agent is not registered.
            BackendError: If the generative backend fails or returns no text.
        """
        agent = await self._registry.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)

        snippets = await self._lookup_knowledge(agent_id, message)
        system_prompt = agent.system_prompt + format_knowledge_block(
            snippets, self._settings.knowledge_snippet_chars,
        )
        messages = build_messages(message, history, self._settings.history_window)

        logger.info(
            "Executing agent %s: history=%d, knowledge=%d",
            agent_id, len(messages) - 1, len(snippets),
        )

        response = await self._llm.complete(messages=messages, system=system_prompt)
        if not response.content.strip():
            raise BackendError(
                f"Agent {agent_id} returned empty content",
                provider=response.provider,
            )

        logger.info(
            "Agent %s complete: provider=%s model=%s tokens=%d+%d",
            agent_id, response.provider, response.model,
            response.input_tokens, response.output_tokens,
        )

        return AgentExecutionResult(
            agent_id=agent.id,
            agent_name=agent.name,
            response=response.content,
            knowledge_used=len(snippets),
            provider=response.provider,
            model=response.model,
        )

    async def _lookup_knowledge(
        self, agent_id: str, message: str,
    ) -> list[KnowledgeSnippet]:
        limit = self._settings.knowledge_limit
        try:
            snippets = await self._knowledge.search(agent_id, message, limit)
        except PersistenceError as e:
            logger.warning(
                "Knowledge lookup failed for %s: %s. Answering ungrounded.",
                agent_id, e,
            )
            return []
        return list(snippets)[:limit]


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def format_knowledge_block(
    snippets: Sequence[KnowledgeSnippet], max_chars: int,
) -> str:
    """
    Render snippets as a block appended to a system prompt.

    Example output:

        Relevant information from your knowledge base:
        ---
        Porting checklist:
        Submit the LOA and a recent bill...
    """
    if not snippets:
        return ""
    sections = [f"\n\n{KNOWLEDGE_HEADER}\n"]
    for snippet in snippets:
        sections.append(f"---\n{snippet.title}:\n{snippet.body[:max_chars]}\n")
    return "".join(sections)


def build_messages(
    message: str,
    history: Sequence[Message],
    window: int,
) -> list[dict[str, str]]:
    """
    Role-tagged backend messages: the last `window` history turns, then
    the new user message. Stored `agent` turns become `assistant`.
    """
    recent = list(history)[-window:] if window > 0 else []
    messages = [
        {
            "role": "assistant" if m.role == "agent" else m.role,
            "content": m.content,
        }
        for m in recent
        if m.content
    ]
    messages.append({"role": "user", "content": message})
    return messages

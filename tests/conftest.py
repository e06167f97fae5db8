# =============================================================================
# Shared Test Fixtures: Scripted LLM and In-Memory Collaborators
# =============================================================================
#
# No API keys, network or database are needed. The scripted LLM answers by
# recognising which kind of call it received:
#
#   router    → the routing prompt (no system prompt)
#   synthesis → SYNTHESIS_SYSTEM_PROMPT
#   general   → the orchestrator agent's system prompt
#   agent     → a specialist's system prompt (keyed by agent id)
#
# Each reply is a string, an exception instance (raised), or a float delay
# followed by a reply via `delays`.
# =============================================================================

from __future__ import annotations

import asyncio

import pytest

from command_center.agents.orchestrator import Orchestrator
from command_center.agents.synthesizer import SYNTHESIS_SYSTEM_PROMPT
from command_center.config import Settings
from command_center.errors import BackendError
from command_center.services.conversations import InMemoryConversationStore
from command_center.services.knowledge import InMemoryKnowledgeStore
from command_center.services.llm import LLMResponse
from command_center.services.registry import (
    DEFAULT_AGENTS,
    ORCHESTRATOR_AGENT_ID,
    InMemoryAgentRegistry,
)

ROUTER_PROMPT_PREFIX = "You are an AI request router"


class ScriptedLLM:
    """LLMProvider stand-in that records every call."""

    provider_name = "scripted"

    def __init__(self) -> None:
        # Router unavailable by default so routing is keyword-driven
        self.replies: dict[str, str | Exception] = {
            "router": BackendError("router offline", provider="scripted"),
            "synthesis": "Synthesized answer",
            "general": "General answer",
        }
        self.delays: dict[str, float] = {}
        self.calls: list[dict] = []
        self.closed = False

    def reply(self, key: str, value: str | Exception) -> None:
        self.replies[key] = value

    def calls_of(self, kind: str) -> list[dict]:
        return [c for c in self.calls if c["kind"] == kind]

    async def complete(
        self,
        messages,
        system=None,
        temperature=None,
        max_tokens=None,
    ) -> LLMResponse:
        kind, agent_id = _classify(messages, system)
        self.calls.append({
            "kind": kind,
            "agent_id": agent_id,
            "messages": messages,
            "system": system,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        key = agent_id or kind
        if key in self.delays:
            await asyncio.sleep(self.delays[key])
        reply = self.replies.get(key, f"Answer from {agent_id}")
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(
            content=reply, model="scripted-model", provider=self.provider_name,
            input_tokens=10, output_tokens=5,
        )

    async def aclose(self) -> None:
        self.closed = True


def _classify(messages, system) -> tuple[str, str | None]:
    if system is None and messages[-1]["content"].startswith(ROUTER_PROMPT_PREFIX):
        return "router", None
    if system == SYNTHESIS_SYSTEM_PROMPT:
        return "synthesis", None
    for agent in DEFAULT_AGENTS:
        if system and system.startswith(agent.system_prompt):
            if agent.id == ORCHESTRATOR_AGENT_ID:
                return "general", None
            return "agent", agent.id
    return "unknown", None


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        anthropic_api_key="test-key",
        agent_timeout_seconds=2.0,
        request_timeout_seconds=5.0,
    )


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def registry() -> InMemoryAgentRegistry:
    return InMemoryAgentRegistry()


@pytest.fixture
def knowledge() -> InMemoryKnowledgeStore:
    return InMemoryKnowledgeStore()


@pytest.fixture
def conversations() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def orchestrator(llm, registry, knowledge, conversations, settings) -> Orchestrator:
    return Orchestrator(llm, registry, knowledge, conversations, settings)

# =============================================================================
# Unit Tests: Agent Executor
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from command_center.agents.executor import (
    KNOWLEDGE_HEADER,
    AgentExecutionResult,
    AgentExecutor,
    build_messages,
    format_knowledge_block,
)
from command_center.errors import AgentNotFoundError, BackendError, PersistenceError
from command_center.services.conversations import Message
from command_center.services.knowledge import KnowledgeSnippet


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Test: Result Invariant
# ---------------------------------------------------------------------------


class TestAgentExecutionResult:
    def test_response_only(self):
        assert AgentExecutionResult(agent_id="a", response="hi").succeeded

    def test_error_only(self):
        result = AgentExecutionResult.failure("a", "boom")
        assert not result.succeeded
        assert result.error == "boom"

    def test_both_rejected(self):
        with pytest.raises(ValueError):
            AgentExecutionResult(agent_id="a", response="hi", error="boom")

    def test_neither_rejected(self):
        with pytest.raises(ValueError):
            AgentExecutionResult(agent_id="a")


# ---------------------------------------------------------------------------
# Test: Prompt Assembly Helpers
# ---------------------------------------------------------------------------


class TestFormatKnowledgeBlock:
    def test_empty(self):
        assert format_knowledge_block([], 1000) == ""

    def test_sections_delimited_and_truncated(self):
        block = format_knowledge_block(
            [
                KnowledgeSnippet(title="Porting", content="x" * 50),
                KnowledgeSnippet(title="Pricing", summary="Flat fee"),
            ],
            max_chars=10,
        )
        assert block.startswith(f"\n\n{KNOWLEDGE_HEADER}\n")
        assert "---\nPorting:\n" + "x" * 10 + "\n" in block
        assert "x" * 11 not in block
        assert "---\nPricing:\nFlat fee\n" in block


class TestBuildMessages:
    def test_agent_turns_become_assistant(self):
        history = [
            Message(role="user", content="q1"),
            Message(role="agent", content="a1", agent_id="dev-ops"),
        ]
        messages = build_messages("q2", history, window=10)
        assert messages == [
            {"role": "user", "content": "q1"},
            {"role": "assistant", "content": "a1"},
            {"role": "user", "content": "q2"},
        ]

    def test_window_keeps_latest_turns(self):
        history = [Message(role="user", content=str(i)) for i in range(15)]
        messages = build_messages("now", history, window=10)
        assert len(messages) == 11
        assert messages[0]["content"] == "5"
        assert messages[-1]["content"] == "now"

    def test_empty_turns_skipped(self):
        history = [Message(role="assistant", content="")]
        assert build_messages("q", history, window=10) == [
            {"role": "user", "content": "q"},
        ]


# ---------------------------------------------------------------------------
# Test: Execution
# ---------------------------------------------------------------------------


class TestAgentExecutor:
    def test_answers_with_agent_prompt(self, llm, registry, knowledge, settings):
        executor = AgentExecutor(llm, registry, knowledge, settings)
        result = _run(executor.execute("dev-ops", "How do I deploy?"))

        assert result.succeeded
        assert result.agent_id == "dev-ops"
        assert result.agent_name == "DevOps Engineer"
        assert result.response == "Answer from dev-ops"
        assert result.knowledge_used == 0
        assert KNOWLEDGE_HEADER not in llm.calls[0]["system"]

    def test_knowledge_appended_to_system_prompt(
        self, llm, registry, knowledge, settings,
    ):
        _run(knowledge.add("dev-ops", "Deploy runbook", content="Use blue/green deploys"))
        _run(knowledge.add("legal-contracts", "Deploy clause", content="Not for dev-ops"))
        executor = AgentExecutor(llm, registry, knowledge, settings)

        result = _run(executor.execute("dev-ops", "deploy checklist"))

        assert result.knowledge_used == 1
        system = llm.calls[0]["system"]
        assert "Deploy runbook:\nUse blue/green deploys" in system
        assert "Not for dev-ops" not in system

    def test_unknown_agent(self, llm, registry, knowledge, settings):
        executor = AgentExecutor(llm, registry, knowledge, settings)
        with pytest.raises(AgentNotFoundError):
            _run(executor.execute("astrologer", "hi"))
        assert llm.calls == []

    def test_backend_error_propagates(self, llm, registry, knowledge, settings):
        llm.reply("dev-ops", BackendError("overloaded", provider="scripted"))
        executor = AgentExecutor(llm, registry, knowledge, settings)
        with pytest.raises(BackendError):
            _run(executor.execute("dev-ops", "hi"))

    def test_blank_answer_raises_backend_error(
        self, llm, registry, knowledge, settings,
    ):
        llm.reply("dev-ops", "")
        executor = AgentExecutor(llm, registry, knowledge, settings)
        with pytest.raises(BackendError, match="empty"):
            _run(executor.execute("dev-ops", "hi"))

    def test_knowledge_failure_answers_ungrounded(self, llm, registry, settings):
        knowledge = AsyncMock()
        knowledge.search.side_effect = PersistenceError("db down")
        executor = AgentExecutor(llm, registry, knowledge, settings)

        result = _run(executor.execute("dev-ops", "deploy"))

        assert result.succeeded
        assert result.knowledge_used == 0

    def test_history_passed_through(self, llm, registry, knowledge, settings):
        history = [
            Message(role="user", content="earlier"),
            Message(role="agent", content="reply", agent_id="dev-ops"),
        ]
        executor = AgentExecutor(llm, registry, knowledge, settings)
        _run(executor.execute("dev-ops", "now", history))

        assert [m["role"] for m in llm.calls[0]["messages"]] == [
            "user", "assistant", "user",
        ]

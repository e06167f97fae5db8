# =============================================================================
# Unit Tests: Multi-Agent Dispatcher
# =============================================================================
#
# Uses a fake executor whose per-agent behaviour (reply, raise, sleep) is
# scripted, so ordering and isolation can be checked without an LLM.
# =============================================================================

from __future__ import annotations

import asyncio

from command_center.agents.dispatcher import dispatch
from command_center.agents.executor import AgentExecutionResult
from command_center.errors import AgentNotFoundError, BackendError


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class FakeExecutor:
    """Executor stand-in: `behaviour[agent_id]` is a delay, an exception or None."""

    def __init__(self, behaviour=None):
        self.behaviour = behaviour or {}
        self.started: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def execute(self, agent_id, message, history=()):
        self.started.append(agent_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            action = self.behaviour.get(agent_id, 0.01)
            if isinstance(action, Exception):
                raise action
            await asyncio.sleep(action)
            return AgentExecutionResult(
                agent_id=agent_id,
                agent_name=agent_id.title(),
                response=f"{agent_id}: {message}",
            )
        finally:
            self.in_flight -= 1


# ---------------------------------------------------------------------------
# Test: Ordering and Shape
# ---------------------------------------------------------------------------


class TestDispatchOrdering:
    def test_results_in_request_order(self):
        # "a" finishes last but still comes back first
        executor = FakeExecutor({"a": 0.05, "b": 0.0, "c": 0.02})
        results = _run(dispatch(executor, ["a", "b", "c"], "hi"))

        assert [r.agent_id for r in results] == ["a", "b", "c"]
        assert all(r.succeeded for r in results)

    def test_one_result_per_agent(self):
        results = _run(dispatch(FakeExecutor(), ["a", "b"], "hi"))
        assert len(results) == 2

    def test_duplicates_collapsed(self):
        executor = FakeExecutor()
        results = _run(dispatch(executor, ["a", "b", "a"], "hi"))

        assert [r.agent_id for r in results] == ["a", "b"]
        assert executor.started.count("a") == 1

    def test_empty_request(self):
        assert _run(dispatch(FakeExecutor(), [], "hi")) == []

    def test_runs_concurrently(self):
        executor = FakeExecutor({"a": 0.05, "b": 0.05, "c": 0.05})
        _run(dispatch(executor, ["a", "b", "c"], "hi"))
        assert executor.max_in_flight == 3

    def test_parallelism_bounded(self):
        executor = FakeExecutor({"a": 0.02, "b": 0.02, "c": 0.02})
        results = _run(dispatch(executor, ["a", "b", "c"], "hi", max_parallelism=1))

        assert executor.max_in_flight == 1
        assert [r.agent_id for r in results] == ["a", "b", "c"]


# ---------------------------------------------------------------------------
# Test: Failure Isolation
# ---------------------------------------------------------------------------


class TestDispatchFailures:
    def test_partial_failure(self):
        executor = FakeExecutor({"b": BackendError("overloaded", provider="x")})
        results = _run(dispatch(executor, ["a", "b", "c"], "hi"))

        assert [r.succeeded for r in results] == [True, False, True]
        assert results[1].error == "overloaded"
        assert results[1].response is None

    def test_unknown_agent_becomes_error_entry(self):
        executor = FakeExecutor({"ghost": AgentNotFoundError("ghost")})
        [result] = _run(dispatch(executor, ["ghost"], "hi"))
        assert result.error == "Agent not found: ghost"

    def test_unexpected_exception_contained(self):
        executor = FakeExecutor({"a": RuntimeError("kaboom")})
        [result] = _run(dispatch(executor, ["a"], "hi"))
        assert result.error == "RuntimeError: kaboom"

    def test_per_agent_timeout(self):
        executor = FakeExecutor({"slow": 1.0})
        results = _run(dispatch(
            executor, ["fast", "slow"], "hi", agent_timeout=0.1,
        ))

        assert results[0].succeeded
        assert results[1].error == "Timed out after 0.1s"

    def test_overall_deadline_keeps_finished_results(self):
        executor = FakeExecutor({"fast": 0.0, "slow": 1.0})
        results = _run(dispatch(
            executor, ["slow", "fast"], "hi", deadline=0.1,
        ))

        assert results[0].agent_id == "slow"
        assert "request deadline" in results[0].error
        assert results[1].succeeded

    def test_outer_cancellation_cancels_agents(self):
        executor = FakeExecutor({"a": 1.0, "b": 1.0})

        async def scenario():
            task = asyncio.create_task(dispatch(executor, ["a", "b"], "hi"))
            await asyncio.sleep(0.05)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                return executor.in_flight
            raise AssertionError("dispatch was not cancelled")

        assert _run(scenario()) == 0

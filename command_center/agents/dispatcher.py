# =============================================================================
# Multi-Agent Dispatcher: Concurrent Fan-Out / Fan-In
# =============================================================================
#
# Runs the executor for every requested agent at the same time and
# collects exactly one AgentExecutionResult per agent, in request order.
#
# ISOLATION:
#   Every agent runs in its own task. Exceptions and per-agent timeouts
#   are caught inside that task and turned into error results, so one
#   failing or slow specialist never takes the others down with it.
#
# DEADLINE:
#   An optional overall deadline bounds the whole fan-out. Agents still
#   running when it expires are cancelled and recorded as timeouts;
#   results that already completed are kept.
#
# CANCELLATION:
#   If the caller itself is cancelled, all in-flight agent tasks are
#   cancelled before the CancelledError propagates.
#
# DESIGN DECISION: asyncio tasks + optional Semaphore.
# Agent sets are small (≤ 3–5), so parallelism is unbounded by default.
# `max_parallelism` exists for backends with tight rate limits.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from command_center.agents.executor import AgentExecutionResult, AgentExecutor
from command_center.errors import AgentNotFoundError, BackendError
from command_center.services.conversations import Message

logger = logging.getLogger(__name__)


async def dispatch(
    executor: AgentExecutor,
    agent_ids: Sequence[str],
    message: str,
    history: Sequence[Message] = (),
    *,
    max_parallelism: int | None = None,
    agent_timeout: float | None = None,
    deadline: float | None = None,
) -> list[AgentExecutionResult]:
    """
    Execute `agent_ids` concurrently and return their results in order.

    Duplicate ids are collapsed (first occurrence wins). The returned list
    has one entry per remaining id; failures are error entries, never
    exceptions.

    Args:
        executor: Runs a single agent.
        agent_ids: Agents to run, in the order results should come back.
        message: The user's message.
        history: Recent conversation turns passed to every agent.
        max_parallelism: Max agents in flight at once (None = unbounded).
        agent_timeout: Seconds allowed per agent call (None = no limit).
        deadline: Seconds allowed for the whole fan-out (None = no limit).
    """
    ids = list(dict.fromkeys(agent_ids))
    if not ids:
        return []

    semaphore = asyncio.Semaphore(max_parallelism) if max_parallelism else None

    async def run_one(agent_id: str) -> AgentExecutionResult:
        try:
            if semaphore is None:
                return await _execute(executor, agent_id, message, history, agent_timeout)
            async with semaphore:
                return await _execute(executor, agent_id, message, history, agent_timeout)
        except TimeoutError:
            error = (
                f"Timed out after {agent_timeout:g}s" if agent_timeout
                else "Timed out"
            )
        except (AgentNotFoundError, BackendError) as e:
            error = str(e)
        except Exception as e:
            logger.exception("Agent %s raised unexpectedly", agent_id)
            error = f"{type(e).__name__}: {e}"
        logger.warning("Agent %s failed: %s", agent_id, error)
        return AgentExecutionResult.failure(agent_id, error)

    logger.info(
        "Dispatching %d agent(s): %s (max_parallelism=%s)",
        len(ids), ids, max_parallelism or "unbounded",
    )

    tasks = [
        asyncio.create_task(run_one(agent_id), name=f"agent:{agent_id}")
        for agent_id in ids
    ]
    try:
        _, pending = await asyncio.wait(tasks, timeout=deadline)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    results: list[AgentExecutionResult] = []
    for agent_id, task in zip(ids, tasks):
        if task.cancelled():
            error = f"Timed out: request deadline of {deadline:g}s exceeded"
            logger.warning("Agent %s cancelled: %s", agent_id, error)
            results.append(AgentExecutionResult.failure(agent_id, error))
        else:
            results.append(task.result())

    succeeded = sum(1 for r in results if r.succeeded)
    logger.info("Dispatch complete: %d/%d succeeded", succeeded, len(results))
    return results


async def _execute(
    executor: AgentExecutor,
    agent_id: str,
    message: str,
    history: Sequence[Message],
    timeout: float | None,
) -> AgentExecutionResult:
    return await asyncio.wait_for(
        executor.execute(agent_id, message, history), timeout=timeout,
    )

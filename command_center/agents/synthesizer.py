# =============================================================================
# Response Synthesizer: Merge Specialist Answers
# =============================================================================
#
# Turns the dispatcher's per-agent results into one reply.
#
#   0 successes  → FAILED:   fixed apology, no backend call (blank
#                            responses do not count as successes)
#   1 success    → OK:       that response verbatim, no backend call
#   2+ successes → OK:       backend merges the labeled responses
#                  DEGRADED: backend failed → labeled concatenation
#
# DESIGN DECISION: Never raise.
# Synthesis is the last step before the user sees anything. A merge
# failure costs polish, not the answer: the concatenation still carries
# every specialist's response.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from command_center.agents.executor import AgentExecutionResult
from command_center.agents.outcomes import Outcome
from command_center.errors import BackendError, SynthesisError
from command_center.services.llm import LLMProvider

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = (
    "I apologize, but I couldn't get a response from the specialist agents. "
    "Please try rephrasing your question."
)

SYNTHESIS_SYSTEM_PROMPT = (
    "You are a response synthesizer. Combine multiple expert responses "
    "into one clear, helpful answer."
)

_SYNTHESIS_PROMPT = """The user asked: "{message}"

Multiple specialist agents provided the following responses:

{responses}

Please synthesize these responses into a single, cohesive answer that:
1. Combines the key insights from each agent
2. Resolves any contradictions
3. Provides a clear, actionable response
4. Credits which agent provided which insight when relevant"""


@dataclass
class SynthesizedResponse:
    content: str
    contributors: list[str] = field(default_factory=list)


class Synthesizer:
    def __init__(self, llm: LLMProvider) -> None:
        self._llm = llm

    async def synthesize(
        self,
        message: str,
        results: Sequence[AgentExecutionResult],
    ) -> Outcome[SynthesizedResponse]:
        successes = [
            r for r in results if r.succeeded and (r.response or "").strip()
        ]
        contributors = [r.agent_id for r in successes]

        if not successes:
            logger.warning("Synthesis skipped: no agent succeeded")
            return Outcome.failed(
                SynthesizedResponse(content=APOLOGY_MESSAGE),
                "no successful agent responses",
            )

        if len(successes) == 1:
            return Outcome.ok(SynthesizedResponse(
                content=successes[0].response or "",
                contributors=contributors,
            ))

        try:
            content = await self._merge(message, successes)
        except (BackendError, SynthesisError) as e:
            logger.warning(
                "Synthesis failed (%s); concatenating %d responses",
                e, len(successes),
            )
            return self._fallback(successes, e)
        except Exception as e:
            logger.exception("Unexpected synthesis failure")
            return self._fallback(successes, e)

        logger.info("Synthesized %d agent responses", len(successes))
        return Outcome.ok(SynthesizedResponse(
            content=content, contributors=contributors,
        ))

    def _fallback(
        self, successes: Sequence[AgentExecutionResult], error: Exception,
    ) -> Outcome[SynthesizedResponse]:
        return Outcome.degraded(
            SynthesizedResponse(
                content=concatenate_responses(successes),
                contributors=[r.agent_id for r in successes],
            ),
            f"{type(error).__name__}: {error}",
        )

    async def _merge(
        self, message: str, successes: Sequence[AgentExecutionResult],
    ) -> str:
        responses = "\n\n---\n\n".join(
            f"**{_label(r)}:**\n{r.response}" for r in successes
        )
        response = await self._llm.complete(
            messages=[{
                "role": "user",
                "content": _SYNTHESIS_PROMPT.format(
                    message=message, responses=responses,
                ),
            }],
            system=SYNTHESIS_SYSTEM_PROMPT,
        )
        if not response.content.strip():
            raise SynthesisError("Synthesis backend returned empty content")
        return response.content


def concatenate_responses(successes: Sequence[AgentExecutionResult]) -> str:
    """Deterministic fallback: each response under a `**From <agent>:**` label."""
    return "\n\n".join(
        f"**From {_label(r)}:**\n{r.response}" for r in successes
    )


def _label(result: AgentExecutionResult) -> str:
    return result.agent_name or result.agent_id

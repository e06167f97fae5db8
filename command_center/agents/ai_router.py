# =============================================================================
# AI Router: Model-Assisted Routing with Keyword Fallback
# =============================================================================
#
# Asks the generative backend which specialist(s) should handle a message
# and validates the answer strictly. Anything short of a fully valid
# answer falls back to the keyword router, so the caller always receives
# a RoutingDecision of the same shape.
#
# FLOW:
#   1. Build a prompt listing every routable agent (not "orchestrator")
#   2. Ask for JSON: {primary_agent, secondary_agents, reasoning,
#      is_multi_agent}
#   3. Extract the first balanced {...} block from the raw text
#   4. Validate with RoutingPayload (all fields required, strict types,
#      agent ids must be registered)
#   5. On any failure → keyword decision, tagged DEGRADED with the reason
#
# DESIGN DECISION: Best-effort extraction, strict validation.
# Models wrap JSON in prose or code fences; extraction tolerates that.
# Validation does not tolerate partial objects: a missing field means the
# model's answer is discarded rather than half-trusted.
#
# DESIGN DECISION: `route()` never raises.
# Routing failure is never a user-facing error. The keyword router is
# pure and cannot fail, so it is the floor.
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from command_center.agents.keyword_router import (
    AGENT_KEYWORDS,
    RoutingDecision,
    route_by_keywords,
)
from command_center.agents.outcomes import Outcome
from command_center.config import Settings, get_settings
from command_center.errors import BackendError, PersistenceError, RoutingParseError
from command_center.services.conversations import Message
from command_center.services.llm import LLMProvider
from command_center.services.registry import AgentDescriptor, AgentRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured Output Schema
# ---------------------------------------------------------------------------


class RoutingPayload(BaseModel):
    """The JSON object the router model must return."""

    model_config = ConfigDict(extra="ignore")

    primary_agent: str | None = Field(strict=True)
    secondary_agents: list[str] = Field(strict=True)
    reasoning: str = Field(strict=True)
    is_multi_agent: bool = Field(strict=True)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("primary_agent", mode="before")
    @classmethod
    def _normalise_null_primary(cls, value):
        # Models sometimes spell null as a string
        if isinstance(value, str) and value.strip().lower() in {"", "null", "none"}:
            return None
        return value


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_ROUTER_PROMPT = """You are an AI request router. Based on the user's \
message, determine which specialist agent(s) should handle this request.

Available Agents:
{agent_list}
{history_block}
User Message: "{message}"

Respond with ONLY valid JSON (no markdown, no explanation):
{{
  "primary_agent": "agent-id or null if general question",
  "secondary_agents": ["agent-id", ...] or [],
  "reasoning": "Brief explanation of why these agents were selected",
  "is_multi_agent": true/false (whether multiple agents should collaborate)
}}"""


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class AIRouter:
    """
    Routes a message with the generative backend, degrading to keywords.

    The keyword tunables come from settings so both strategies agree on
    the thresholds in use.
    """

    def __init__(
        self,
        llm: LLMProvider,
        registry: AgentRegistry,
        settings: Settings | None = None,
        keyword_table: Mapping[str, Sequence[str]] = AGENT_KEYWORDS,
    ) -> None:
        self._llm = llm
        self._registry = registry
        self._settings = settings or get_settings()
        self._keyword_table = keyword_table

    def keyword_route(self, message: str) -> RoutingDecision:
        cfg = self._settings
        return route_by_keywords(
            message,
            table=self._keyword_table,
            secondary_ratio=cfg.routing_secondary_ratio,
            confidence_divisor=cfg.routing_confidence_divisor,
            max_secondary=cfg.routing_max_secondary,
        )

    async def route(
        self,
        message: str,
        history: Sequence[Message] | None = None,
    ) -> Outcome[RoutingDecision]:
        """Route `message`; never raises."""
        try:
            agents = await self._registry.list_agents()
            prompt = build_router_prompt(
                message,
                agents,
                history=list(history or [])[-self._settings.router_history_window:],
            )
            response = await self._llm.complete(
                messages=[{"role": "user", "content": prompt}],
                temperature=0.0,
                max_tokens=self._settings.router_max_tokens,
            )
            payload = parse_routing_payload(response.content)
            decision = _to_decision(payload, {a.id for a in agents})
        except (BackendError, RoutingParseError, PersistenceError) as e:
            return self._fallback(message, f"{type(e).__name__}: {e}")
        except Exception as e:
            logger.exception("Unexpected AI routing failure")
            return self._fallback(message, f"{type(e).__name__}: {e}")

        logger.info(
            "AI routed: primary=%s secondary=%s multi=%s",
            decision.primary_agent,
            list(decision.secondary_agents),
            decision.is_multi_agent,
        )
        return Outcome.ok(decision)

    def _fallback(self, message: str, reason: str) -> Outcome[RoutingDecision]:
        decision = self.keyword_route(message)
        logger.warning(
            "AI routing failed (%s); keyword route primary=%s secondary=%s",
            reason,
            decision.primary_agent,
            list(decision.secondary_agents),
        )
        return Outcome.degraded(decision, reason)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def extract_json_block(text: str) -> str:
    """
    Return the first balanced `{...}` block in `text`.

    Braces inside JSON string literals are ignored.

    Raises:
        RoutingParseError: If no opening brace exists or it never closes.
    """
    start = text.find("{")
    if start == -1:
        raise RoutingParseError("No JSON object found in router output")

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]

    raise RoutingParseError("Unbalanced JSON object in router output")


def parse_routing_payload(text: str) -> RoutingPayload:
    """
    Extract and validate the router's JSON answer.

    Raises:
        RoutingParseError: On missing/invalid JSON or schema violations.
    """
    block = extract_json_block(text)
    try:
        data = json.loads(block)
    except json.JSONDecodeError as e:
        raise RoutingParseError(f"Invalid JSON in router output: {e}") from e
    if not isinstance(data, dict):
        raise RoutingParseError("Router output is not a JSON object")
    try:
        return RoutingPayload.model_validate(data)
    except ValidationError as e:
        raise RoutingParseError(
            f"Router output failed validation: {e.error_count()} error(s)"
        ) from e


def build_router_prompt(
    message: str,
    agents: Sequence[AgentDescriptor],
    history: Sequence[Message] = (),
) -> str:
    agent_list = "\n".join(
        f"- {a.id}: {a.name} - {a.specialization}" for a in agents
    )
    history_block = ""
    if history:
        lines = [f"{m.role}: {m.content}" for m in history]
        history_block = "\nRecent Conversation:\n" + "\n".join(lines) + "\n"
    return _ROUTER_PROMPT.format(
        agent_list=agent_list,
        history_block=history_block,
        message=message,
    )


def _to_decision(payload: RoutingPayload, known_ids: set[str]) -> RoutingDecision:
    """Check agent ids against the registry and normalise the payload."""
    primary = payload.primary_agent
    if primary is None:
        return RoutingDecision(
            primary_agent=None,
            confidence=payload.confidence if payload.confidence is not None else 0.0,
            reasoning=payload.reasoning,
            is_multi_agent=False,
            strategy="ai",
        )

    unknown = [
        agent_id for agent_id in [primary, *payload.secondary_agents]
        if agent_id not in known_ids
    ]
    if unknown:
        raise RoutingParseError(f"Router chose unknown agent(s): {unknown}")

    secondary: list[str] = []
    for agent_id in payload.secondary_agents:
        if agent_id != primary and agent_id not in secondary:
            secondary.append(agent_id)

    return RoutingDecision(
        primary_agent=primary,
        secondary_agents=tuple(secondary),
        confidence=payload.confidence if payload.confidence is not None else 1.0,
        reasoning=payload.reasoning,
        is_multi_agent=payload.is_multi_agent,
        strategy="ai",
    )

# =============================================================================
# Keyword Router: Deterministic Agent Scoring
# =============================================================================
#
# Scores every specialist against the message using a static table of
# weighted keyword phrases. This is the fallback behind the AI router and
# must stay pure: same message, same table, same decision.
#
# SCORING:
#   - A phrase scores its word count ("stop loss" = 2) if it occurs in the
#     message, case-insensitively, starting at a word boundary. Inflected
#     forms count ("stocks", "deploying"), mid-word hits do not.
#   - A phrase counts once no matter how often it repeats.
#   - Agents are ranked by score, ties kept in table (registration) order.
#
# DECISION:
#   primary    = top scorer, or None when nothing scores
#   secondary  = next MAX_SECONDARY_AGENTS agents scoring at least
#                SECONDARY_SCORE_RATIO × primary
#   confidence = min(primary / CONFIDENCE_DIVISOR, 1)
#
# DESIGN DECISION: Word-start matching.
# Phrases are anchored on the left only. Short entries such as "api", "es"
# and "ip" would otherwise hit inside "zapier", "yes" and "ship" and pull
# in secondary agents that nothing in the message asked for.
# =============================================================================

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------
# Product-owned constants. The defaults reproduce the historical router;
# they are not derived from data. Settings can override them per instance.
# ---------------------------------------------------------------------------

SECONDARY_SCORE_RATIO = 0.5
CONFIDENCE_DIVISOR = 5.0
MAX_SECONDARY_AGENTS = 2

KEYWORD_REASONING = "Routed based on keyword matching"


# ---------------------------------------------------------------------------
# Keyword Table
# ---------------------------------------------------------------------------
# Dict order is registration order and decides ties.
# ---------------------------------------------------------------------------

AGENT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "highlevel-specialist": (
        "highlevel", "gohighlevel", "ghl", "workflow", "automation", "trigger",
        "lc phone", "twilio", "porting", "port number", "phone number",
        "crm", "pipeline", "opportunity", "contact", "lead",
        "email campaign", "sms", "text message", "broadcast",
        "calendar", "appointment", "booking", "funnel", "landing page",
        "snapshot", "sub-account", "agency", "saas mode",
        "webhook", "api integration", "zapier", "stripe", "payment",
    ),
    "hybrid-grid": (
        "trading", "trade", "market", "stock", "forex", "crypto",
        "bitcoin", "btc", "ethereum", "eth", "solana", "sol",
        "futures", "nq", "es", "nasdaq", "spy",
        "eur/usd", "gbp", "currency", "pip",
        "technical analysis", "chart", "indicator", "rsi", "macd",
        "support", "resistance", "trend", "breakout",
        "day trading", "swing trading", "scalping",
        "risk management", "position size", "stop loss",
    ),
    "dev-ops": (
        "code", "coding", "programming", "developer", "development",
        "javascript", "python", "react", "node", "typescript",
        "git", "github", "deploy", "deployment", "server",
        "docker", "container", "kubernetes", "aws", "cloud",
        "database", "sql", "mongodb", "api", "endpoint",
        "bug", "debug", "error", "fix", "issue",
        "ci/cd", "pipeline", "build", "test",
    ),
    "content-creator": (
        "content", "copy", "copywriting", "write", "writing",
        "social media", "instagram", "facebook", "twitter", "linkedin",
        "tiktok", "email", "newsletter", "subject line",
        "blog", "article", "post",
        "seo", "keyword", "headline", "caption",
        "brand", "voice", "tone", "messaging",
        "marketing", "campaign", "ad", "advertisement",
    ),
    "business-analyst": (
        "business", "strategy", "planning", "plan",
        "metrics", "kpi", "analytics", "data",
        "process", "efficiency", "optimization", "improve",
        "revenue", "profit", "cost", "budget", "forecast",
        "market research", "competitor", "analysis",
        "growth", "scale", "expand",
    ),
    "legal-contracts": (
        "contract", "agreement", "legal", "terms",
        "clause", "liability", "indemnity",
        "nda", "non-disclosure", "confidential",
        "compliance", "regulation", "gdpr", "privacy",
        "intellectual property", "ip", "copyright", "trademark",
        "dispute", "breach", "termination",
    ),
}


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeywordScore:
    agent_id: str
    score: float


@dataclass(frozen=True)
class RoutingDecision:
    """
    Which agent(s) should answer a message.

    Produced by either router; `strategy` records which one ("ai" or
    "keyword") for introspection only.
    """

    primary_agent: str | None
    secondary_agents: tuple[str, ...] = ()
    confidence: float = 0.0
    reasoning: str = ""
    is_multi_agent: bool = False
    strategy: str = "keyword"

    @property
    def agent_ids(self) -> list[str]:
        """Primary followed by secondaries (empty when no primary)."""
        if self.primary_agent is None:
            return []
        return [self.primary_agent, *self.secondary_agents]

    def to_dict(self) -> dict:
        return {
            "primary_agent": self.primary_agent,
            "secondary_agents": list(self.secondary_agents),
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "is_multi_agent": self.is_multi_agent,
            "strategy": self.strategy,
        }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def score_keywords(
    message: str,
    table: Mapping[str, Sequence[str]] = AGENT_KEYWORDS,
) -> list[KeywordScore]:
    """
    Score every agent in `table` against `message`.

    Returns one entry per agent with a positive score, ranked by score
    descending; equal scores keep table order (sorted() is stable).
    """
    text = message.lower()
    scores: list[KeywordScore] = []
    if not text.strip():
        return scores

    for agent_id, phrases in table.items():
        score = 0
        for phrase in phrases:
            if _phrase_pattern(phrase.lower()).search(text):
                score += len(phrase.split())
        if score > 0:
            scores.append(KeywordScore(agent_id=agent_id, score=score))

    return sorted(scores, key=lambda s: s.score, reverse=True)


def rank_scores(
    ranked: Sequence[KeywordScore],
    secondary_ratio: float = SECONDARY_SCORE_RATIO,
    confidence_divisor: float = CONFIDENCE_DIVISOR,
    max_secondary: int = MAX_SECONDARY_AGENTS,
) -> RoutingDecision:
    """
    Turn ranked scores into a decision.

    `ranked` must already be sorted best-first (as `score_keywords`
    returns it). Split out so thresholds can be tested with arbitrary
    scores.
    """
    if not ranked or ranked[0].score <= 0:
        return RoutingDecision(
            primary_agent=None,
            confidence=0.0,
            reasoning=KEYWORD_REASONING,
        )

    primary = ranked[0]
    threshold = primary.score * secondary_ratio
    secondary = tuple(
        s.agent_id
        for s in ranked[1:1 + max_secondary]
        if s.score >= threshold
    )
    confidence = max(0.0, min(primary.score / confidence_divisor, 1.0))

    return RoutingDecision(
        primary_agent=primary.agent_id,
        secondary_agents=secondary,
        confidence=confidence,
        reasoning=KEYWORD_REASONING,
        is_multi_agent=bool(secondary),
        strategy="keyword",
    )


def route_by_keywords(
    message: str,
    table: Mapping[str, Sequence[str]] = AGENT_KEYWORDS,
    secondary_ratio: float = SECONDARY_SCORE_RATIO,
    confidence_divisor: float = CONFIDENCE_DIVISOR,
    max_secondary: int = MAX_SECONDARY_AGENTS,
) -> RoutingDecision:
    """Score `message` and return the keyword routing decision."""
    return rank_scores(
        score_keywords(message, table),
        secondary_ratio=secondary_ratio,
        confidence_divisor=confidence_divisor,
        max_secondary=max_secondary,
    )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1024)
def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    """Compile a lowercased phrase into a pattern anchored at a word start."""
    return re.compile(rf"(?<![a-z0-9]){re.escape(phrase)}")

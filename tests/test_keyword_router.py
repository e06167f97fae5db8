# =============================================================================
# Unit Tests: Keyword Router
# =============================================================================
#
# Pure functions only: no LLM, no stores, no event loop.
# =============================================================================

from __future__ import annotations

import copy

from command_center.agents.keyword_router import (
    AGENT_KEYWORDS,
    KEYWORD_REASONING,
    KeywordScore,
    rank_scores,
    route_by_keywords,
    score_keywords,
)

# ---------------------------------------------------------------------------
# Test: Scoring
# ---------------------------------------------------------------------------


class TestScoreKeywords:
    """Phrase matching and weighting."""

    def test_single_word_phrases_score_one_each(self):
        scores = score_keywords("Zapier webhook for GHL")
        assert scores[0] == KeywordScore("highlevel-specialist", 3)

    def test_multi_word_phrase_weighs_by_word_count(self):
        scores = {s.agent_id: s.score for s in score_keywords("set up lc phone")}
        assert scores["highlevel-specialist"] == 2

    def test_case_insensitive(self):
        assert score_keywords("BITCOIN") == score_keywords("bitcoin")

    def test_inflected_forms_match(self):
        scores = {
            s.agent_id: s.score
            for s in score_keywords("Review my contracts and stocks and workflows")
        }
        assert scores["legal-contracts"] == 1
        assert scores["hybrid-grid"] == 1
        assert scores["highlevel-specialist"] == 1

    def test_inflected_forms_raise_confidence(self):
        decision = route_by_keywords("deploying to kubernetes clusters")
        assert decision.primary_agent == "dev-ops"
        assert decision.confidence == 0.4

    def test_phrase_inside_word_does_not_match(self):
        # "api" sits inside "zapier", "es" inside "yes", "ip" inside "ship"
        scores = {s.agent_id: s.score for s in score_keywords("yes, ship zapier")}
        assert "dev-ops" not in scores
        assert "hybrid-grid" not in scores
        assert "legal-contracts" not in scores

    def test_punctuation_delimits_phrases(self):
        scores = {s.agent_id: s.score for s in score_keywords("rsi/macd?")}
        assert scores["hybrid-grid"] == 2

    def test_ranked_best_first(self):
        scores = score_keywords("docker deploy to aws with a trading bot")
        assert [s.agent_id for s in scores] == ["dev-ops", "hybrid-grid"]

    def test_ties_keep_table_order(self):
        table = {"b-agent": ("beta",), "a-agent": ("alpha",)}
        scores = score_keywords("alpha beta", table)
        assert [s.agent_id for s in scores] == ["b-agent", "a-agent"]

    def test_blank_message_scores_nothing(self):
        assert score_keywords("   ") == []

    def test_pure(self):
        table = copy.deepcopy(AGENT_KEYWORDS)
        first = score_keywords("contract breach and stop loss")
        second = score_keywords("contract breach and stop loss")
        assert first == second
        assert AGENT_KEYWORDS == table


# ---------------------------------------------------------------------------
# Test: Ranking Thresholds
# ---------------------------------------------------------------------------


class TestRankScores:
    """Secondary threshold, secondary cap and confidence bound."""

    def test_secondary_at_exactly_half_is_included(self):
        decision = rank_scores([
            KeywordScore("a", 10), KeywordScore("b", 5),
        ])
        assert decision.secondary_agents == ("b",)
        assert decision.is_multi_agent is True

    def test_secondary_just_below_half_is_excluded(self):
        decision = rank_scores([
            KeywordScore("a", 10), KeywordScore("b", 4.9999),
        ])
        assert decision.secondary_agents == ()
        assert decision.is_multi_agent is False

    def test_at_most_two_secondaries(self):
        decision = rank_scores([
            KeywordScore("a", 4), KeywordScore("b", 4),
            KeywordScore("c", 4), KeywordScore("d", 4),
        ])
        assert decision.primary_agent == "a"
        assert decision.secondary_agents == ("b", "c")

    def test_confidence_scales_with_score(self):
        assert rank_scores([KeywordScore("a", 2)]).confidence == 0.4

    def test_confidence_capped_at_one(self):
        assert rank_scores([KeywordScore("a", 12)]).confidence == 1.0

    def test_no_scores_means_no_primary(self):
        decision = rank_scores([])
        assert decision.primary_agent is None
        assert decision.confidence == 0.0
        assert decision.is_multi_agent is False

    def test_custom_ratio(self):
        ranked = [KeywordScore("a", 10), KeywordScore("b", 3)]
        assert rank_scores(ranked, secondary_ratio=0.3).secondary_agents == ("b",)
        assert rank_scores(ranked).secondary_agents == ()


# ---------------------------------------------------------------------------
# Test: End-to-End Keyword Routing
# ---------------------------------------------------------------------------


class TestRouteByKeywords:
    def test_automation_question_single_specialist(self):
        decision = route_by_keywords(
            "How do I set up a Zapier webhook for my GHL pipeline?"
        )
        assert decision.primary_agent == "highlevel-specialist"
        assert decision.secondary_agents == ()
        assert decision.is_multi_agent is False
        assert decision.strategy == "keyword"
        assert decision.reasoning == KEYWORD_REASONING

    def test_trading_and_marketing_question_is_multi_agent(self):
        decision = route_by_keywords(
            "What's the RSI and MACD for BTC, and how's my marketing "
            "campaign doing?"
        )
        assert decision.primary_agent == "hybrid-grid"
        assert decision.secondary_agents == ("content-creator",)
        assert decision.is_multi_agent is True
        # "market" also scores via "marketing"
        assert decision.confidence == 0.8

    def test_greeting_routes_nowhere(self):
        decision = route_by_keywords("hello")
        assert decision.primary_agent is None
        assert decision.agent_ids == []
        assert decision.reasoning == KEYWORD_REASONING

    def test_confidence_always_in_unit_interval(self):
        for message in (
            "hello",
            "contract",
            "contract agreement legal terms clause liability indemnity nda",
        ):
            assert 0.0 <= route_by_keywords(message).confidence <= 1.0

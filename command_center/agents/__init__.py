# =============================================================================
# Agents Package: Routing, Dispatch and Orchestration
# =============================================================================
#   - keyword_router.py: deterministic keyword scoring and ranking
#   - ai_router.py: model-assisted routing, falls back to keywords
#   - executor.py: runs one specialist with its knowledge snippets
#   - dispatcher.py: concurrent fan-out / fan-in with timeouts
#   - synthesizer.py: merges several specialist answers into one
#   - orchestrator.py: LangGraph graph tying it all together
#   - outcomes.py: OK / DEGRADED / FAILED result wrapper
# =============================================================================

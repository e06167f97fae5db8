# =============================================================================
# Services Package: Collaborators Behind the Orchestrator
# =============================================================================
#   - llm.py: provider-agnostic LLM client (Anthropic, OpenAI-compatible)
#   - registry.py: specialist agent descriptors (memory or SQL)
#   - knowledge.py: per-agent knowledge snippets (memory or SQL)
#   - conversations.py: conversation transcripts (memory or SQL)
# =============================================================================

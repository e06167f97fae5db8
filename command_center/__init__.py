# =============================================================================
# Command Center: Multi-Agent Chat Orchestration
# =============================================================================
# Routes each user message to one or more specialist agents, runs them
# concurrently against a generative backend, merges their answers and
# keeps a per-conversation transcript.
#
# Package structure:
#   command_center/
#   ├── api/          → FastAPI route handlers (orchestrator, agents,
#   │                    conversations)
#   ├── agents/       → Routing, execution, dispatch, synthesis and the
#   │                    LangGraph orchestration graph
#   ├── db/           → Async engine, session factory and ORM models
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → LLM providers, agent registry, knowledge and
#                        conversation stores
# =============================================================================

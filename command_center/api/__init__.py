# =============================================================================
# API Package: FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for one area:
#   - orchestrator.py: routed chat and route preview
#   - agents.py: agent listing and direct chat
#   - conversations.py: transcript listing, creation and lookup
# =============================================================================

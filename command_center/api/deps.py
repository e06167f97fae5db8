# =============================================================================
# API Dependencies: FastAPI Dependency Injection
# =============================================================================
#
# DESIGN DECISION: The Orchestrator lives on `app.state`.
# It is built once in the application lifespan and handed to route
# handlers through `Depends(get_orchestrator)`. Tests swap it out with
# `app.dependency_overrides[get_orchestrator]`.
# =============================================================================

from __future__ import annotations

from fastapi import HTTPException, Request

from command_center.agents.orchestrator import Orchestrator


def get_orchestrator(request: Request) -> Orchestrator:
    """
    Return the application's Orchestrator.

    Raises:
        HTTPException 503: The lifespan did not build an orchestrator
            (e.g. no LLM API key configured).
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=503,
            detail="Orchestrator is not configured",
        )
    return orchestrator

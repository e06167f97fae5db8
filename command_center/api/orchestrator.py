# =============================================================================
# Orchestrator API: Routed Multi-Agent Chat
# =============================================================================
#
# POST /orchestrator/chat   → route, run specialist(s), synthesise, persist
# POST /orchestrator/route  → routing decision only (no agent runs)
#
# Handlers only validate requests, map errors and shape responses.
# Backend failures do not reach this layer; the
# orchestrator turns them into apology replies or degraded outcomes.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from command_center.agents.orchestrator import Orchestrator
from command_center.api.deps import get_orchestrator
from command_center.errors import InvalidRequestError
from command_center.models.requests import OrchestrateRequest, RouteRequest
from command_center.models.responses import (
    OrchestrateResponse,
    RouteResponse,
    RoutingResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orchestrator", tags=["Orchestrator"])


@router.post(
    "/chat",
    response_model=OrchestrateResponse,
    response_model_by_alias=True,
    summary="Chat with the orchestrator",
    description=(
        "Routes the message to the best specialist agent(s). General "
        "questions are answered by the orchestrator itself; multi-domain "
        "questions are fanned out to several specialists whose answers "
        "are synthesised into one reply."
    ),
)
async def orchestrate_endpoint(
    request: OrchestrateRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> OrchestrateResponse:
    try:
        result = await orchestrator.orchestrate(
            message=request.message,
            conversation_id=request.conversation_id,
            user_id=request.user_id,
        )
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.exception("Orchestration failed: %s", e)
        raise HTTPException(
            status_code=500, detail="Failed to process message",
        ) from e

    return OrchestrateResponse.from_result(result)


@router.post(
    "/route",
    response_model=RouteResponse,
    response_model_by_alias=True,
    summary="Preview routing for a message",
)
async def route_endpoint(
    request: RouteRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> RouteResponse:
    try:
        decision = await orchestrator.route_only(request.message)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return RouteResponse(routing=RoutingResponse.from_decision(decision))

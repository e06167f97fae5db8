# =============================================================================
# Agents API: Specialist Roster, Direct Chat and Knowledge
# =============================================================================
#
# GET  /agents                 → routable specialists
# GET  /agents/{agent_id}      → one agent (404 when unknown)
# POST /agents/{agent_id}/chat → chat with one agent, bypassing routing
# POST /agents/{agent_id}/knowledge/text   → add a text snippet
# POST /agents/{agent_id}/knowledge/search → search the agent's snippets
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from command_center.agents.orchestrator import Orchestrator
from command_center.api.deps import get_orchestrator
from command_center.errors import (
    AgentNotFoundError,
    InvalidRequestError,
    PersistenceError,
)
from command_center.models.requests import (
    AddKnowledgeTextRequest,
    DirectChatRequest,
    KnowledgeSearchRequest,
)
from command_center.models.responses import (
    AgentResponse,
    DirectChatResponse,
    KnowledgeEntryResponse,
    KnowledgeSearchResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents", tags=["Agents"])


@router.get(
    "",
    response_model=list[AgentResponse],
    response_model_by_alias=True,
    summary="List specialist agents",
)
async def list_agents_endpoint(
    include_orchestrator: bool = False,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> list[AgentResponse]:
    try:
        agents = await orchestrator.registry.list_agents(
            include_orchestrator=include_orchestrator,
        )
    except PersistenceError as e:
        logger.exception("Failed to list agents")
        raise HTTPException(status_code=503, detail=str(e)) from e
    return [AgentResponse.from_descriptor(a) for a in agents]


@router.get(
    "/{agent_id}",
    response_model=AgentResponse,
    response_model_by_alias=True,
    summary="Get one agent",
)
async def get_agent_endpoint(
    agent_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> AgentResponse:
    try:
        agent = await orchestrator.registry.get_agent(agent_id)
    except PersistenceError as e:
        logger.exception("Failed to load agent %s", agent_id)
        raise HTTPException(status_code=503, detail=str(e)) from e
    if agent is None:
        raise HTTPException(status_code=404, detail=f"Agent not found: {agent_id}")
    return AgentResponse.from_descriptor(agent)


@router.post(
    "/{agent_id}/chat",
    response_model=DirectChatResponse,
    response_model_by_alias=True,
    summary="Chat directly with one agent",
)
async def direct_chat_endpoint(
    agent_id: str,
    request: DirectChatRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> DirectChatResponse:
    try:
        result = await orchestrator.chat_direct(
            agent_id=agent_id,
            message=request.message,
            conversation_id=request.conversation_id,
            user_id=request.user_id,
        )
    except AgentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PersistenceError as e:
        logger.exception("Direct chat with %s failed", agent_id)
        raise HTTPException(status_code=503, detail=str(e)) from e

    return DirectChatResponse.from_result(result)


# ---------------------------------------------------------------------------
# Knowledge
# ---------------------------------------------------------------------------


@router.post(
    "/{agent_id}/knowledge/text",
    response_model=KnowledgeEntryResponse,
    response_model_by_alias=True,
    status_code=201,
    summary="Add a text snippet to an agent's knowledge",
)
async def add_knowledge_text_endpoint(
    agent_id: str,
    request: AddKnowledgeTextRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> KnowledgeEntryResponse:
    if not (request.title or "").strip() or not (request.content or "").strip():
        raise HTTPException(
            status_code=400, detail="Title and content are required",
        )
    await _require_agent(orchestrator, agent_id)

    try:
        entry = await orchestrator.knowledge.add(
            agent_id,
            request.title,
            content=request.content,
            summary=request.summary,
            source_url=request.source_url,
            metadata=request.metadata,
        )
    except PersistenceError as e:
        logger.exception("Failed to add knowledge for %s", agent_id)
        raise HTTPException(status_code=503, detail=str(e)) from e

    logger.info("Added knowledge %s for agent %s", entry.id, agent_id)
    return KnowledgeEntryResponse.from_snippet(entry)


@router.post(
    "/{agent_id}/knowledge/search",
    response_model=KnowledgeSearchResponse,
    response_model_by_alias=True,
    summary="Search an agent's knowledge",
)
async def search_knowledge_endpoint(
    agent_id: str,
    request: KnowledgeSearchRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> KnowledgeSearchResponse:
    if not (request.query or "").strip():
        raise HTTPException(status_code=400, detail="Query is required")
    await _require_agent(orchestrator, agent_id)

    try:
        snippets = await orchestrator.knowledge.search(
            agent_id, request.query, request.limit,
        )
    except PersistenceError as e:
        logger.exception("Knowledge search failed for %s", agent_id)
        raise HTTPException(status_code=503, detail=str(e)) from e

    return KnowledgeSearchResponse(
        results=[KnowledgeEntryResponse.from_snippet(s) for s in snippets],
    )


async def _require_agent(orchestrator: Orchestrator, agent_id: str) -> None:
    try:
        agent = await orchestrator.registry.get_agent(agent_id)
    except PersistenceError as e:
        logger.exception("Failed to load agent %s", agent_id)
        raise HTTPException(status_code=503, detail=str(e)) from e
    if agent is None:
        raise HTTPException(status_code=404, detail=f"Agent not found: {agent_id}")

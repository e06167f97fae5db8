# =============================================================================
# Conversations API: Transcript Access
# =============================================================================
#
# GET  /agent-conversations               → a user's conversations
# GET  /agent-conversations/{id}          → one conversation with messages
# POST /agent-conversations               → create an empty conversation
#
# Store failures surface as 503 here: unlike chat, there is no answer to
# fall back to.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from command_center.agents.orchestrator import Orchestrator
from command_center.api.deps import get_orchestrator
from command_center.errors import PersistenceError
from command_center.models.requests import CreateConversationRequest
from command_center.models.responses import (
    ConversationCreatedResponse,
    ConversationDetail,
    ConversationSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agent-conversations", tags=["Conversations"])


@router.get(
    "",
    response_model=list[ConversationSummary],
    response_model_by_alias=True,
    summary="List a user's conversations",
)
async def list_conversations_endpoint(
    user_id: str = Query(default="default", alias="userId"),
    limit: int = Query(default=20, ge=1, le=100),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> list[ConversationSummary]:
    try:
        conversations = await orchestrator.conversations.list_conversations(
            user_id, limit,
        )
    except PersistenceError as e:
        logger.exception("Failed to list conversations for %s", user_id)
        raise HTTPException(status_code=503, detail=str(e)) from e
    return [ConversationSummary.from_state(c) for c in conversations]


@router.get(
    "/{conversation_id}",
    response_model=ConversationDetail,
    response_model_by_alias=True,
    summary="Get a conversation with its messages",
)
async def get_conversation_endpoint(
    conversation_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> ConversationDetail:
    try:
        conversation = await orchestrator.conversations.get_conversation(
            conversation_id,
        )
    except PersistenceError as e:
        logger.exception("Failed to load conversation %s", conversation_id)
        raise HTTPException(status_code=503, detail=str(e)) from e
    if conversation is None:
        raise HTTPException(
            status_code=404,
            detail=f"Conversation not found: {conversation_id}",
        )
    return ConversationDetail.from_state(conversation)


@router.post(
    "",
    response_model=ConversationCreatedResponse,
    response_model_by_alias=True,
    status_code=201,
    summary="Create a conversation",
)
async def create_conversation_endpoint(
    request: CreateConversationRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> ConversationCreatedResponse:
    try:
        conversation_id = await orchestrator.conversations.create_conversation(
            request.user_id, request.title, request.participants,
        )
    except PersistenceError as e:
        logger.exception("Failed to create conversation")
        raise HTTPException(status_code=503, detail=str(e)) from e
    return ConversationCreatedResponse(conversation_id=conversation_id)

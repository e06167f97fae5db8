# =============================================================================
# API Request Models: Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API.
#
# DESIGN DECISION: camelCase on the wire, snake_case in Python.
# Web clients send `conversationId` / `userId`. `populate_by_name=True`
# keeps snake_case usable from Python callers and tests.
#
# Empty or whitespace-only messages are rejected here (422) before the
# orchestrator is ever invoked. The orchestrator checks again (400) for
# non-HTTP callers.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_camel_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _MessageRequest(BaseModel):
    model_config = _camel_config

    message: str = Field(
        ...,
        min_length=1,
        max_length=8000,
        description="The user's message",
    )

    @field_validator("message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message is required")
        return value


class OrchestrateRequest(_MessageRequest):
    """
    Request body for POST /orchestrator/chat.

    Example:
        {
            "message": "Our RSI and MACD are diverging on BTC, and we "
                       "need a marketing campaign for the new signal",
            "conversationId": null,
            "userId": "default"
        }
    """

    # Omit to start a new conversation
    conversation_id: str | None = Field(
        default=None,
        description="Existing conversation to continue. Omit to start a new one.",
    )
    user_id: str = Field(default="default", max_length=200)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"message": "How do I port a number to our SIP trunk?"},
                {
                    "message": "What are the best practices for writing?",
                    "conversationId": "6f1c2d3e-0000-4000-8000-000000000000",
                    "userId": "alice",
                },
            ]
        },
    )


class DirectChatRequest(_MessageRequest):
    """Request body for POST /agents/{agent_id}/chat - no routing."""

    conversation_id: str | None = None
    user_id: str = Field(default="default", max_length=200)


class RouteRequest(_MessageRequest):
    """Request body for POST /orchestrator/route - routing preview only."""


class CreateConversationRequest(BaseModel):
    """Request body for POST /agent-conversations."""

    model_config = _camel_config

    user_id: str = Field(default="default", max_length=200)
    title: str | None = Field(default=None, max_length=200)
    participants: list[str] = Field(default_factory=list)


class AddKnowledgeTextRequest(BaseModel):
    """
    Request body for POST /agents/{agent_id}/knowledge/text.

    `title` and `content` are checked in the route so that a missing one
    answers 400, matching the chat endpoints.
    """

    model_config = _camel_config

    title: str | None = Field(default=None, max_length=500)
    content: str | None = Field(default=None, max_length=100_000)
    summary: str | None = None
    source_url: str | None = None
    metadata: dict = Field(default_factory=dict)


class KnowledgeSearchRequest(BaseModel):
    """Request body for POST /agents/{agent_id}/knowledge/search."""

    model_config = _camel_config

    query: str | None = None
    limit: int = Field(default=10, ge=1, le=50)

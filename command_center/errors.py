"""
Error taxonomy for the orchestration core.

Only `AgentNotFoundError` and `InvalidRequestError` are ever surfaced to
callers of the public orchestrator API. The others are raised at internal
boundaries and converted into degraded results or log lines:

- `BackendError`: the generative backend failed or timed out. The AI router
  falls back to keyword routing; the dispatcher records it as data.
- `RoutingParseError`: the router's model output held no usable JSON.
- `SynthesisError`: the merge call failed; the synthesizer concatenates.
- `PersistenceError`: the conversation store is unavailable; logged only.
"""


class OrchestrationError(Exception):
    """Base class for all orchestration errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AgentNotFoundError(OrchestrationError):
    """Raised when an agent id is not registered."""

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Agent not found: {agent_id}")


class InvalidRequestError(OrchestrationError, ValueError):
    """Raised when a request is missing required input (e.g. the message)."""


class BackendError(OrchestrationError):
    """Raised when a generative backend call fails or times out."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class RoutingParseError(OrchestrationError):
    """Raised when structured routing output cannot be extracted or validated."""


class SynthesisError(OrchestrationError):
    """Raised when merging agent responses fails."""


class PersistenceError(OrchestrationError):
    """Raised when a conversation store read or write fails."""

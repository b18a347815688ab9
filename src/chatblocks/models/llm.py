"""Pydantic models for LLM requests and responses."""

from pydantic import BaseModel, Field
from typing import Any, Literal, Optional


Role = Literal["system", "user", "assistant", "tool"]


class ChatMessage(BaseModel):
    """Role-tagged message sent to a provider."""

    role: Role

    content: str

    tool_call_id: Optional[str] = Field(
        default=None,
        description="Required by OpenAI-compatible APIs on tool messages"
    )

    name: Optional[str] = Field(default=None, description="Tool name (tool messages)")

    def to_payload(self) -> dict[str, Any]:
        """Wire form, omitting unset optional fields."""
        return self.model_dump(exclude_none=True)


class Usage(BaseModel):
    """Token usage counters reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class LLMRequest(BaseModel):
    """Request to send a conversation to a model."""

    model_id: Optional[str] = Field(
        default=None,
        description="Model id or alias; the service's current model when unset"
    )

    messages: list[ChatMessage]

    parameters: dict[str, Any] = Field(default_factory=dict)


class LLMResponse(BaseModel):
    """Response from the LLM service. Failures are carried in `error`."""

    content: str = ""

    error: Optional[str] = None

    reasoning_content: Optional[str] = None

    raw_response: Optional[dict[str, Any]] = None

    provider_id: Optional[str] = None

    model_id: Optional[str] = None

    usage: Optional[Usage] = None

    @property
    def ok(self) -> bool:
        return self.error is None

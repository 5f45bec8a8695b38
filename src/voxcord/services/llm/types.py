"""Types shared by the inference service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from voxcord.core.models import ConversationTurn, ToolCall

type ToolSchema = dict[str, Any]


@dataclass(slots=True)
class LiteLLMOptions:
    """Optional configuration for building LiteLLM kwargs."""

    base_url: str | None = None
    extra_headers: dict | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    timeout: float | None = None
    tools: list[ToolSchema] | None = None


@dataclass(slots=True)
class InferenceRequest:
    """One model call.

    ``model`` is a ``provider/model`` string resolved against the configured
    providers. An empty ``tools`` list disables tool calling.
    """

    model: str
    system_instruction: str
    turns: list[ConversationTurn]
    tools: list[ToolSchema] = field(default_factory=list)
    max_tokens: int | None = None


@dataclass(slots=True)
class InferenceResponse:
    """The assistant message returned by a model call."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


class InferenceClient(Protocol):
    """Opaque request/response model inference."""

    async def complete(self, request: InferenceRequest) -> InferenceResponse:
        """Run one model call; provider failures raise TransientProviderError."""
        ...

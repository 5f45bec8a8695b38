"""Conversion between conversation turns and OpenAI-format messages."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from voxcord.core.exceptions import TransientProviderError
from voxcord.core.models import ImagePart, Role, TextPart, ToolCall
from voxcord.services.llm.types import InferenceResponse

if TYPE_CHECKING:
    from collections.abc import Sequence

    from voxcord.core.models import ConversationTurn


def _user_content(turn: ConversationTurn) -> str | list[dict[str, Any]]:
    if all(isinstance(part, TextPart) for part in turn.content):
        return "\n".join(part.text for part in turn.content if isinstance(part, TextPart))

    parts: list[dict[str, Any]] = []
    for part in turn.content:
        if isinstance(part, ImagePart):
            parts.append({"type": "image_url", "image_url": {"url": part.url}})
        else:
            parts.append({"type": "text", "text": part.text})
    return parts


def turn_to_openai_message(turn: ConversationTurn) -> dict[str, Any]:
    """Render a single turn as an OpenAI chat message."""
    if turn.role == Role.TOOL:
        return {
            "role": "tool",
            "tool_call_id": turn.tool_call_id,
            "content": turn.text,
        }

    if turn.role == Role.ASSISTANT:
        message: dict[str, Any] = {"role": "assistant", "content": turn.text or None}
        if turn.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in turn.tool_calls
            ]
        return message

    return {"role": "user", "content": _user_content(turn)}


def build_openai_messages(
    system_instruction: str,
    turns: Sequence[ConversationTurn],
) -> list[dict[str, Any]]:
    """Build the full message list, system instruction first."""
    messages: list[dict[str, Any]] = []
    if system_instruction:
        messages.append({"role": "system", "content": system_instruction})
    messages.extend(turn_to_openai_message(turn) for turn in turns)
    return messages


def _parse_tool_calls(raw_calls: object) -> list[ToolCall]:
    if not raw_calls:
        return []
    calls: list[ToolCall] = []
    for index, raw in enumerate(raw_calls):  # type: ignore[arg-type]
        function = getattr(raw, "function", None)
        name = getattr(function, "name", None)
        if not name:
            msg = "Tool call without a function name"
            raise TransientProviderError(msg)
        call_id = getattr(raw, "id", None) or f"call_{index}"
        arguments = getattr(function, "arguments", None) or "{}"
        calls.append(ToolCall(id=str(call_id), name=str(name), arguments=str(arguments)))
    return calls


def parse_completion(response: object, *, provider: str | None = None) -> InferenceResponse:
    """Extract content and tool calls from a LiteLLM completion response.

    Missing choices or message fields are malformed output, which is treated
    like any other provider failure.
    """
    choices = getattr(response, "choices", None)
    if not choices:
        msg = "Model response contained no choices"
        raise TransientProviderError(msg, provider=provider)
    message = getattr(choices[0], "message", None)
    if message is None:
        msg = "Model response contained no message"
        raise TransientProviderError(msg, provider=provider)

    content = getattr(message, "content", None) or ""
    return InferenceResponse(
        content=str(content),
        tool_calls=_parse_tool_calls(getattr(message, "tool_calls", None)),
    )

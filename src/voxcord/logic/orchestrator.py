"""Tool-call loop against the primary model, with a single fallback."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from voxcord.core.config.constants import (
    EMPTY_ANSWER_MESSAGE,
    FALLBACK_EMPTY_MESSAGE,
    FALLBACK_MAX_TOKENS,
    MAX_TOOL_ROUNDS,
    PRIMARY_MAX_TOKENS,
    TOOL_LIMIT_MESSAGE,
)
from voxcord.core.exceptions import TransientProviderError
from voxcord.core.models import ConversationTurn, ConverseResult, Role, TextPart
from voxcord.logic.fallbacks import RandomFallbackSelector
from voxcord.services.llm.types import InferenceRequest

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from voxcord.core.models import ConversationContext
    from voxcord.logic.fallbacks import FallbackSelector
    from voxcord.logic.tools import ToolExecutor
    from voxcord.services.llm.types import InferenceClient

logger = logging.getLogger(__name__)

_THINK_BLOCK = re.compile(r"<think>(.*?)</think>", re.DOTALL)
_THINK_CLOSE = "</think>"


def split_thinking(content: str) -> tuple[str, str | None]:
    """Separate a ``<think>...</think>`` segment from the answer.

    Only text after the segment is the answer. A segment that was opened
    but never closed leaves no answer at all. Some providers drop the
    opening tag, so a bare closing tag also ends the thinking segment.
    """
    match = _THINK_BLOCK.search(content)
    if match:
        return content[match.end() :].strip(), match.group(1).strip() or None
    if "<think>" in content:
        return "", content.split("<think>", 1)[1].strip() or None
    if _THINK_CLOSE in content:
        thinking, answer = content.split(_THINK_CLOSE, 1)
        return answer.strip(), thinking.strip() or None
    return content.strip(), None


@dataclass(frozen=True, slots=True)
class OrchestratorSettings:
    """Models and limits for one orchestrator."""

    primary_model: str
    fallback_models: tuple[str, ...] = ()
    max_tokens: int = PRIMARY_MAX_TOKENS
    fallback_max_tokens: int = FALLBACK_MAX_TOKENS
    max_tool_rounds: int = MAX_TOOL_ROUNDS


class ToolCallOrchestrator:
    """Drives request, tool execution and follow-up until a final answer.

    The loop is bounded by ``max_tool_rounds`` Execute phases. A
    TransientProviderError from the primary model triggers exactly one call
    to a fallback model, without tools and with the turns the caller passed
    in. Tool failures are not provider failures and propagate.
    """

    def __init__(
        self,
        client: InferenceClient,
        tools: ToolExecutor,
        settings: OrchestratorSettings,
        *,
        selector: FallbackSelector | None = None,
        system_prompt: str | Callable[[], str] = "",
    ) -> None:
        self._client = client
        self._tools = tools
        self.settings = settings
        self._selector = selector or RandomFallbackSelector()
        self._system_prompt = system_prompt

    def _system_instruction(self) -> str:
        if callable(self._system_prompt):
            return self._system_prompt()
        return self._system_prompt

    async def converse(
        self,
        turns: Sequence[ConversationTurn],
        *,
        context: ConversationContext | None = None,
    ) -> ConverseResult:
        """Produce the reply for ``turns``."""
        system_instruction = self._system_instruction()
        exchange = list(turns)
        schemas = self._tools.schemas()
        artifact: bytes | None = None
        rounds = 0

        try:
            while True:
                response = await self._client.complete(
                    InferenceRequest(
                        model=self.settings.primary_model,
                        system_instruction=system_instruction,
                        turns=exchange,
                        tools=schemas,
                        max_tokens=self.settings.max_tokens,
                    ),
                )
                if not response.tool_calls:
                    return self._finish(response.content, artifact)

                if rounds >= self.settings.max_tool_rounds:
                    logger.warning(
                        "Model still requesting tools after %s rounds; giving up",
                        rounds,
                    )
                    return ConverseResult(answer=TOOL_LIMIT_MESSAGE, artifact=artifact)
                rounds += 1

                outcome = await self._tools.execute(response.tool_calls, context)
                content = [TextPart(response.content)] if response.content.strip() else []
                exchange.append(
                    ConversationTurn(
                        role=Role.ASSISTANT,
                        content=content,
                        tool_calls=list(response.tool_calls),
                    ),
                )
                exchange.extend(outcome.results)
                if outcome.artifact is not None:
                    artifact = outcome.artifact
        except TransientProviderError as exc:
            return await self._fallback(turns, system_instruction, exc, artifact)

    def _finish(self, content: str, artifact: bytes | None) -> ConverseResult:
        answer, thinking = split_thinking(content)
        if not answer:
            logger.warning("Primary model returned an empty answer")
            answer = EMPTY_ANSWER_MESSAGE
        return ConverseResult(answer=answer, thinking=thinking, artifact=artifact)

    async def _fallback(
        self,
        turns: Sequence[ConversationTurn],
        system_instruction: str,
        error: TransientProviderError,
        artifact: bytes | None,
    ) -> ConverseResult:
        if not self.settings.fallback_models:
            raise error
        model = self._selector.select(self.settings.fallback_models)
        logger.warning(
            "Primary model %s failed (%s); falling back to %s",
            self.settings.primary_model,
            error,
            model,
        )
        response = await self._client.complete(
            InferenceRequest(
                model=model,
                system_instruction=system_instruction,
                turns=list(turns),
                tools=[],
                max_tokens=self.settings.fallback_max_tokens,
            ),
        )
        answer, thinking = split_thinking(response.content)
        return ConverseResult(
            answer=answer or FALLBACK_EMPTY_MESSAGE,
            thinking=thinking,
            artifact=artifact,
            used_fallback=True,
        )

"""LiteLLM-backed inference client."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
import litellm

from voxcord.core.config import normalize_api_keys
from voxcord.core.config.constants import LITELLM_TIMEOUT_SECONDS
from voxcord.core.exceptions import TransientProviderError
from voxcord.services.llm.core import parse_provider_slash_model, prepare_litellm_kwargs
from voxcord.services.llm.messages import build_openai_messages, parse_completion
from voxcord.services.llm.types import LiteLLMOptions

if TYPE_CHECKING:
    from collections.abc import Mapping

    from voxcord.services.llm.types import InferenceRequest, InferenceResponse

logger = logging.getLogger(__name__)


def _collect_litellm_exceptions() -> tuple[type[Exception], ...]:
    return tuple(
        dict.fromkeys(
            exception_type
            for exception_type in vars(litellm.exceptions).values()
            if isinstance(exception_type, type)
            and issubclass(exception_type, Exception)
        ),
    )


LITELLM_PROVIDER_ERRORS = _collect_litellm_exceptions()

PROVIDER_CALL_EXCEPTIONS = (
    asyncio.TimeoutError,
    httpx.HTTPError,
    OSError,
    *LITELLM_PROVIDER_ERRORS,
)


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    """Connection settings for one configured provider."""

    name: str
    base_url: str | None
    api_keys: tuple[str, ...]


def resolve_provider(config: Mapping[str, Any], provider: str) -> ProviderSettings:
    """Look up ``providers.<provider>`` in the config, tolerating gaps."""
    providers = config.get("providers")
    if not isinstance(providers, dict):
        providers = {}
    provider_config = providers.get(provider)
    if not isinstance(provider_config, dict):
        provider_config = {}
    api_keys = [key for key in normalize_api_keys(provider_config.get("api_key")) if key]
    return ProviderSettings(
        name=provider,
        base_url=provider_config.get("base_url") or None,
        api_keys=tuple(api_keys),
    )


class LiteLLMInferenceClient:
    """Runs model calls through ``litellm.acompletion``.

    Each configured API key of the provider is tried once, starting from a
    rotating offset. When every key fails the call raises
    TransientProviderError, which is what the orchestrator's fallback reacts
    to.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        *,
        timeout: float = LITELLM_TIMEOUT_SECONDS,
        temperature: float | None = None,
    ) -> None:
        self._config = config
        self._timeout = timeout
        self._temperature = temperature
        self._key_offsets: dict[str, int] = {}

    def _ordered_keys(self, settings: ProviderSettings) -> list[str | None]:
        if not settings.api_keys:
            return [None]
        offset = self._key_offsets.get(settings.name, 0) % len(settings.api_keys)
        self._key_offsets[settings.name] = offset + 1
        keys = list(settings.api_keys)
        return [*keys[offset:], *keys[:offset]]

    async def complete(self, request: InferenceRequest) -> InferenceResponse:
        """Run one model call, rotating through the provider's keys."""
        provider, model = parse_provider_slash_model(request.model)
        settings = resolve_provider(self._config, provider)
        messages = build_openai_messages(request.system_instruction, request.turns)
        options = LiteLLMOptions(
            base_url=settings.base_url,
            temperature=self._temperature,
            max_tokens=request.max_tokens,
            timeout=self._timeout,
            tools=request.tools or None,
        )

        keys = self._ordered_keys(settings)
        last_error: BaseException | None = None
        for attempt, api_key in enumerate(keys, start=1):
            kwargs = prepare_litellm_kwargs(
                provider,
                model,
                messages,
                api_key,
                options=options,
            )
            try:
                response = await litellm.acompletion(**kwargs)
            except PROVIDER_CALL_EXCEPTIONS as exc:
                last_error = exc
                logger.warning(
                    "Model call to %s failed (key %s/%s): %s",
                    request.model,
                    attempt,
                    len(keys),
                    exc,
                )
                continue
            return parse_completion(response, provider=request.model)

        msg = f"All {len(keys)} attempt(s) against {request.model} failed"
        raise TransientProviderError(msg, provider=request.model) from last_error

"""Speech-to-text through LiteLLM."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import litellm

from voxcord.core.exceptions import TransientProviderError
from voxcord.services.llm.client import PROVIDER_CALL_EXCEPTIONS, resolve_provider
from voxcord.services.llm.core import build_litellm_model_name, parse_provider_slash_model

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

DEFAULT_TRANSCRIPTION_MODEL = "groq/whisper-large-v3-turbo"


class Transcriber(Protocol):
    """Turns raw audio bytes into a transcript."""

    async def transcribe(self, audio: bytes) -> str: ...


class LiteLLMTranscriber:
    """Whisper-style transcription via ``litellm.atranscription``."""

    def __init__(
        self,
        config: Mapping[str, Any],
        *,
        model: str = DEFAULT_TRANSCRIPTION_MODEL,
        filename: str = "audio.ogg",
    ) -> None:
        self.model = model
        self.filename = filename
        provider, self._model_name = parse_provider_slash_model(model)
        self._provider = resolve_provider(config, provider)

    async def transcribe(self, audio: bytes) -> str:
        """Return the transcript of ``audio``."""
        kwargs: dict[str, Any] = {
            "model": build_litellm_model_name(self._provider.name, self._model_name),
            "file": (self.filename, audio),
        }
        if self._provider.api_keys:
            kwargs["api_key"] = self._provider.api_keys[0]
        if self._provider.base_url:
            kwargs["api_base"] = self._provider.base_url

        try:
            response = await litellm.atranscription(**kwargs)
        except PROVIDER_CALL_EXCEPTIONS as exc:
            msg = f"Transcription with {self.model} failed: {exc}"
            raise TransientProviderError(msg, provider=self.model) from exc

        text = getattr(response, "text", None)
        if not isinstance(text, str):
            msg = "Transcription response had no text"
            raise TransientProviderError(msg, provider=self.model)
        return text.strip()

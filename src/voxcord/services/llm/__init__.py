"""LLM service entrypoints and exports."""

from voxcord.services.llm.client import LiteLLMInferenceClient, resolve_provider
from voxcord.services.llm.core import (
    build_litellm_model_name,
    parse_provider_slash_model,
    prepare_litellm_kwargs,
)
from voxcord.services.llm.types import (
    InferenceClient,
    InferenceRequest,
    InferenceResponse,
    LiteLLMOptions,
)

__all__ = [
    "InferenceClient",
    "InferenceRequest",
    "InferenceResponse",
    "LiteLLMInferenceClient",
    "LiteLLMOptions",
    "build_litellm_model_name",
    "parse_provider_slash_model",
    "prepare_litellm_kwargs",
    "resolve_provider",
]

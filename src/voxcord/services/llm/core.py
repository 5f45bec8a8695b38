"""Core LLM service operations."""

from typing import Any

from voxcord.services.llm.types import LiteLLMOptions

# Providers LiteLLM knows natively; anything else is an OpenAI-compatible
# endpoint reached through its configured base_url.
NATIVE_PROVIDERS = frozenset(
    {
        "cerebras",
        "deepseek",
        "gemini",
        "groq",
        "mistral",
        "openai",
        "openrouter",
    },
)


def parse_provider_slash_model(provider_slash_model: str) -> tuple[str, str]:
    """Split ``provider/model`` into its parts.

    Only the first slash separates the provider, so model names such as
    ``openrouter/meta-llama/llama-3.1-405b-instruct`` keep their own slashes.
    """
    provider, sep, model = provider_slash_model.partition("/")
    if not sep or not provider or not model:
        msg = f"Model must be in 'provider/model' form, got {provider_slash_model!r}"
        raise ValueError(msg)
    return provider, model


def build_litellm_model_name(provider: str, model: str) -> str:
    """Build the LiteLLM model name with proper provider prefix.

    Args:
        provider: Provider name (e.g., "groq", "openrouter")
        model: Model name

    Returns:
        LiteLLM-compatible model string (e.g., "groq/qwen-qwq-32b")

    """
    if provider in NATIVE_PROVIDERS:
        return f"{provider}/{model}"
    return f"openai/{model}"


def prepare_litellm_kwargs(
    provider: str,
    model: str,
    messages: list,
    api_key: str | None,
    *,
    options: LiteLLMOptions | None = None,
) -> dict[str, Any]:
    """Prepare kwargs for LiteLLM acompletion() with provider configuration.

    Args:
        provider: Provider name
        model: Model name
        messages: List of OpenAI-format message dicts
        api_key: API key to use, if the provider needs one
        options: Optional configuration bundle

    Returns:
        Dict of kwargs ready to pass to litellm.acompletion()

    """
    options = options or LiteLLMOptions()

    kwargs: dict[str, Any] = {
        "model": build_litellm_model_name(provider, model),
        "messages": messages,
    }
    if api_key:
        kwargs["api_key"] = api_key
    if options.base_url:
        kwargs["base_url"] = options.base_url
    if options.temperature is not None:
        kwargs["temperature"] = options.temperature
    if options.max_tokens is not None:
        kwargs["max_tokens"] = options.max_tokens
    if options.timeout is not None:
        kwargs["timeout"] = options.timeout
    if options.tools:
        kwargs["tools"] = options.tools
        kwargs["tool_choice"] = "auto"
    if options.extra_headers:
        kwargs["extra_headers"] = dict(options.extra_headers)

    return kwargs

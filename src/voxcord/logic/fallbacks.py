"""Fallback model selection for failed primary calls."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any, Protocol

from voxcord.core.config import ensure_list

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_MODELS: tuple[str, ...] = (
    "crof/deepseek-r1",
    "crof/deepseek-r1-distill-llama-70b",
    "crof/llama3.1-405b-instruct",
)


class FallbackSelector(Protocol):
    """Chooses which fallback model serves a failed exchange."""

    def select(self, models: Sequence[str]) -> str: ...


class RandomFallbackSelector:
    """Uniform random choice; pass a seeded ``random.Random`` in tests."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()  # noqa: S311

    def select(self, models: Sequence[str]) -> str:
        if not models:
            msg = "No fallback models configured"
            raise ValueError(msg)
        return self._rng.choice(list(models))


class RoundRobinFallbackSelector:
    """Cycles through the pool in order."""

    def __init__(self) -> None:
        self._index = 0

    def select(self, models: Sequence[str]) -> str:
        if not models:
            msg = "No fallback models configured"
            raise ValueError(msg)
        model = models[self._index % len(models)]
        self._index += 1
        return model


def build_fallback_selector(
    strategy: str | None,
    *,
    rng: random.Random | None = None,
) -> FallbackSelector:
    """Create the selector named by ``fallback_strategy``."""
    if strategy in (None, "", "random"):
        return RandomFallbackSelector(rng)
    if strategy == "round_robin":
        return RoundRobinFallbackSelector()
    logger.warning("Unknown fallback_strategy %r, using random", strategy)
    return RandomFallbackSelector(rng)


def fallback_models_from_config(
    config: Mapping[str, Any],
    primary_model: str,
) -> tuple[str, ...]:
    """Read ``fallback_models``, dropping the primary model itself.

    An absent key means the default pool; an empty list disables fallback.
    """
    raw_models = config.get("fallback_models")
    if raw_models is None:
        models = list(DEFAULT_FALLBACK_MODELS)
    else:
        models = ensure_list(raw_models)
    return tuple(model for model in dict.fromkeys(models) if model != primary_model)

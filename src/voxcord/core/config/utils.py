"""Configuration helper functions."""

import json
from collections.abc import Iterable, Mapping


def normalize_api_keys(raw_api_keys: object) -> list[str]:
    """Normalize provider ``api_key`` config into a list of strings."""
    if raw_api_keys is None:
        return []

    if isinstance(raw_api_keys, str):
        return [raw_api_keys]

    if isinstance(raw_api_keys, Mapping):
        return [json.dumps(raw_api_keys, separators=(",", ":"))]

    if not isinstance(raw_api_keys, Iterable):
        return [str(raw_api_keys)]

    return [
        json.dumps(value, separators=(",", ":"))
        if isinstance(value, Mapping)
        else str(value)
        for value in raw_api_keys
    ]


def config_float(config: Mapping[str, object], key: str, default: float) -> float:
    """Read a non-negative float setting, falling back on bad values."""
    raw_value = config.get(key, default)
    if isinstance(raw_value, bool):
        return default

    try:
        value = float(raw_value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default

    if value < 0:
        return default
    return value


def config_int(config: Mapping[str, object], key: str, default: int) -> int:
    """Read a positive integer setting, falling back on bad values."""
    raw_value = config.get(key, default)
    if isinstance(raw_value, bool):
        return default

    try:
        value = int(raw_value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default

    if value <= 0:
        return default
    return value


def config_bool(config: Mapping[str, object], key: str, *, default: bool) -> bool:
    """Read a boolean setting; only real YAML booleans are honored."""
    raw_value = config.get(key, default)
    if isinstance(raw_value, bool):
        return raw_value
    return default

"""Loading, caching and validation of ``config.yaml``."""

import os
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV_VAR = "VOXCORD_CONFIG"
DEFAULT_CONFIG_FILENAME = "config.yaml"
SECRETS_DIR = Path("/etc/secrets")
REQUIRED_KEYS = ("bot_token", "model")
CONFIG_CACHE_TTL = 5  # seconds between mtime checks


class ConfigFileNotFoundError(FileNotFoundError):
    """Raised when a configuration file cannot be found."""

    def __init__(self, filename: str) -> None:
        """Initialize the error with the missing filename."""
        self.filename = filename
        super().__init__(filename)

    def __str__(self) -> str:
        """Return a readable error message."""
        return (
            f"Config file '{self.filename}' not found in current directory or "
            f"{SECRETS_DIR}/ (set {CONFIG_ENV_VAR} to point elsewhere)"
        )


class ConfigFileEmptyError(ValueError):
    """Raised when a configuration file is empty or not a mapping."""

    def __init__(self, path: Path) -> None:
        """Initialize the error with the invalid config path."""
        self.path = path
        super().__init__(path)

    def __str__(self) -> str:
        """Return a readable error message."""
        return f"Config file is empty or corrupted: {self.path}"


class ConfigValidationError(ValueError):
    """Raised when required settings are missing or malformed."""

    def __init__(self, problems: list[str]) -> None:
        """Initialize the error with every problem found."""
        self.problems = problems
        super().__init__("; ".join(problems))


class _ConfigCacheState:
    def __init__(self) -> None:
        self.cache: dict[str, Any] = {}
        self.path: Path | None = None
        self.mtime: float = 0
        self.check_time: float = 0


_CONFIG_STATE = _ConfigCacheState()


def _resolve_config_path(filename: str | None) -> Path:
    if filename is None:
        override = os.environ.get(CONFIG_ENV_VAR)
        if override:
            path = Path(override)
            if path.is_file():
                return path
            raise ConfigFileNotFoundError(override)
        filename = DEFAULT_CONFIG_FILENAME

    for candidate in (Path(filename), SECRETS_DIR / filename):
        if candidate.is_file():
            return candidate
    raise ConfigFileNotFoundError(filename)


def get_config(filename: str | None = None) -> dict[str, Any]:
    """Load the YAML config, re-reading it only after it changes.

    The file is looked up as ``$VOXCORD_CONFIG``, then ``config.yaml`` in the
    working directory, then in ``/etc/secrets``. Its mtime is checked at most
    every ``CONFIG_CACHE_TTL`` seconds, so settings such as the quiet period
    can be tuned without a restart.
    """
    current_time = time.time()
    if (
        current_time - _CONFIG_STATE.check_time <= CONFIG_CACHE_TTL
        and _CONFIG_STATE.cache
    ):
        return _CONFIG_STATE.cache

    _CONFIG_STATE.check_time = current_time
    filepath = _resolve_config_path(filename)
    file_mtime = filepath.stat().st_mtime
    if (
        filepath == _CONFIG_STATE.path
        and file_mtime == _CONFIG_STATE.mtime
        and _CONFIG_STATE.cache
    ):
        return _CONFIG_STATE.cache

    with filepath.open(encoding="utf-8") as file:
        loaded_config = yaml.safe_load(file)
    if not isinstance(loaded_config, dict):
        raise ConfigFileEmptyError(filepath)

    _CONFIG_STATE.cache = loaded_config
    _CONFIG_STATE.path = filepath
    _CONFIG_STATE.mtime = file_mtime
    return _CONFIG_STATE.cache


def clear_config_cache() -> None:
    """Clear the config cache to force a reload on next `get_config()` call."""
    _CONFIG_STATE.cache = {}
    _CONFIG_STATE.path = None
    _CONFIG_STATE.mtime = 0
    _CONFIG_STATE.check_time = 0


def validate_config(config: Mapping[str, Any]) -> None:
    """Fail fast on settings the bot cannot start without.

    Raises:
        ConfigValidationError: listing every missing or malformed setting.

    """
    problems = [f"'{key}' is required" for key in REQUIRED_KEYS if not config.get(key)]

    for key in ("model", "transcription_model", "vision_model"):
        value = config.get(key)
        if value and "/" not in str(value):
            problems.append(f"'{key}' must look like provider/model, got {value!r}")

    providers = config.get("providers")
    if providers is not None and not isinstance(providers, Mapping):
        problems.append("'providers' must be a mapping of provider names")

    if problems:
        raise ConfigValidationError(problems)


def ensure_list(value: str | list[str] | None) -> list[str]:
    """Convert a value to a list if it isn't one already.

    API keys and fallback model lists may be configured as either a single
    string or a list of strings.

    Examples:
        >>> ensure_list("groq/llama-3.3-70b-versatile")
        ['groq/llama-3.3-70b-versatile']
        >>> ensure_list(None)
        []

    """
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)

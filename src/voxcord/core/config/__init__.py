"""Configuration loading and constants for voxcord.

This package exposes the split configuration modules as a single interface.
"""

from voxcord.core.config.http import (
    DEFAULT_USER_AGENT,
    HttpxClientOptions,
    get_or_create_httpx_client,
    httpx_options_from_config,
)
from voxcord.core.config.manager import (
    CONFIG_CACHE_TTL,
    ConfigFileEmptyError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    clear_config_cache,
    ensure_list,
    get_config,
    validate_config,
)
from voxcord.core.config.utils import (
    config_bool,
    config_float,
    config_int,
    normalize_api_keys,
)

__all__ = [
    "CONFIG_CACHE_TTL",
    "DEFAULT_USER_AGENT",
    "ConfigFileEmptyError",
    "ConfigFileNotFoundError",
    "ConfigValidationError",
    "HttpxClientOptions",
    "clear_config_cache",
    "config_bool",
    "config_float",
    "config_int",
    "ensure_list",
    "get_config",
    "get_or_create_httpx_client",
    "httpx_options_from_config",
    "normalize_api_keys",
    "validate_config",
]

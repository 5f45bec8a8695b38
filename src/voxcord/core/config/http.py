"""HTTP client configuration and factory."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from voxcord.core.config.utils import config_float

DEFAULT_USER_AGENT = "voxcord/0.1 (+https://github.com/voxcord/voxcord)"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class HttpxClientOptions:
    """Options for the shared client used for downloads, OCR and search."""

    timeout: float = DEFAULT_TIMEOUT_SECONDS
    connect_timeout: float = 10.0
    max_connections: int = 20
    max_keepalive: int = 10
    headers: dict[str, str] | None = None
    follow_redirects: bool = True
    proxy_url: str | None = None


def get_or_create_httpx_client(
    client_holder: list[httpx.AsyncClient | None],
    *,
    options: HttpxClientOptions | None = None,
) -> httpx.AsyncClient:
    """Get or create a shared httpx.AsyncClient with lazy initialization.

    Args:
        client_holder: A mutable list containing the client instance (or empty).
            Used as a container so the client can be shared between services.
        options: Optional configuration overrides for the httpx client.

    Returns:
        httpx.AsyncClient instance.

    """
    if (
        client_holder
        and client_holder[0] is not None
        and not client_holder[0].is_closed
    ):
        return client_holder[0]

    effective_options = options or HttpxClientOptions()
    final_headers = {
        "User-Agent": DEFAULT_USER_AGENT,
        **(effective_options.headers or {}),
    }

    client = httpx.AsyncClient(
        timeout=httpx.Timeout(
            effective_options.timeout,
            connect=effective_options.connect_timeout,
        ),
        limits=httpx.Limits(
            max_connections=effective_options.max_connections,
            max_keepalive_connections=effective_options.max_keepalive,
        ),
        headers=final_headers,
        follow_redirects=effective_options.follow_redirects,
        proxy=effective_options.proxy_url,
    )

    if len(client_holder) == 0:
        client_holder.append(client)
    else:
        client_holder[0] = client

    return client


def httpx_options_from_config(config: Mapping[str, Any]) -> HttpxClientOptions:
    """Build client options from the ``proxy_url`` and ``http_timeout_seconds`` keys."""
    timeout = config_float(config, "http_timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
    return HttpxClientOptions(
        timeout=timeout or DEFAULT_TIMEOUT_SECONDS,
        proxy_url=config.get("proxy_url") or None,
    )

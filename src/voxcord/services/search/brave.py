"""Brave Search web client."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

import httpx

from voxcord.core.config.constants import DEFAULT_SEARCH_COUNTRY, SEARCH_RESULT_COUNT
from voxcord.core.exceptions import SearchError
from voxcord.services.http import RetryOptions, request_with_retries

logger = logging.getLogger(__name__)

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"


@dataclass(frozen=True, slots=True)
class SearchResult:
    """One web or news hit."""

    title: str
    link: str
    description: str = ""
    snippets: list[str] = field(default_factory=list)
    news: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the tool-result payload."""
        return asdict(self)


class SearchClient(Protocol):
    """Runs a single web search."""

    async def search(self, query: str, country: str) -> list[SearchResult]: ...


def _result_from_item(item: Any, *, news: bool) -> SearchResult | None:
    if not isinstance(item, dict):
        return None
    link = item.get("url")
    if not isinstance(link, str) or not link:
        return None
    snippets = item.get("extra_snippets") if not news else None
    return SearchResult(
        title=str(item.get("title") or ""),
        link=link,
        description=str(item.get("description") or ""),
        snippets=[str(s) for s in snippets] if isinstance(snippets, list) else [],
        news=news,
    )


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    value = payload.get(name) or {}
    if not isinstance(value, dict):
        msg = f"Brave returned a malformed '{name}' section"
        raise SearchError(msg)
    results = value.get("results")
    if results is not None and not isinstance(results, list):
        msg = f"Brave returned malformed '{name}' results"
        raise SearchError(msg)
    return value


def parse_brave_response(payload: Any) -> list[SearchResult]:
    """Turn a Brave response into results: web hits, then breaking news."""
    if not isinstance(payload, dict):
        msg = "Brave returned a non-object payload"
        raise SearchError(msg)

    web = _section(payload, "web")
    query_info = _section(payload, "query")

    results: list[SearchResult] = []
    for item in web.get("results") or []:
        result = _result_from_item(item, news=False)
        if result is not None:
            results.append(result)

    if query_info.get("is_news_breaking"):
        for item in _section(payload, "news").get("results") or []:
            result = _result_from_item(item, news=True)
            if result is not None:
                results.append(result)
    return results


class BraveSearchClient:
    """Brave Search API client over the shared httpx client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        *,
        count: int = SEARCH_RESULT_COUNT,
        url: str = BRAVE_SEARCH_URL,
        retry_options: RetryOptions | None = None,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._count = count
        self._url = url
        self._retry_options = retry_options or RetryOptions()

    async def search(
        self,
        query: str,
        country: str = DEFAULT_SEARCH_COUNTRY,
    ) -> list[SearchResult]:
        """Search the web for ``query`` as seen from ``country``."""
        if not self._api_key:
            msg = "brave_api_key is not configured"
            raise SearchError(msg)

        params = {"q": query, "count": str(self._count), "country": country}
        headers = {
            "Accept": "application/json",
            "X-Subscription-Token": self._api_key,
        }
        try:
            response = await request_with_retries(
                lambda: self._client.get(self._url, params=params, headers=headers),
                options=self._retry_options,
                log_context="brave search",
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            msg = f"Search failed with status {exc.response.status_code}"
            raise SearchError(msg) from exc
        except (httpx.HTTPError, ValueError) as exc:
            msg = f"Search request failed: {exc}"
            raise SearchError(msg) from exc

        results = parse_brave_response(payload)
        logger.info("Brave search %r (%s) returned %s results", query, country, len(results))
        return results

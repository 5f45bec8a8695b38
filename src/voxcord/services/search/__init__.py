"""Search service module."""

from voxcord.services.search.brave import (
    BraveSearchClient,
    SearchClient,
    SearchResult,
    parse_brave_response,
)

__all__ = [
    "BraveSearchClient",
    "SearchClient",
    "SearchResult",
    "parse_brave_response",
]

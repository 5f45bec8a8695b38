"""Media analysis cache package."""

from voxcord.services.cache.media import MediaAnalysisCache, cache_key

__all__ = ["MediaAnalysisCache", "cache_key"]

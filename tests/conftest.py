from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio

from voxcord.services.cache import MediaAnalysisCache
from voxcord.services.media import MediaAnalyzer

from ._fakes import FakeClock, FakeDescriber, FakeTranscriber


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest_asyncio.fixture
async def httpx_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def media_cache(clock: FakeClock) -> MediaAnalysisCache:
    return MediaAnalysisCache(clock=clock)


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def describer() -> FakeDescriber:
    return FakeDescriber()


@pytest.fixture
def analyzer(
    media_cache: MediaAnalysisCache,
    transcriber: FakeTranscriber,
    describer: FakeDescriber,
) -> MediaAnalyzer:
    return MediaAnalyzer(media_cache, transcriber, describer)

"""Cache-through media analysis used by the history normalizer."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from voxcord.core.exceptions import TransientProviderError
from voxcord.core.models import AnalysisKind

if TYPE_CHECKING:
    from voxcord.services.cache import MediaAnalysisCache
    from voxcord.services.media.ocr import OcrReader
    from voxcord.services.media.transcription import Transcriber
    from voxcord.services.media.vision import VisionDescriber

logger = logging.getLogger(__name__)


class MediaAnalyzer:
    """Runs transcription and image description through the cache.

    A hit never reaches the provider. A miss calls the provider and stores
    the result; failures are not cached.
    """

    def __init__(
        self,
        cache: MediaAnalysisCache,
        transcriber: Transcriber,
        describer: VisionDescriber,
        ocr: OcrReader | None = None,
    ) -> None:
        self.cache = cache
        self._transcriber = transcriber
        self._describer = describer
        self._ocr = ocr

    async def transcribe(self, audio: bytes) -> str:
        """Return the transcript for ``audio``."""
        cached = self.cache.lookup(audio, AnalysisKind.TRANSCRIPTION)
        if cached is not None:
            logger.debug("Transcription cache hit (%s bytes)", len(audio))
            return cached

        transcript = await self._transcriber.transcribe(audio)
        self.cache.store(audio, AnalysisKind.TRANSCRIPTION, transcript)
        return transcript

    async def describe_image(self, locator: str) -> str:
        """Return the description of an image, with OCR text appended."""
        cached = self.cache.lookup(locator, AnalysisKind.IMAGE)
        if cached is not None:
            logger.debug("Image analysis cache hit")
            return cached

        if self._ocr is None:
            description = await self._describer.describe(locator)
            ocr_text = ""
        else:
            description, ocr_text = await asyncio.gather(
                self._describer.describe(locator),
                self._read_text(locator),
            )

        combined = "\n\n".join(part for part in (description, ocr_text) if part)
        self.cache.store(locator, AnalysisKind.IMAGE, combined)
        return combined

    async def _read_text(self, locator: str) -> str:
        # OCR only enriches the description; a failure leaves it out.
        if self._ocr is None:
            return ""
        try:
            return await self._ocr.read_text(locator)
        except TransientProviderError as exc:
            logger.warning("OCR failed, continuing with description only: %s", exc)
            return ""

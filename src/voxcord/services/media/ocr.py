"""OCR through the OCR.space REST API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from voxcord.core.exceptions import TransientProviderError
from voxcord.services.http import RetryOptions, request_with_retries

logger = logging.getLogger(__name__)

OCR_SPACE_URL = "https://api.ocr.space/parse/image"


class OcrReader(Protocol):
    """Extracts printed text from an image."""

    async def read_text(self, locator: str) -> str: ...


def _parsed_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    if payload.get("IsErroredOnProcessing"):
        message = payload.get("ErrorMessage") or "unknown OCR error"
        msg = f"OCR.space could not process the image: {message}"
        raise TransientProviderError(msg, provider="ocr.space")
    results = payload.get("ParsedResults")
    if not isinstance(results, list) or not results:
        return ""
    first = results[0]
    if not isinstance(first, dict):
        return ""
    text = first.get("ParsedText")
    return text.strip() if isinstance(text, str) else ""


class OcrSpaceReader:
    """OCR.space client using engine 2 with table detection."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        *,
        url: str = OCR_SPACE_URL,
        retry_options: RetryOptions | None = None,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._url = url
        self._retry_options = retry_options or RetryOptions()

    async def read_text(self, locator: str) -> str:
        """Return the text found in the image, or an empty string."""
        data = {
            "detectOrientation": "true",
            "scale": "true",
            "OCREngine": "2",
            "isTable": "true",
            "language": "auto",
        }
        # Inline images are sent as base64; remote ones by URL.
        if locator.startswith("data:"):
            data["base64Image"] = locator
        else:
            data["url"] = locator

        try:
            response = await request_with_retries(
                lambda: self._client.post(
                    self._url,
                    data=data,
                    headers={"apikey": self._api_key},
                ),
                options=self._retry_options,
                log_context="ocr.space",
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            msg = f"OCR.space request failed: {exc}"
            raise TransientProviderError(msg, provider="ocr.space") from exc
        return _parsed_text(payload)

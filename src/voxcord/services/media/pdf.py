"""PDF text extraction."""

from __future__ import annotations

import asyncio
import logging

import pymupdf
import pymupdf4llm

from voxcord.core.exceptions import MediaProcessingError

logger = logging.getLogger(__name__)

PDF_EXTRACTION_TIMEOUT_SECONDS = 30
PDF_MIME_TYPE = "application/pdf"


def is_pdf(mime_type: str | None, filename: str | None) -> bool:
    """Recognize a PDF by MIME type or, failing that, by extension."""
    if mime_type and mime_type.split(";", 1)[0].strip().lower() == PDF_MIME_TYPE:
        return True
    return bool(filename and filename.lower().endswith(".pdf"))


def _extract_markdown(pdf_content: bytes) -> str:
    try:
        doc = pymupdf.open(stream=pdf_content, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        msg = f"Failed to open PDF: {exc}"
        raise MediaProcessingError(msg) from exc
    try:
        return pymupdf4llm.to_markdown(doc)
    except (RuntimeError, ValueError) as exc:
        msg = f"Failed to extract PDF text: {exc}"
        raise MediaProcessingError(msg) from exc
    finally:
        doc.close()


async def extract_pdf_text(pdf_content: bytes) -> str:
    """Extract the PDF's text as markdown.

    PyMuPDF is CPU-bound, so extraction runs in a worker thread with a
    timeout. Any failure surfaces as MediaProcessingError so the caller can
    skip just this message.
    """
    try:
        text = await asyncio.wait_for(
            asyncio.to_thread(_extract_markdown, pdf_content),
            timeout=PDF_EXTRACTION_TIMEOUT_SECONDS,
        )
    except TimeoutError as exc:
        msg = "PDF extraction timed out"
        raise MediaProcessingError(msg) from exc
    logger.debug("Extracted %s characters of PDF text", len(text))
    return text.strip()

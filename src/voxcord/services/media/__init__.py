"""Media analysis services."""

from voxcord.services.media.analyzer import MediaAnalyzer
from voxcord.services.media.ocr import OcrReader, OcrSpaceReader
from voxcord.services.media.pdf import extract_pdf_text, is_pdf
from voxcord.services.media.transcription import LiteLLMTranscriber, Transcriber
from voxcord.services.media.vision import ModelVisionDescriber, VisionDescriber

__all__ = [
    "LiteLLMTranscriber",
    "MediaAnalyzer",
    "ModelVisionDescriber",
    "OcrReader",
    "OcrSpaceReader",
    "Transcriber",
    "VisionDescriber",
    "extract_pdf_text",
    "is_pdf",
]

"""Image description through a multimodal model."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from voxcord.core.models import ConversationTurn, ImagePart, Role, TextPart
from voxcord.services.llm.types import InferenceRequest

if TYPE_CHECKING:
    from voxcord.services.llm.types import InferenceClient

DEFAULT_VISION_MODEL = "groq/llama-3.2-90b-vision-preview"
DESCRIBE_IMAGE_PROMPT = (
    "Describe this image in detail, including any important visual elements, "
    "text, or notable features."
)
VISION_MAX_TOKENS = 1024


class VisionDescriber(Protocol):
    """Produces a textual description of an image."""

    async def describe(self, locator: str) -> str: ...


class ModelVisionDescriber:
    """Asks a vision-capable model to describe an image.

    Reuses the inference client, so provider failures arrive as
    TransientProviderError.
    """

    def __init__(
        self,
        client: InferenceClient,
        *,
        model: str = DEFAULT_VISION_MODEL,
        prompt: str = DESCRIBE_IMAGE_PROMPT,
    ) -> None:
        self._client = client
        self.model = model
        self.prompt = prompt

    async def describe(self, locator: str) -> str:
        """Describe the image at ``locator`` (URL or ``data:`` URL)."""
        turn = ConversationTurn(
            role=Role.USER,
            content=[TextPart(self.prompt), ImagePart(locator)],
        )
        response = await self._client.complete(
            InferenceRequest(
                model=self.model,
                system_instruction="",
                turns=[turn],
                max_tokens=VISION_MAX_TOKENS,
            ),
        )
        return response.content.strip()

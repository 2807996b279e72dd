"""Schedule image analysis using a vision model served by Ollama."""

import asyncio
import logging

import ollama

from .config import (
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_TIMEOUT,
    DEFAULT_OLLAMA_VISION_MODEL,
    DEFAULT_VISION_MAX_TOKENS,
    IMAGE_ANALYSIS_PROMPT,
    IMAGE_ANALYSIS_SYSTEM_PROMPT,
)
from .exceptions import ImageAnalysisError
from .interfaces import ImageAnalysisService

logger = logging.getLogger(__name__)


class OllamaImageAnalyzer(ImageAnalysisService):
    """Extracts free and busy periods from calendar screenshots."""

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_VISION_MODEL,
        base_url: str = DEFAULT_OLLAMA_BASE_URL,
        timeout: float = DEFAULT_OLLAMA_TIMEOUT,
        max_tokens: int = DEFAULT_VISION_MAX_TOKENS,
    ) -> None:
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._client = ollama.AsyncClient(host=base_url)

    async def analyze(self, image: bytes) -> str:
        """
        Describe the availability shown in a schedule image.

        Args:
            image: Encoded image bytes

        Returns:
            Availability text

        Raises:
            ImageAnalysisError: If the image is empty, the model call fails or the
                model returned no analysis
        """
        if not image:
            raise ImageAnalysisError("Empty image provided")

        logger.info(f"📸 Analyzing schedule image ({len(image)} bytes)")
        try:
            response = await asyncio.wait_for(
                self._client.chat(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": IMAGE_ANALYSIS_SYSTEM_PROMPT},
                        {
                            "role": "user",
                            "content": IMAGE_ANALYSIS_PROMPT,
                            "images": [image],
                        },
                    ],
                    options={"num_predict": self.max_tokens},
                ),
                timeout=self.timeout,
            )
        except TimeoutError as e:
            raise ImageAnalysisError(f"Timed out after {self.timeout}s") from e
        except ConnectionError as e:
            raise ImageAnalysisError(f"Connection failed: {e}") from e
        except ollama.ResponseError as e:
            raise ImageAnalysisError(f"Vision model failed: {e.error}") from e

        analysis = (response["message"]["content"] or "").strip()
        if not analysis:
            raise ImageAnalysisError("Vision model returned no analysis")
        return analysis

"""Meeting-time reasoning using a local LLM via Ollama."""

import asyncio
import logging
import time

import ollama

from .config import (
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_TEMPERATURE,
    DEFAULT_OLLAMA_TIMEOUT,
    DEFAULT_OLLAMA_TOP_P,
    SYSTEM_PROMPT,
)
from .exceptions import ReasoningError
from .interfaces import ReasoningService

logger = logging.getLogger(__name__)


class OllamaReasoningService(ReasoningService):
    """Answers scheduling prompts with a chat model served by Ollama."""

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_MODEL,
        base_url: str = DEFAULT_OLLAMA_BASE_URL,
        timeout: float = DEFAULT_OLLAMA_TIMEOUT,
        temperature: float = DEFAULT_OLLAMA_TEMPERATURE,
        top_p: float = DEFAULT_OLLAMA_TOP_P,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        """
        Initialize the reasoning service.

        Args:
            model: Ollama model name
            base_url: Ollama service URL
            timeout: Request timeout in seconds
            temperature: Sampling temperature, kept low for repeatable slots
            top_p: Nucleus sampling cutoff
            system_prompt: System message sent with every prompt
        """
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.temperature = temperature
        self.top_p = top_p
        self.system_prompt = system_prompt
        self._client = ollama.AsyncClient(host=base_url)

    async def complete(self, prompt: str) -> str:
        """
        Send a prompt to the model.

        Args:
            prompt: Fully rendered prompt

        Returns:
            Response text with surrounding whitespace removed

        Raises:
            ReasoningError: If the call fails, times out or returns nothing
        """
        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self._client.chat(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": self.system_prompt},
                        {"role": "user", "content": prompt},
                    ],
                    options={"temperature": self.temperature, "top_p": self.top_p},
                ),
                timeout=self.timeout,
            )
        except TimeoutError as e:
            logger.error(f"Reasoning timed out after {self.timeout}s")
            raise ReasoningError(f"Timed out after {self.timeout}s") from e
        except ConnectionError as e:
            logger.error(f"Connection error: {e}")
            raise ReasoningError(f"Connection failed: {e}") from e
        except ollama.ResponseError as e:
            logger.error(f"Ollama error ({e.status_code}): {e.error}")
            raise ReasoningError(f"Model call failed: {e.error}") from e

        content = (response["message"]["content"] or "").strip()
        if not content:
            raise ReasoningError("Model returned an empty response")

        logger.info(
            f"Reasoning complete: {len(content)} chars, "
            f"time={time.time() - start_time:.3f}s"
        )
        return content

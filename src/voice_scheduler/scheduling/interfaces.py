"""Abstract interfaces for the services the scheduling conversation relies on."""

from abc import ABC, abstractmethod


def split_lines(text: str) -> list[str]:
    """Split a model response into trimmed, non-empty lines."""
    return [line.strip() for line in text.strip().split("\n") if line.strip()]


class ReasoningService(ABC):
    """Abstract interface for the language model that proposes meeting times."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """
        Run a prompt through the model.

        Args:
            prompt: Fully rendered prompt

        Returns:
            Raw response text

        Raises:
            ReasoningError: If the model call fails
        """
        pass

    async def suggest(self, prompt: str) -> list[str]:
        """
        Run a prompt and return its response as an ordered list of lines.

        Args:
            prompt: Fully rendered prompt

        Returns:
            Trimmed, non-empty response lines
        """
        return split_lines(await self.complete(prompt))


class ImageAnalysisService(ABC):
    """Abstract interface for extracting availability from a schedule image."""

    @abstractmethod
    async def analyze(self, image: bytes) -> str:
        """
        Describe the free and busy times shown in an image.

        Args:
            image: Encoded image bytes (PNG, JPEG, ...)

        Returns:
            Structured availability text

        Raises:
            ImageAnalysisError: If the image cannot be analyzed
        """
        pass


class CalendarOracle(ABC):
    """Abstract interface for natural-language free/busy lookups."""

    @abstractmethod
    async def query(self, question: str, timezone: str) -> str:
        """
        Ask the calendar backend about availability.

        Args:
            question: Natural-language question
            timezone: IANA timezone the answer should use

        Returns:
            Free/busy description

        Raises:
            CalendarQueryError: If the lookup fails
        """
        pass

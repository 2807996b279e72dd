"""Free/busy lookups against the calendar assistant HTTP endpoint."""

import logging

import httpx

from .config import DEFAULT_CALENDAR_TIMEOUT, DEFAULT_CALENDAR_URL
from .exceptions import CalendarQueryError
from .interfaces import CalendarOracle

logger = logging.getLogger(__name__)


class HttpCalendarOracle(CalendarOracle):
    """Posts natural-language availability questions to a calendar service."""

    def __init__(
        self,
        url: str = DEFAULT_CALENDAR_URL,
        timeout: float = DEFAULT_CALENDAR_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the oracle.

        Args:
            url: Endpoint accepting ``{"question", "timezone"}`` JSON
            timeout: Request timeout in seconds
            client: Optional shared HTTP client
        """
        self.url = url
        self.timeout = timeout
        self._client = client

    async def query(self, question: str, timezone: str) -> str:
        payload = {"question": question.strip(), "timezone": timezone}
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.url, json=payload, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Calendar query failed: {e}")
            raise CalendarQueryError(f"Calendar request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            raise CalendarQueryError(message or f"Calendar returned HTTP {response.status_code}")

        answer = data.get("response") if isinstance(data, dict) else None
        if answer is None:
            raise CalendarQueryError("Calendar response missing 'response' field")

        logger.info("Calendar free/busy analysis completed")
        return str(answer)

"""Slot suggestions for the ``#schedule`` questionnaire."""

import logging

from .config import DEFAULT_TIMEZONE, PLANNER_PROMPT
from .exceptions import CalendarQueryError
from .interfaces import CalendarOracle, ReasoningService
from .models import MeetingRequest

logger = logging.getLogger(__name__)

NO_BUSY_DATA = "(no busy data available)"


class MeetingPlanner:
    """Combines calendar free/busy data with model reasoning."""

    def __init__(
        self,
        reasoning: ReasoningService,
        calendar: CalendarOracle,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        self._reasoning = reasoning
        self._calendar = calendar
        self.timezone = timezone

    def build_prompt(self, request: MeetingRequest, busy: str) -> str:
        return PLANNER_PROMPT.format(
            busy=busy,
            preferred_time=request.preferred_time,
            room=request.room,
            timezone=self.timezone,
            email=request.email,
            duration=request.duration,
            details=request.details,
            start_date=request.start_date.isoformat() if request.start_date else "now",
            end_date=request.end_date.isoformat() if request.end_date else "two weeks from now",
        )

    async def find_optimal_times(self, request: MeetingRequest) -> list[str]:
        """
        Suggest meeting slots for a questionnaire request.

        Args:
            request: Collected meeting details

        Returns:
            Response lines, normally three ISO 8601 slots

        Raises:
            ReasoningError: If the model call fails
        """
        try:
            busy = await self._calendar.query(
                self.build_prompt(request, busy="unknown"), self.timezone
            )
        except CalendarQueryError as e:
            logger.warning(f"⚠️ Free/busy lookup failed, planning without it: {e}")
            busy = NO_BUSY_DATA

        logger.debug(f"Busy slots for {request.email}: {busy}")
        return await self._reasoning.suggest(self.build_prompt(request, busy))

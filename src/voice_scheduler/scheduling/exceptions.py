"""Custom exceptions for scheduling functionality."""


class SchedulingError(Exception):
    """Base exception for scheduling errors."""

    pass


class ReasoningError(SchedulingError):
    """Exception raised when the reasoning model call fails."""

    pass


class ImageAnalysisError(SchedulingError):
    """Exception raised when a schedule image cannot be analyzed."""

    pass


class CalendarQueryError(SchedulingError):
    """Exception raised for calendar free/busy lookup errors."""

    pass


class PromptTimeoutError(SchedulingError):
    """Exception raised when a user does not answer a question in time."""

    pass

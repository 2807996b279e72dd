"""Data models for the scheduling conversation."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .config import SCHEDULE_DATA_TAG, TEXT_INPUT_TAG


class InputSource(str, Enum):
    """Where a conversation turn came from."""

    VOICE = "voice"
    TEXT = "text"


class ReplyKind(str, Enum):
    """Shape of a dialogue reply."""

    SCHEDULE_REQUIRED = "schedule_required"
    FOLLOW_UP = "follow_up"
    SUMMARY = "summary"


def fold_line(text: str) -> str:
    """Collapse text onto a single line so one entry is one transcript line."""
    return " ".join(text.split())


@dataclass
class ConversationContext:
    """Accumulated multi-turn state for one user."""

    entries: list[str] = field(default_factory=list)
    proposed_times: list[str] = field(default_factory=list)

    @property
    def transcript(self) -> str:
        return "\n".join(self.entries)

    @property
    def turn_count(self) -> int:
        return len(self.entries)

    @property
    def has_suggestions(self) -> bool:
        return bool(self.proposed_times)

    def add_entry(self, text: str, source: InputSource = InputSource.VOICE) -> str:
        """
        Append a transcript entry.

        Args:
            text: Spoken or typed input
            source: Origin of the input; typed input is tagged

        Returns:
            The stored entry
        """
        entry = fold_line(text)
        if source is InputSource.TEXT:
            entry = f"{TEXT_INPUT_TAG} {entry}"
        self.entries.append(entry)
        return entry

    def sync_schedule(self, schedule: str) -> bool:
        """
        Keep the tagged schedule entry in step with the latest availability.

        Args:
            schedule: Availability text

        Returns:
            True if an existing entry was replaced, False if one was appended
        """
        entry = f"{SCHEDULE_DATA_TAG} {fold_line(schedule)}"
        for index, existing in enumerate(self.entries):
            if existing.startswith(SCHEDULE_DATA_TAG):
                self.entries[index] = entry
                return True
        self.entries.append(entry)
        return False


@dataclass
class DialogueReply:
    """Lines produced for one conversation turn."""

    kind: ReplyKind
    lines: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    @property
    def is_schedule_required(self) -> bool:
        return self.kind is ReplyKind.SCHEDULE_REQUIRED


@dataclass
class MeetingRequest:
    """Answers collected by the ``#schedule`` questionnaire."""

    email: str
    preferred_time: str
    room: str
    details: str
    duration: str
    start_date: datetime | None = None
    end_date: datetime | None = None

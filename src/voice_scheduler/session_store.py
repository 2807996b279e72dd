"""Process-wide per-user session state."""

from collections.abc import Callable

from .scheduling.models import ConversationContext
from .speech.logging_utils import get_logger
from .speech.models import RecordingSession

logger = get_logger(__name__)


class SessionStore:
    """
    Keyed state container shared by the segmenter and the dialogue.

    Holds four independent maps keyed by user id:

    - recording sessions (segmenter state, created on first speech)
    - audio accumulators (frames of the utterance being collected)
    - conversation contexts (transcript entries and proposed times)
    - schedule availability (latest free/busy text)

    There are no cross-key transactions. Callers keep related keys
    consistent through the lifecycle helpers ``clear_conversation`` and
    ``end_session``.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, RecordingSession] = {}
        self._audio: dict[str, list[bytes]] = {}
        self._contexts: dict[str, ConversationContext] = {}
        self._schedules: dict[str, str] = {}

    # Recording sessions

    def get_session(self, user_id: str) -> RecordingSession | None:
        return self._sessions.get(user_id)

    def set_session(self, session: RecordingSession) -> None:
        self._sessions[session.user_id] = session

    def delete_session(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)

    def has_session(self, user_id: str) -> bool:
        return user_id in self._sessions

    def users(self) -> list[str]:
        """Users with an active recording session."""
        return list(self._sessions)

    # Audio accumulators

    def get_audio(self, user_id: str) -> list[bytes]:
        """Return a copy of the frames collected for ``user_id``."""
        return list(self._audio.get(user_id, []))

    def append_frame(self, user_id: str, frame: bytes) -> None:
        self._audio.setdefault(user_id, []).append(frame)

    def audio_size(self, user_id: str) -> int:
        """Total bytes currently accumulated for ``user_id``."""
        return sum(len(frame) for frame in self._audio.get(user_id, []))

    def flush_audio(self, user_id: str) -> bytes:
        """Empty the accumulator and return its joined contents."""
        frames = self._audio.pop(user_id, [])
        return b"".join(frames)

    def delete_audio(self, user_id: str) -> None:
        self._audio.pop(user_id, None)

    # Conversation contexts

    def get_context(self, user_id: str) -> ConversationContext | None:
        return self._contexts.get(user_id)

    def get_or_create_context(self, user_id: str) -> ConversationContext:
        context = self._contexts.get(user_id)
        if context is None:
            context = ConversationContext()
            self._contexts[user_id] = context
        return context

    def set_context(self, user_id: str, context: ConversationContext) -> None:
        self._contexts[user_id] = context

    def delete_context(self, user_id: str) -> None:
        self._contexts.pop(user_id, None)

    # Schedule availability

    def get_schedule(self, user_id: str) -> str | None:
        return self._schedules.get(user_id)

    def set_schedule(self, user_id: str, schedule: str) -> bool:
        """
        Overwrite the user's availability and sync the tagged context entry.

        Args:
            user_id: User identifier
            schedule: Availability text

        Returns:
            True if a previous schedule entry was replaced in the transcript
        """
        self._schedules[user_id] = schedule
        replaced = self.get_or_create_context(user_id).sync_schedule(schedule)
        logger.info(
            f"📅 {'Updated' if replaced else 'Set'} schedule for {user_id}: {schedule}"
        )
        return replaced

    def delete_schedule(self, user_id: str) -> None:
        self._schedules.pop(user_id, None)

    def schedule_accessor(self) -> Callable[[str], str | None]:
        """Read-only accessor handed to consumers that need schedule data."""
        return self.get_schedule

    # Lifecycle

    def clear_conversation(self, user_id: str) -> None:
        """Forget the conversation context and schedule together."""
        self.delete_context(user_id)
        self.delete_schedule(user_id)
        logger.info(f"🧹 Cleared conversation context and schedule for {user_id}")

    def end_session(self, user_id: str) -> None:
        """Drop every piece of state held for ``user_id``."""
        self.delete_session(user_id)
        self.delete_audio(user_id)
        self.clear_conversation(user_id)
        logger.info(f"🏁 Session ended for {user_id}")

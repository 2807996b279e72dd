"""Voice activity segmentation of live per-user PCM frames.

Each speaker has a small state machine kept in their ``RecordingSession``::

    IDLE --loud--> COLLECTING --quiet--> SILENCE_PENDING --loud--> COLLECTING
                                              |
                                  silence >= threshold
                                              |
                         finalize ok --> FINALIZING --(pipeline done)--> IDLE
                         finalize rejected --> IDLE (buffer dropped)

Frames that arrive while FINALIZING are dropped.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from .config import (
    AMPLITUDE_THRESHOLD,
    MIN_UTTERANCE_DURATION,
    PROCESSING_COOLDOWN,
    SILENCE_DURATION,
)
from .logging_utils import get_logger
from .models import PcmFormat, RecordingSession, SegmenterState, Utterance
from .trimmer import trim_silence

if TYPE_CHECKING:
    from ..session_store import SessionStore

logger = get_logger(__name__)

UtteranceHandler = Callable[[Utterance], Awaitable[None]]


@dataclass
class SegmenterConfig:
    """Thresholds controlling when an utterance is cut.

    Attributes:
        amplitude_threshold: Mean absolute sample value above which a frame
            is speech. Raise it in noisy rooms.
        silence_duration: Seconds of continuous quiet that end an utterance.
            Lower values respond faster but split slow speakers.
        min_utterance_duration: Accumulations shorter than this many seconds
            are discarded instead of transcribed.
        cooldown: Seconds after a finalized utterance during which another
            one for the same user is rejected.
    """

    amplitude_threshold: float = AMPLITUDE_THRESHOLD
    silence_duration: float = SILENCE_DURATION
    min_utterance_duration: float = MIN_UTTERANCE_DURATION
    cooldown: float = PROCESSING_COOLDOWN


class VoiceActivitySegmenter:
    """Turns a stream of PCM frames per user into utterances."""

    def __init__(
        self,
        store: SessionStore,
        on_utterance: UtteranceHandler,
        config: SegmenterConfig | None = None,
        pcm_format: PcmFormat | None = None,
        trim: bool = True,
    ) -> None:
        """
        Initialize the segmenter.

        Args:
            store: Session store holding recording sessions and accumulators
            on_utterance: Coroutine called with every finalized utterance
            config: Detection thresholds
            pcm_format: Format of incoming frames
            trim: Whether to trim silence from emitted utterances
        """
        self._store = store
        self._on_utterance = on_utterance
        self.config = config or SegmenterConfig()
        self.pcm_format = pcm_format or PcmFormat()
        self._trim = trim
        self._tasks: set[asyncio.Task] = set()

    def open_session(
        self, user_id: str, channel_id: str, current_time: float | None = None
    ) -> RecordingSession:
        """
        Arm recording for a user, reusing an existing session.

        Args:
            user_id: Speaker identifier
            channel_id: Channel replies should go to
            current_time: Current timestamp, uses time.monotonic() if not provided

        Returns:
            The user's recording session
        """
        session = self._store.get_session(user_id)
        if session is not None:
            return session

        if current_time is None:
            current_time = time.monotonic()
        session = RecordingSession(
            user_id=user_id, channel_id=channel_id, started_at=current_time
        )
        self._store.set_session(session)
        logger.debug(f"🎙️ Recording session opened for {user_id} in {channel_id}")
        return session

    def is_loud(self, frame: bytes) -> bool:
        """
        Classify a frame by its mean absolute sample magnitude.

        Args:
            frame: Interleaved 16-bit PCM

        Returns:
            True if the frame is above the amplitude threshold
        """
        usable = len(frame) - len(frame) % 2
        if usable == 0:
            return False
        samples = np.frombuffer(frame[:usable], dtype="<i2").astype(np.int32)
        return float(np.abs(samples).mean()) > self.config.amplitude_threshold

    def feed(
        self, user_id: str, frame: bytes, current_time: float | None = None
    ) -> asyncio.Task | None:
        """
        Process one incoming frame.

        Args:
            user_id: Speaker the frame belongs to
            frame: Interleaved 16-bit PCM
            current_time: Frame timestamp, uses time.monotonic() if not provided

        Returns:
            The pipeline task if this frame finalized an utterance, else None
        """
        session = self._store.get_session(user_id)
        if session is None or not session.is_recording:
            return None

        if session.state is SegmenterState.FINALIZING:
            session.dropped_frames += 1
            logger.trace(f"Dropping frame for {user_id}: finalize in flight")
            return None

        if current_time is None:
            current_time = time.monotonic()

        if self.is_loud(frame):
            if session.state is not SegmenterState.COLLECTING:
                logger.trace(f"🗣️ {user_id}: {session.state.value} -> collecting")
            session.state = SegmenterState.COLLECTING
            session.silence_started_at = None
            self._store.append_frame(user_id, frame)
            return None

        if session.state is SegmenterState.IDLE:
            return None

        if session.state is SegmenterState.COLLECTING:
            session.state = SegmenterState.SILENCE_PENDING
            session.silence_started_at = current_time
            logger.trace(f"🤫 {user_id}: silence started")

        # Trailing silence is kept for the trimmer
        self._store.append_frame(user_id, frame)

        silence = current_time - (session.silence_started_at or current_time)
        if silence >= self.config.silence_duration:
            return self._try_finalize(session, current_time)
        return None

    def end_stream(
        self, user_id: str, current_time: float | None = None
    ) -> asyncio.Task | None:
        """
        Make a last finalize attempt when a user's frame stream closes.

        Args:
            user_id: Speaker whose stream ended
            current_time: Current timestamp, uses time.monotonic() if not provided

        Returns:
            The pipeline task if an utterance was finalized, else None
        """
        session = self._store.get_session(user_id)
        if session is None:
            self._store.delete_audio(user_id)
            return None
        if session.state is SegmenterState.FINALIZING:
            return None
        if self._store.audio_size(user_id) == 0:
            session.state = SegmenterState.IDLE
            session.silence_started_at = None
            return None

        if current_time is None:
            current_time = time.monotonic()
        logger.debug(f"🔚 Stream ended for {user_id}, flushing pending audio")
        return self._try_finalize(session, current_time)

    def dropped_frames(self, user_id: str) -> int:
        """Number of frames dropped for ``user_id`` while a finalize was running."""
        session = self._store.get_session(user_id)
        return session.dropped_frames if session else 0

    @property
    def pending_tasks(self) -> set[asyncio.Task]:
        return set(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight utterance to finish processing."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _duration_ok(self, n_bytes: int) -> bool:
        return self.pcm_format.duration_of(n_bytes) >= self.config.min_utterance_duration

    def _cooldown_ok(self, session: RecordingSession, now: float) -> bool:
        if session.last_processed_at is None:
            return True
        return now - session.last_processed_at > self.config.cooldown

    def _try_finalize(
        self, session: RecordingSession, now: float
    ) -> asyncio.Task | None:
        user_id = session.user_id
        size = self._store.audio_size(user_id)

        if not self._duration_ok(size) or not self._cooldown_ok(session, now):
            duration = self.pcm_format.duration_of(size)
            logger.debug(
                f"⏭️ Dropping {duration * 1000:.0f}ms of audio for {user_id} "
                f"(min {self.config.min_utterance_duration}s, "
                f"cooling down: {not self._cooldown_ok(session, now)})"
            )
            self._store.delete_audio(user_id)
            session.state = SegmenterState.IDLE
            session.silence_started_at = None
            return None

        audio = self._store.flush_audio(user_id)
        session.last_processed_at = now
        session.state = SegmenterState.FINALIZING
        session.silence_started_at = None

        if self._trim:
            audio = trim_silence(audio, self.pcm_format)

        utterance = Utterance(
            user_id=user_id,
            channel_id=session.channel_id,
            audio=audio,
            pcm_format=self.pcm_format,
            captured_at=now,
        )
        logger.info(f"🎙️ Processing {utterance.duration:.1f}s of audio for {user_id}")

        task = asyncio.get_running_loop().create_task(
            self._run_finalize(session, utterance)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_finalize(self, session: RecordingSession, utterance: Utterance) -> None:
        try:
            await self._on_utterance(utterance)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"❌ Error processing utterance for {utterance.user_id}: {e}",
                exc_info=True,
            )
        finally:
            # The session may have ended while the pipeline was running
            if self._store.get_session(session.user_id) is session:
                session.state = SegmenterState.IDLE
                session.silence_started_at = None

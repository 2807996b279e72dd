"""Tests for the pipeline driver."""

import asyncio
import io
import wave
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock

import numpy as np
import pytest

from voice_scheduler.pipeline import (
    DIALOGUE_ERROR_MESSAGE,
    IMAGE_ERROR_MESSAGE,
    PipelineDriver,
)
from voice_scheduler.scheduling.dialogue import DialogueOrchestrator
from voice_scheduler.scheduling.exceptions import ImageAnalysisError, ReasoningError
from voice_scheduler.scheduling.interfaces import ImageAnalysisService, ReasoningService
from voice_scheduler.scheduling.models import ReplyKind
from voice_scheduler.session_store import SessionStore
from voice_scheduler.speech.exceptions import (
    PlaybackError,
    RateLimitedError,
    SynthesisError,
    TranscriptionError,
)
from voice_scheduler.speech.interfaces import (
    SynthesisService,
    TranscriptionService,
    VoicePlatform,
)
from voice_scheduler.speech.models import PcmFormat, Utterance

USER = "user-1"
CHANNEL = "voice-1"
SLOTS = "1. 2025-06-23T14:00:00+07:00\n2. 2025-06-24T15:00:00+07:00\nFollow-up: Which room?"


class FakePlatform(VoicePlatform):
    """In-memory voice platform recording everything the bot does."""

    def __init__(self, frames: list[bytes] | None = None) -> None:
        self.frames = frames or []
        self.callbacks = []
        self.sent: list[tuple[str, str]] = []
        self.played: list[tuple[bytes, str]] = []
        self.play_error: Exception | None = None

    def on_speaking_start(self, callback) -> None:
        self.callbacks.append(callback)

    async def subscribe(self, user_id: str) -> AsyncIterator[bytes]:
        for frame in self.frames:
            yield frame

    async def play(self, audio: bytes, channel_id: str) -> None:
        if self.play_error is not None:
            raise self.play_error
        self.played.append((audio, channel_id))

    async def send_text(self, channel_id: str, message: str) -> None:
        self.sent.append((channel_id, message))

    async def leave(self, channel_id: str) -> None:
        pass

    @property
    def messages(self) -> list[str]:
        return [message for _, message in self.sent]


class FixedReasoning(ReasoningService):
    def __init__(self, response: str = SLOTS) -> None:
        self.response = response

    async def complete(self, prompt: str) -> str:
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def make_driver(frames=None, reasoning=None, platform=None):
    store = SessionStore()
    platform = platform or FakePlatform(frames)
    transcriber = AsyncMock(spec=TranscriptionService)
    transcriber.transcribe.return_value = "Let's meet on Monday"
    synthesizer = AsyncMock(spec=SynthesisService)
    synthesizer.synthesize.return_value = b"RIFF-reply"
    image_analyzer = AsyncMock(spec=ImageAnalysisService)
    sleep = AsyncMock()
    orchestrator = DialogueOrchestrator(store, reasoning or FixedReasoning())
    driver = PipelineDriver(
        platform,
        store,
        transcriber,
        synthesizer,
        orchestrator,
        image_analyzer=image_analyzer,
        sleep=sleep,
    )
    return driver, platform, store, transcriber, synthesizer, image_analyzer, sleep


def make_utterance(seconds: float = 1.0) -> Utterance:
    pcm_format = PcmFormat()
    samples = np.full(int(pcm_format.sample_rate * seconds) * 2, 1000, dtype="<i2")
    return Utterance(
        user_id=USER,
        channel_id=CHANNEL,
        audio=samples.tobytes(),
        pcm_format=pcm_format,
        captured_at=0.0,
    )


@pytest.mark.unit
class TestTranscriptionRetry:
    """Test cases for the rate limit retry policy."""

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried_once(self) -> None:
        """Test that a rate limited call is retried after 2 seconds."""
        driver, _, _, transcriber, _, _, sleep = make_driver()
        transcriber.transcribe.side_effect = [RateLimitedError(), "hello"]

        assert await driver.transcribe_with_retry(b"wav") == "hello"

        assert transcriber.transcribe.await_count == 2
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_rate_limit_twice_is_fatal(self) -> None:
        """Test that a second rate limit gives up."""
        driver, _, _, transcriber, _, _, sleep = make_driver()
        transcriber.transcribe.side_effect = [RateLimitedError(), RateLimitedError()]

        with pytest.raises(RateLimitedError):
            await driver.transcribe_with_retry(b"wav")

        assert transcriber.transcribe.await_count == 2
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self) -> None:
        """Test that non rate limit failures propagate immediately."""
        driver, _, _, transcriber, _, _, sleep = make_driver()
        transcriber.transcribe.side_effect = TranscriptionError("corrupt")

        with pytest.raises(TranscriptionError, match="corrupt"):
            await driver.transcribe_with_retry(b"wav")

        assert transcriber.transcribe.await_count == 1
        sleep.assert_not_awaited()


@pytest.mark.unit
class TestProcessUtterance:
    """Test cases for handling one finalized utterance."""

    @pytest.mark.asyncio
    async def test_transcriber_receives_mono_16k_wav(self) -> None:
        """Test the audio framing handed to the transcriber."""
        driver, _, _, transcriber, _, _, _ = make_driver()

        await driver.process_utterance(make_utterance(1.0))

        wav_data = transcriber.transcribe.await_args.args[0]
        with wave.open(io.BytesIO(wav_data), "rb") as wav_file:
            assert wav_file.getnchannels() == 1
            assert wav_file.getframerate() == 16000
            assert wav_file.getnframes() == 16000

    @pytest.mark.asyncio
    async def test_without_schedule_asks_for_it(self) -> None:
        """Test the schedule required post and spoken prompt."""
        driver, platform, store, _, synthesizer, _, _ = make_driver()

        reply = await driver.process_utterance(make_utterance())

        assert reply.kind is ReplyKind.SCHEDULE_REQUIRED
        assert platform.messages[0].startswith("📅 **Schedule Required:**")
        synthesizer.synthesize.assert_awaited_once_with(reply.text)
        assert platform.played == [(b"RIFF-reply", CHANNEL)]
        assert store.get_context(USER) is None

    @pytest.mark.asyncio
    async def test_voice_turn_posts_transcript_and_speaks(self) -> None:
        """Test the full voice turn with schedule data present."""
        driver, platform, store, _, synthesizer, _, _ = make_driver()
        store.set_schedule(USER, "Available: Mon 2-4pm")

        reply = await driver.process_utterance(make_utterance())

        assert reply.kind is ReplyKind.FOLLOW_UP
        message = platform.messages[0]
        assert message.startswith("🔄 **Voice Input:** Let's meet on Monday")
        assert "📅 **Meeting Suggestions:**\n1. 2025-06-23T14:00:00+07:00" in message
        assert "📚 **Full Context:** [SCHEDULE DATA]: Available: Mon 2-4pm\nLet's meet on Monday" in message
        synthesizer.synthesize.assert_awaited_once_with(reply.text)
        assert store.get_context(USER).turn_count == 2

    @pytest.mark.asyncio
    async def test_empty_transcript_stops(self) -> None:
        """Test that silence transcribed as nothing produces no reply."""
        driver, platform, store, transcriber, synthesizer, _, _ = make_driver()
        transcriber.transcribe.return_value = "   "

        assert await driver.process_utterance(make_utterance()) is None

        assert platform.sent == []
        synthesizer.synthesize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transcription_failure_aborts_utterance(self) -> None:
        """Test that a transcription error is logged and nothing is sent."""
        driver, platform, _, transcriber, _, _, _ = make_driver()
        transcriber.transcribe.side_effect = TranscriptionError("boom")

        assert await driver.process_utterance(make_utterance()) is None
        assert platform.sent == []

    @pytest.mark.asyncio
    async def test_reasoning_failure_aborts_utterance(self) -> None:
        """Test that a reasoning error is logged and nothing is sent."""
        driver, platform, store, _, _, _, _ = make_driver(
            reasoning=FixedReasoning(ReasoningError("down"))
        )
        store.set_schedule(USER, "Fridays")

        assert await driver.process_utterance(make_utterance()) is None
        assert platform.sent == []

    @pytest.mark.asyncio
    async def test_synthesis_failure_keeps_text_reply(self) -> None:
        """Test that a failed synthesis does not undo the posted reply."""
        driver, platform, store, _, synthesizer, _, _ = make_driver()
        synthesizer.synthesize.side_effect = SynthesisError("no voice")
        store.set_schedule(USER, "Fridays")

        reply = await driver.process_utterance(make_utterance())

        assert reply is not None
        assert len(platform.sent) == 1
        assert platform.played == []

    @pytest.mark.asyncio
    async def test_playback_failure_is_logged(self) -> None:
        """Test that playback errors are contained."""
        driver, platform, store, _, _, _, _ = make_driver()
        platform.play_error = PlaybackError("device busy")

        assert await driver.speak(CHANNEL, "hello") is False


@pytest.mark.unit
class TestTextAndImages:
    """Test cases for the text and schedule image entry points."""

    @pytest.mark.asyncio
    async def test_text_and_voice_share_one_context(self) -> None:
        """Test that typed and spoken turns accumulate together."""
        driver, platform, store, _, _, _, _ = make_driver()
        store.set_schedule(USER, "Fridays")

        await driver.handle_text(USER, CHANNEL, "I prefer afternoons")
        await driver.process_utterance(make_utterance())

        context = store.get_context(USER)
        assert context.entries == [
            "[SCHEDULE DATA]: Fridays",
            "[Text]: I prefer afternoons",
            "Let's meet on Monday",
        ]
        assert platform.messages[0].startswith("💬 **Text Input:** I prefer afternoons")

    @pytest.mark.asyncio
    async def test_schedule_image_sets_availability(self) -> None:
        """Test that a schedule image updates the schedule and is spoken back."""
        driver, platform, store, _, synthesizer, image_analyzer, _ = make_driver()
        image_analyzer.analyze.return_value = "Available: Mon 2-4pm"

        analysis = await driver.handle_schedule_image(USER, CHANNEL, b"png")

        assert analysis == "Available: Mon 2-4pm"
        assert store.get_schedule(USER) == "Available: Mon 2-4pm"
        assert platform.messages[0].startswith("📸 **Schedule Image Analysis:**")
        assert "has been added" in platform.messages[0]
        synthesizer.synthesize.assert_awaited_once_with(
            "I've analyzed your schedule. Available: Mon 2-4pm"
        )

    @pytest.mark.asyncio
    async def test_second_image_replaces_schedule(self) -> None:
        """Test that a new image replaces the previous schedule entry."""
        driver, platform, store, _, _, image_analyzer, _ = make_driver()
        image_analyzer.analyze.side_effect = ["Mon free", "Tue free"]

        await driver.handle_schedule_image(USER, CHANNEL, b"png")
        await driver.handle_schedule_image(USER, CHANNEL, b"png")

        assert store.get_context(USER).entries == ["[SCHEDULE DATA]: Tue free"]
        assert "has been updated" in platform.messages[1]

    @pytest.mark.asyncio
    async def test_image_failure_posts_error(self) -> None:
        """Test the fixed message when an image cannot be analyzed."""
        driver, platform, store, _, _, image_analyzer, _ = make_driver()
        image_analyzer.analyze.side_effect = ImageAnalysisError("blurry")

        assert await driver.handle_schedule_image(USER, CHANNEL, b"png") is None

        assert platform.messages == [IMAGE_ERROR_MESSAGE]
        assert store.get_schedule(USER) is None

    @pytest.mark.asyncio
    async def test_unexpected_image_error_posts_error(self) -> None:
        """Test that an unwrapped upstream error is contained like any other."""
        driver, platform, store, _, _, image_analyzer, _ = make_driver()
        image_analyzer.analyze.side_effect = RuntimeError("connection reset")

        assert await driver.handle_schedule_image(USER, CHANNEL, b"png") is None

        assert platform.messages == [IMAGE_ERROR_MESSAGE]
        assert store.get_schedule(USER) is None

    @pytest.mark.asyncio
    async def test_unexpected_dialogue_error_keeps_session_usable(self) -> None:
        """Test that an unwrapped reasoning error is reported, not raised."""
        reasoning = FixedReasoning(RuntimeError("upstream 500"))
        driver, platform, store, _, _, _, _ = make_driver(reasoning=reasoning)
        store.set_schedule(USER, "Fridays")

        assert await driver.handle_text(USER, CHANNEL, "let's meet Monday") is None
        assert platform.messages == [DIALOGUE_ERROR_MESSAGE]
        assert store.get_context(USER).turn_count == 1

        reasoning.response = SLOTS
        reply = await driver.handle_text(USER, CHANNEL, "let's meet Monday")

        assert reply is not None
        assert store.get_context(USER).turn_count == 2

    @pytest.mark.asyncio
    async def test_set_availability(self) -> None:
        """Test that typed availability is stored and acknowledged."""
        driver, platform, store, _, _, _, _ = make_driver()

        await driver.set_availability(USER, CHANNEL, "Weekdays after 3pm")

        assert store.get_schedule(USER) == "Weekdays after 3pm"
        assert platform.messages[0].startswith("📅 **Availability:**")


@pytest.mark.integration
class TestVoiceSession:
    """Test cases for speaking start through to a spoken reply."""

    @pytest.mark.asyncio
    async def test_speaking_start_listens_and_processes(self) -> None:
        """Test that a stream of speech ends in one processed utterance."""
        loud = np.full(960 * 2, 1000, dtype="<i2").tobytes()
        driver, platform, store, transcriber, _, _, _ = make_driver(frames=[loud] * 50)
        driver.attach()

        await platform.callbacks[0](USER, CHANNEL)
        assert store.has_session(USER)

        await asyncio.gather(*driver._listeners.values())
        await driver.segmenter.drain()

        transcriber.transcribe.assert_awaited_once()
        assert platform.messages[0].startswith("📅 **Schedule Required:**")
        assert not driver.is_listening(USER)

    @pytest.mark.asyncio
    async def test_second_speaking_start_keeps_one_listener(self) -> None:
        """Test that repeated speaking events do not duplicate listeners."""
        driver, platform, _, _, _, _, _ = make_driver(frames=[b"\x00\x00"] * 3)
        driver.attach()

        await platform.callbacks[0](USER, CHANNEL)
        first = driver._listeners[USER]
        await platform.callbacks[0](USER, CHANNEL)

        assert driver._listeners[USER] is first
        await first

    @pytest.mark.asyncio
    async def test_stream_failure_ends_listener_quietly(self) -> None:
        """Test that an unexpected stream error stops only that listener."""

        class BrokenPlatform(FakePlatform):
            async def subscribe(self, user_id: str) -> AsyncIterator[bytes]:
                yield b"\x00\x00"
                raise RuntimeError("socket closed")

        driver, platform, store, _, _, _, _ = make_driver(platform=BrokenPlatform())
        driver.attach()
        await platform.callbacks[0](USER, CHANNEL)
        listener = driver._listeners[USER]

        await listener

        assert listener.exception() is None
        assert not driver.is_listening(USER)
        assert store.has_session(USER)

    @pytest.mark.asyncio
    async def test_user_left_ends_session(self) -> None:
        """Test that leaving clears all state for the user."""
        driver, platform, store, _, _, _, _ = make_driver()
        store.set_schedule(USER, "Fridays")
        driver.attach()
        await platform.callbacks[0](USER, CHANNEL)

        await driver.user_left(USER)

        assert not store.has_session(USER)
        assert store.get_schedule(USER) is None
        assert not driver.is_listening(USER)

    @pytest.mark.asyncio
    async def test_reset_keeps_recording(self) -> None:
        """Test that reset clears the conversation but not the session."""
        driver, platform, store, _, _, _, _ = make_driver()
        store.set_schedule(USER, "Fridays")
        driver.attach()
        await platform.callbacks[0](USER, CHANNEL)

        driver.reset(USER)

        assert store.has_session(USER)
        assert store.get_context(USER) is None
        await driver.shutdown()

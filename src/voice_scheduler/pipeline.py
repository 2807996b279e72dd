"""Wires voice capture, transcription, dialogue and speech output together."""

import asyncio
from collections.abc import Awaitable, Callable

from .scheduling.dialogue import DialogueOrchestrator
from .scheduling.exceptions import ImageAnalysisError, SchedulingError
from .scheduling.interfaces import ImageAnalysisService
from .scheduling.models import DialogueReply, InputSource, ReplyKind
from .session_store import SessionStore
from .speech.config import TRANSCRIPTION_BACKOFF_BASE, TRANSCRIPTION_MAX_ATTEMPTS
from .speech.encoding import pcm_to_wav
from .speech.exceptions import RateLimitedError, SpeechError, TranscriptionError
from .speech.interfaces import SynthesisService, TranscriptionService, VoicePlatform
from .speech.logging_utils import get_logger
from .speech.models import PcmFormat, Utterance
from .speech.segmenter import SegmenterConfig, VoiceActivitySegmenter

logger = get_logger(__name__)

IMAGE_ERROR_MESSAGE = (
    "❌ **Error processing schedule image:** Could not analyze the image. "
    "Please make sure it's a clear schedule or calendar image."
)
DIALOGUE_ERROR_MESSAGE = (
    "⚠️ Something went wrong while planning your meeting. Please try again."
)


def format_schedule_required(reply: DialogueReply) -> str:
    return (
        f"📅 **Schedule Required:**\n\n{reply.text}\n\n"
        "Please upload your schedule image or provide your availability."
    )


def format_voice_reply(transcript: str, reply: DialogueReply, full_context: str) -> str:
    status = "✅" if reply.kind is ReplyKind.SUMMARY else "🔄"
    return (
        f"{status} **Voice Input:** {transcript}\n\n"
        f"📅 **Meeting Suggestions:**\n{reply.text}\n\n"
        f"📚 **Full Context:** {full_context}"
    )


def format_text_reply(text: str, reply: DialogueReply) -> str:
    return f"💬 **Text Input:** {text}\n\n📅 **Meeting Suggestions:**\n{reply.text}"


def format_schedule_update(schedule: str, replaced: bool, entries: int, source: str) -> str:
    return (
        f"{source}\n\n{schedule}\n\n"
        f"📚 **Context Updated:** Schedule data has been "
        f"{'updated' if replaced else 'added'} to your conversation context and "
        f"will be used for meeting scheduling.\n\n"
        f"📊 **Total Context Entries:** {entries}"
    )


class PipelineDriver:
    """
    Drives utterances from the voice platform through to spoken replies.

    Voice and text inputs converge on the same dialogue so both contribute
    to a single conversation context per user.
    """

    def __init__(
        self,
        platform: VoicePlatform,
        store: SessionStore,
        transcriber: TranscriptionService,
        synthesizer: SynthesisService,
        orchestrator: DialogueOrchestrator,
        image_analyzer: ImageAnalysisService | None = None,
        segmenter_config: SegmenterConfig | None = None,
        pcm_format: PcmFormat | None = None,
        max_attempts: int = TRANSCRIPTION_MAX_ATTEMPTS,
        backoff_base: float = TRANSCRIPTION_BACKOFF_BASE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the driver.

        Args:
            platform: Voice platform supplying frames and receiving replies
            store: Session store shared with the segmenter and dialogue
            transcriber: Speech-to-text backend
            synthesizer: Text-to-speech backend
            orchestrator: Conversation state machine
            image_analyzer: Vision backend for schedule screenshots
            segmenter_config: Voice activity thresholds
            pcm_format: Format of the platform's frames
            max_attempts: Transcription attempts when rate limited
            backoff_base: Retry delay is ``backoff_base ** attempt`` seconds
            sleep: Coroutine used to wait between retries
        """
        self._platform = platform
        self._store = store
        self._transcriber = transcriber
        self._synthesizer = synthesizer
        self._orchestrator = orchestrator
        self._image_analyzer = image_analyzer
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self._sleep = sleep
        self.segmenter = VoiceActivitySegmenter(
            store,
            self.process_utterance,
            config=segmenter_config,
            pcm_format=pcm_format,
        )
        self._listeners: dict[str, asyncio.Task] = {}

    def attach(self) -> None:
        """Start reacting to users speaking on the platform."""
        self._platform.on_speaking_start(self._on_speaking_start)

    async def _on_speaking_start(self, user_id: str, channel_id: str) -> None:
        self.segmenter.open_session(user_id, channel_id)

        listener = self._listeners.get(user_id)
        if listener is not None and not listener.done():
            return

        logger.info(f"🎙️ User {user_id} started speaking in {channel_id}")
        self._listeners[user_id] = asyncio.get_running_loop().create_task(
            self._listen(user_id)
        )

    async def _listen(self, user_id: str) -> None:
        try:
            async for frame in self._platform.subscribe(user_id):
                self.segmenter.feed(user_id, frame)
        except SpeechError as e:
            logger.error(f"❌ Audio stream for {user_id} failed: {e}")
        except Exception as e:
            logger.error(
                f"❌ Unexpected error in audio stream for {user_id}: {e}", exc_info=True
            )
        finally:
            self.segmenter.end_stream(user_id)
            if self._listeners.get(user_id) is asyncio.current_task():
                del self._listeners[user_id]

    def is_listening(self, user_id: str) -> bool:
        listener = self._listeners.get(user_id)
        return listener is not None and not listener.done()

    async def transcribe_with_retry(self, audio: bytes) -> str:
        """
        Transcribe a WAV file, backing off when the service is rate limited.

        Args:
            audio: WAV file bytes

        Returns:
            Transcribed text

        Raises:
            RateLimitedError: If every attempt was rate limited
            TranscriptionError: On any other failure, without retrying
        """
        attempt = 1
        while True:
            try:
                return await self._transcriber.transcribe(audio)
            except RateLimitedError as e:
                if attempt >= self.max_attempts:
                    logger.error(f"❌ Still rate limited after {attempt} attempts")
                    raise
                delay = self.backoff_base**attempt
                logger.warning(f"⚠️ Rate limited ({e}), retrying in {delay:.0f}s")
                await self._sleep(delay)
                attempt += 1

    async def process_utterance(self, utterance: Utterance) -> DialogueReply | None:
        """
        Transcribe an utterance and answer it.

        Failures are logged and abort this utterance only.

        Args:
            utterance: Finalized speech from the segmenter

        Returns:
            The dialogue reply, or None if nothing was answered
        """
        if not utterance.audio:
            logger.debug(f"Empty utterance for {utterance.user_id}, skipping")
            return None

        wav = pcm_to_wav(utterance.audio, utterance.pcm_format)
        try:
            transcript = await self.transcribe_with_retry(wav)
        except TranscriptionError as e:
            logger.error(f"❌ Failed to transcribe audio for {utterance.user_id}: {e}")
            return None

        transcript = transcript.strip()
        if not transcript:
            logger.info(f"🤐 No speech recognized for {utterance.user_id}")
            return None

        logger.info(f"📝 Transcription for {utterance.user_id}: {transcript}")
        return await self._converse(
            utterance.user_id, utterance.channel_id, transcript, InputSource.VOICE
        )

    async def handle_text(
        self, user_id: str, channel_id: str, text: str
    ) -> DialogueReply | None:
        """Feed a typed message into the user's conversation."""
        logger.info(f"📝 Text message from {user_id}: {text}")
        return await self._converse(user_id, channel_id, text, InputSource.TEXT)

    async def _converse(
        self, user_id: str, channel_id: str, text: str, source: InputSource
    ) -> DialogueReply | None:
        try:
            reply = await self._orchestrator.advance(user_id, text, source)
        except SchedulingError as e:
            logger.error(f"❌ Dialogue failed for {user_id}: {e}")
            return None
        except Exception as e:
            logger.error(
                f"❌ Unexpected dialogue error for {user_id}: {e}", exc_info=True
            )
            await self._platform.send_text(channel_id, DIALOGUE_ERROR_MESSAGE)
            return None

        if reply.is_schedule_required:
            message = format_schedule_required(reply)
        elif source is InputSource.TEXT:
            message = format_text_reply(text, reply)
        else:
            context = self._store.get_or_create_context(user_id)
            message = format_voice_reply(text, reply, context.transcript)

        await self._platform.send_text(channel_id, message)
        await self.speak(channel_id, reply.text)
        return reply

    async def speak(self, channel_id: str, text: str) -> bool:
        """
        Synthesize text and play it in a voice channel.

        Returns:
            True if the audio was played; failures are logged only
        """
        if not text.strip():
            return False
        try:
            audio = await self._synthesizer.synthesize(text)
            await self._platform.play(audio, channel_id)
        except SpeechError as e:
            logger.error(f"❌ Error playing audio response: {e}")
            return False
        return True

    async def handle_schedule_image(
        self, user_id: str, channel_id: str, image: bytes
    ) -> str | None:
        """
        Read availability off a schedule image.

        Args:
            user_id: User who uploaded the image
            channel_id: Channel to answer in
            image: Encoded image bytes

        Returns:
            The extracted availability, or None if analysis failed
        """
        if self._image_analyzer is None:
            logger.warning("⚠️ No image analyzer configured")
            await self._platform.send_text(channel_id, IMAGE_ERROR_MESSAGE)
            return None

        try:
            analysis = await self._image_analyzer.analyze(image)
        except ImageAnalysisError as e:
            logger.error(f"❌ Error processing schedule image for {user_id}: {e}")
            await self._platform.send_text(channel_id, IMAGE_ERROR_MESSAGE)
            return None
        except Exception as e:
            logger.error(
                f"❌ Unexpected error analyzing image for {user_id}: {e}", exc_info=True
            )
            await self._platform.send_text(channel_id, IMAGE_ERROR_MESSAGE)
            return None

        replaced = self._store.set_schedule(user_id, analysis)
        entries = self._store.get_or_create_context(user_id).turn_count
        await self._platform.send_text(
            channel_id,
            format_schedule_update(
                analysis, replaced, entries, "📸 **Schedule Image Analysis:**"
            ),
        )
        await self.speak(channel_id, f"I've analyzed your schedule. {analysis}")
        return analysis

    async def set_availability(self, user_id: str, channel_id: str, text: str) -> None:
        """Record availability the user typed in directly."""
        replaced = self._store.set_schedule(user_id, text)
        entries = self._store.get_or_create_context(user_id).turn_count
        await self._platform.send_text(
            channel_id,
            format_schedule_update(text, replaced, entries, "📅 **Availability:**"),
        )

    def reset(self, user_id: str) -> None:
        """Forget the user's conversation and schedule; recording continues."""
        self._store.clear_conversation(user_id)

    async def user_left(self, user_id: str) -> None:
        """End everything held for a user who left the voice channel."""
        self._store.end_session(user_id)
        listener = self._listeners.pop(user_id, None)
        if listener is not None and not listener.done():
            listener.cancel()
            await asyncio.gather(listener, return_exceptions=True)

    async def shutdown(self) -> None:
        """End every session and stop all listeners."""
        for user_id in set(self._store.users()) | set(self._listeners):
            await self.user_left(user_id)
        await self.segmenter.drain()
        logger.info("🛑 Pipeline stopped")

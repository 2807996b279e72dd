"""Single-user voice platform backed by the local microphone and speakers."""

from collections.abc import AsyncIterator, Callable

from .speech.audio_io import AudioCapture, AudioPlayer
from .speech.interfaces import SpeakingStartCallback, VoicePlatform
from .speech.logging_utils import get_logger
from .speech.models import PcmFormat

logger = get_logger(__name__)

LOCAL_CHANNEL_ID = "local"


class LocalVoicePlatform(VoicePlatform):
    """
    Runs the bot against the workstation's own audio devices.

    There is exactly one speaker, the local user. Text messages are written
    to the console and replies are played on the default output device.
    """

    def __init__(
        self,
        user_id: str,
        channel_id: str = LOCAL_CHANNEL_ID,
        capture: AudioCapture | None = None,
        player: AudioPlayer | None = None,
        output: Callable[[str], None] = print,
    ) -> None:
        self.user_id = user_id
        self.channel_id = channel_id
        self._capture = capture or AudioCapture()
        self._player = player or AudioPlayer()
        self._output = output
        self._callbacks: list[SpeakingStartCallback] = []

    @property
    def pcm_format(self) -> PcmFormat:
        """Format of the frames produced by ``subscribe``."""
        return PcmFormat(
            sample_rate=self._capture.sample_rate, channels=self._capture.channels
        )

    def on_speaking_start(self, callback: SpeakingStartCallback) -> None:
        self._callbacks.append(callback)

    async def start(self) -> None:
        """Open the microphone and announce the local user as speaking."""
        self._capture.start_capture()
        logger.info(f"🎤 Listening on the local microphone as {self.user_id}")
        for callback in self._callbacks:
            await callback(self.user_id, self.channel_id)

    async def subscribe(self, user_id: str) -> AsyncIterator[bytes]:
        if user_id != self.user_id:
            logger.warning(f"⚠️ No local audio for user {user_id}")
            return
        while self._capture.is_capturing():
            chunk = await self._capture.get_audio_chunk()
            if chunk is None:
                break
            yield chunk

    async def play(self, audio: bytes, channel_id: str) -> None:
        await self._player.play(audio)

    async def send_text(self, channel_id: str, message: str) -> None:
        self._output(message)

    async def leave(self, channel_id: str) -> None:
        self._capture.stop_capture()
        logger.info(f"👋 Left {channel_id}")

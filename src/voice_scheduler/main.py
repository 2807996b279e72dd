"""Command-line interface for the voice meeting scheduler."""

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

from .commands import Attachment, ChatMessage, CommandRouter
from .local_platform import LocalVoicePlatform
from .pipeline import PipelineDriver
from .scheduling.calendar_oracle import HttpCalendarOracle
from .scheduling.config import (
    DEFAULT_CALENDAR_URL,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_VISION_MODEL,
    DEFAULT_TIMEZONE,
)
from .scheduling.dialogue import DialogueOrchestrator
from .scheduling.image_analysis import OllamaImageAnalyzer
from .scheduling.planner import MeetingPlanner
from .scheduling.reasoning import OllamaReasoningService
from .session_store import SessionStore
from .speech.config import PIPER_VOICE_PATH, TRANSCRIBER_MODEL_SIZE
from .speech.logging_utils import configure_logging
from .speech.synthesizer import PiperSynthesizer
from .speech.transcriber import WhisperTranscriber

logger = logging.getLogger(__name__)

IMAGE_COMMAND = "#image"
QUIT_COMMANDS = ("#quit", "#exit")


class SchedulerCLI:
    """Runs the bot against the local microphone, speakers and console."""

    def __init__(
        self,
        platform: LocalVoicePlatform,
        driver: PipelineDriver,
        router: CommandRouter,
    ) -> None:
        self._platform = platform
        self._driver = driver
        self._router = router
        self._running = False

    @property
    def user_id(self) -> str:
        return self._platform.user_id

    def build_message(self, line: str) -> ChatMessage | None:
        """
        Turn a console line into a chat message.

        ``#image <path>`` attaches a local file instead of sending text.

        Returns:
            The message, or None if the line referenced an unreadable file
        """
        line = line.strip()
        channel_id = self._platform.channel_id
        if line.lower().startswith(IMAGE_COMMAND):
            path = Path(line[len(IMAGE_COMMAND) :].strip()).expanduser()
            try:
                data = path.read_bytes()
            except OSError as e:
                print(f"❌ Could not read image {path}: {e}")
                return None
            content_type = mimetypes.guess_type(path.name)[0] or "image/png"
            return ChatMessage(
                user_id=self.user_id,
                channel_id=channel_id,
                attachments=[Attachment(data, content_type, path.name)],
            )
        return ChatMessage(user_id=self.user_id, channel_id=channel_id, content=line)

    async def _read_line(self) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, sys.stdin.readline)

    async def run(self) -> None:
        """
        Main CLI run loop.

        Handles startup, reading console commands, and graceful shutdown.
        """
        try:
            print("🎤 Starting voice scheduler...")
            self._driver.attach()
            await self._platform.start()
            self._running = True
            print("✅ Listening. Speak into your microphone or type a command")
            print("   (#voice, #availability, #schedule, #reset, #image <path>).")
            print("   Type #quit or press Ctrl+C to stop.")

            while self._running:
                line = await self._read_line()
                if not line or line.strip().lower() in QUIT_COMMANDS:
                    break
                message = self.build_message(line)
                if message is not None:
                    await self._router.handle_message(message)

        except (KeyboardInterrupt, asyncio.CancelledError):
            print("\n👋 Goodbye!")
        except Exception as e:
            logger.error(f"❌ Unexpected error: {e}", exc_info=True)
            print(f"❌ Unexpected error: {e}")
        finally:
            self._running = False
            await self._router.close()
            await self._driver.shutdown()
            await self._platform.leave(self._platform.channel_id)


def build_cli(args: argparse.Namespace) -> SchedulerCLI:
    """Wire the concrete services selected on the command line."""
    store = SessionStore()
    platform = LocalVoicePlatform(user_id=args.user_id)

    reasoning = OllamaReasoningService(model=args.ollama_model, base_url=args.ollama_host)
    orchestrator = DialogueOrchestrator(store, reasoning, timezone=args.timezone)
    driver = PipelineDriver(
        platform,
        store,
        transcriber=WhisperTranscriber(
            model_size=args.whisper_model,
            device="cpu" if args.force_cpu else "auto",
        ),
        synthesizer=PiperSynthesizer(voice_path=args.piper_voice),
        orchestrator=orchestrator,
        image_analyzer=OllamaImageAnalyzer(
            model=args.vision_model, base_url=args.ollama_host
        ),
        pcm_format=platform.pcm_format,
    )
    planner = MeetingPlanner(
        reasoning, HttpCalendarOracle(url=args.calendar_url), timezone=args.timezone
    )
    router = CommandRouter(driver, platform, planner)
    return SchedulerCLI(platform, driver, router)


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Voice Scheduler - schedule meetings by talking to a local assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voice-scheduler                                   # Start with defaults
  voice-scheduler --verbose                         # Enable verbose logging
  voice-scheduler --trace                           # Log every segmenter decision
  voice-scheduler --ollama-model llama3.2:3b        # Use a smaller chat model
  voice-scheduler --force-cpu --whisper-model base  # CPU-only, faster transcription

Commands (typed in the console):
  #voice <text>          Answer the assistant in writing
  #availability <text>   Tell the assistant when you are free
  #image <path>          Analyze a schedule screenshot
  #schedule              Answer a few questions and get three slots
  #reset                 Start the conversation over
  #quit                  Stop and exit

Requires a running Ollama server and a Piper voice model.
        """,
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging and debug information",
    )

    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable trace logging (most verbose, includes per-frame decisions)",
    )

    parser.add_argument(
        "--user-id",
        default="local-user",
        help="Identifier of the local speaker (default: local-user)",
    )

    parser.add_argument(
        "--ollama-model",
        default=DEFAULT_OLLAMA_MODEL,
        help=f"Ollama chat model (default: {DEFAULT_OLLAMA_MODEL})",
    )

    parser.add_argument(
        "--vision-model",
        default=DEFAULT_OLLAMA_VISION_MODEL,
        help=f"Ollama vision model for schedule images (default: {DEFAULT_OLLAMA_VISION_MODEL})",
    )

    parser.add_argument(
        "--ollama-host",
        default=DEFAULT_OLLAMA_BASE_URL,
        metavar="URL",
        help=f"Ollama server URL (default: {DEFAULT_OLLAMA_BASE_URL})",
    )

    parser.add_argument(
        "--whisper-model",
        default=TRANSCRIBER_MODEL_SIZE,
        help=f"Whisper model size (default: {TRANSCRIBER_MODEL_SIZE})",
    )

    parser.add_argument(
        "--force-cpu",
        action="store_true",
        help="Force CPU-only mode, disable GPU/CUDA acceleration",
    )

    parser.add_argument(
        "--piper-voice",
        type=Path,
        default=PIPER_VOICE_PATH,
        metavar="PATH",
        help=f"Piper .onnx voice model (default: {PIPER_VOICE_PATH})",
    )

    parser.add_argument(
        "--calendar-url",
        default=DEFAULT_CALENDAR_URL,
        metavar="URL",
        help=f"Calendar assistant endpoint (default: {DEFAULT_CALENDAR_URL})",
    )

    parser.add_argument(
        "--timezone",
        default=DEFAULT_TIMEZONE,
        help=f"Timezone for suggested slots (default: {DEFAULT_TIMEZONE})",
    )

    return parser


async def main(args: argparse.Namespace) -> None:
    """Main entry point for the CLI application."""
    cli = build_cli(args)
    try:
        await cli.run()
    except KeyboardInterrupt:
        pass  # Graceful shutdown already handled in cli.run()


def cli_entry_with_args() -> None:
    """CLI entry point with argument parsing."""
    parser = create_argument_parser()
    args = parser.parse_args()
    configure_logging(verbose=args.verbose, trace=args.trace)

    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        pass  # Graceful shutdown


if __name__ == "__main__":
    cli_entry_with_args()

"""Chat command surface of the bot."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime

from .pipeline import PipelineDriver
from .scheduling.config import COMMAND_PREFIX, PROMPT_TIMEOUT
from .scheduling.exceptions import PromptTimeoutError, SchedulingError
from .scheduling.models import MeetingRequest
from .scheduling.planner import MeetingPlanner
from .speech.interfaces import VoicePlatform
from .speech.logging_utils import get_logger

logger = get_logger(__name__)

VOICE_USAGE = (
    "💬 Please provide your response after #voice "
    "(e.g., #voice I prefer afternoon meetings)"
)
AVAILABILITY_USAGE = (
    "📅 Please provide your availability after #availability "
    "(e.g., #availability Mon-Wed 2-5pm)"
)
RESET_MESSAGE = "🔄 Conversation context cleared. Starting fresh!"
QUESTIONNAIRE_FAILED = "⚠️ Timeout or error occurred. Please try again."
NO_SLOTS_MESSAGE = "⚠️ Could not find available slots."

QUESTIONS = (
    ("email", "📧 Please provide the invitee email:"),
    (
        "preferred_time",
        '📅 Please provide preferred date/time or range (e.g., "next week", '
        '"2025-06-21 afternoon"):',
    ),
    ("room", "🏢 Please provide meeting room name:"),
    ("details", "🏢 Please provide meeting details:"),
    ("duration", "🏢 Please provide meeting duration:"),
    ("start_date", "🏢 Please provide meeting days range from:"),
    ("end_date", "🏢 Please provide meeting days range to:"),
)


@dataclass
class Attachment:
    """A file attached to a chat message."""

    data: bytes
    content_type: str = "application/octet-stream"
    filename: str = ""

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")


@dataclass
class ChatMessage:
    """A message posted in the text channel."""

    user_id: str
    channel_id: str
    content: str = ""
    attachments: list[Attachment] = field(default_factory=list)


def parse_date(value: str) -> datetime | None:
    """Parse an ISO date answer, None if it is blank or not a date."""
    try:
        return datetime.fromisoformat(value.strip()) if value.strip() else None
    except ValueError:
        logger.warning(f"⚠️ Could not parse date '{value}', leaving range open")
        return None


class CommandRouter:
    """
    Dispatches chat messages to the pipeline driver and meeting planner.

    Supported commands:

    - ``#voice <text>``: answer the voice conversation in writing
    - ``#reset``: forget the conversation and schedule
    - ``#availability <text>``: state availability directly
    - ``#schedule``: questionnaire that suggests three slots
    - an image attachment: schedule screenshot to analyze
    """

    def __init__(
        self,
        driver: PipelineDriver,
        platform: VoicePlatform,
        planner: MeetingPlanner | None = None,
        prompt_timeout: float = PROMPT_TIMEOUT,
    ) -> None:
        self._driver = driver
        self._platform = platform
        self._planner = planner
        self.prompt_timeout = prompt_timeout
        self._answers: dict[str, asyncio.Queue[str]] = {}
        self._questionnaires: set[asyncio.Task] = set()

    def has_open_questionnaire(self, user_id: str) -> bool:
        return user_id in self._answers

    async def handle_message(self, message: ChatMessage) -> None:
        """
        Handle one chat message.

        Messages from a user with an open questionnaire are taken as the
        next answer. Anything that is not a command is ignored.
        """
        content = message.content.strip()

        queue = self._answers.get(message.user_id)
        if queue is not None and not message.attachments:
            queue.put_nowait(content)
            return

        image = next((a for a in message.attachments if a.is_image), None)
        if image is not None:
            logger.info(f"📸 Processing schedule image from {message.user_id}")
            await self._driver.handle_schedule_image(
                message.user_id, message.channel_id, image.data
            )
            return

        if not content.startswith(COMMAND_PREFIX):
            return

        command, _, argument = content.partition(" ")
        command = command.lower()
        argument = argument.strip()

        if command == "#voice":
            if argument:
                await self._driver.handle_text(
                    message.user_id, message.channel_id, argument
                )
            else:
                await self._platform.send_text(message.channel_id, VOICE_USAGE)
        elif command == "#reset":
            self._driver.reset(message.user_id)
            await self._platform.send_text(message.channel_id, RESET_MESSAGE)
        elif command == "#availability":
            if argument:
                await self._driver.set_availability(
                    message.user_id, message.channel_id, argument
                )
            else:
                await self._platform.send_text(message.channel_id, AVAILABILITY_USAGE)
        elif command == "#schedule":
            self.start_questionnaire(message.user_id, message.channel_id)
        else:
            logger.debug(f"Ignoring unknown command {command} from {message.user_id}")

    def start_questionnaire(self, user_id: str, channel_id: str) -> asyncio.Task | None:
        """
        Begin the ``#schedule`` questionnaire in the background.

        Returns:
            The questionnaire task, or None if one is already running
        """
        if user_id in self._answers:
            logger.debug(f"Questionnaire already open for {user_id}")
            return None

        self._answers[user_id] = asyncio.Queue()
        task = asyncio.get_running_loop().create_task(
            self._run_questionnaire(user_id, channel_id)
        )
        self._questionnaires.add(task)
        task.add_done_callback(self._questionnaires.discard)
        return task

    async def _ask(self, user_id: str, channel_id: str, question: str) -> str:
        await self._platform.send_text(channel_id, question)
        try:
            return await asyncio.wait_for(
                self._answers[user_id].get(), timeout=self.prompt_timeout
            )
        except TimeoutError as e:
            raise PromptTimeoutError(
                f"No answer from {user_id} within {self.prompt_timeout}s"
            ) from e

    async def _run_questionnaire(self, user_id: str, channel_id: str) -> None:
        try:
            answers = {}
            for key, question in QUESTIONS:
                answers[key] = await self._ask(user_id, channel_id, question)

            request = MeetingRequest(
                email=answers["email"],
                preferred_time=answers["preferred_time"],
                room=answers["room"],
                details=answers["details"],
                duration=answers["duration"],
                start_date=parse_date(answers["start_date"]),
                end_date=parse_date(answers["end_date"]),
            )
            if self._planner is None:
                raise SchedulingError("No meeting planner configured")

            await self._platform.send_text(
                channel_id, f"⏳ Finding optimal times for {request.email}..."
            )
            suggestions = await self._planner.find_optimal_times(request)
        except SchedulingError as e:
            logger.error(f"❌ Questionnaire for {user_id} failed: {e}")
            await self._platform.send_text(channel_id, QUESTIONNAIRE_FAILED)
            return
        except Exception as e:
            logger.error(
                f"❌ Unexpected error in questionnaire for {user_id}: {e}", exc_info=True
            )
            await self._platform.send_text(channel_id, QUESTIONNAIRE_FAILED)
            return
        finally:
            self._answers.pop(user_id, None)

        if suggestions:
            await self._platform.send_text(
                channel_id,
                "✅ Here are 3 suggested time slots:\n" + "\n".join(suggestions),
            )
        else:
            await self._platform.send_text(channel_id, NO_SLOTS_MESSAGE)

    async def close(self) -> None:
        """Cancel open questionnaires."""
        for task in list(self._questionnaires):
            task.cancel()
        await asyncio.gather(*self._questionnaires, return_exceptions=True)
        self._answers.clear()

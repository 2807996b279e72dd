"""Multi-turn scheduling conversation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from .config import (
    DEFAULT_TIMEZONE,
    FOLLOW_UP_PROMPT,
    SCHEDULE_REQUIRED_LINES,
    SUMMARY_PROMPT,
    TURN_THRESHOLD,
)
from .interfaces import ReasoningService
from .models import ConversationContext, DialogueReply, InputSource, ReplyKind

if TYPE_CHECKING:
    from ..session_store import SessionStore

logger = logging.getLogger(__name__)


class DialogueOrchestrator:
    """
    Advances a user's scheduling conversation by one turn.

    A turn either asks for schedule data (nothing is known about the user's
    availability yet), proposes candidate slots with follow-up questions, or,
    once enough turns have happened and slots were already proposed, asks the
    model for a confirmation summary.
    """

    def __init__(
        self,
        store: SessionStore,
        reasoning: ReasoningService,
        schedule_lookup: Callable[[str], str | None] | None = None,
        timezone: str = DEFAULT_TIMEZONE,
        turn_threshold: int = TURN_THRESHOLD,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            store: Session store holding conversation contexts
            reasoning: Model used to propose and confirm meeting times
            schedule_lookup: Accessor returning a user's availability text
                (defaults to the store's accessor)
            timezone: Timezone the model should answer in
            turn_threshold: Transcript entries needed before confirming
        """
        self._store = store
        self._reasoning = reasoning
        self._schedule_lookup = schedule_lookup or store.schedule_accessor()
        self.timezone = timezone
        self.turn_threshold = turn_threshold

    def should_summarize(self, context: ConversationContext) -> bool:
        """Whether the conversation has enough turns and prior suggestions."""
        return context.turn_count >= self.turn_threshold and context.has_suggestions

    def build_summary_prompt(
        self, transcript: str, schedule: str, context: ConversationContext
    ) -> str:
        return SUMMARY_PROMPT.format(
            transcript=transcript,
            schedule=schedule,
            suggestions=", ".join(context.proposed_times),
            turn_count=context.turn_count,
            timezone=self.timezone,
        )

    def build_follow_up_prompt(
        self, transcript: str, schedule: str, context: ConversationContext
    ) -> str:
        return FOLLOW_UP_PROMPT.format(
            transcript=transcript,
            schedule=schedule,
            previous_context=context.transcript or "None",
            timezone=self.timezone,
        )

    async def advance(
        self, user_id: str, text: str, source: InputSource = InputSource.VOICE
    ) -> DialogueReply:
        """
        Run one conversation turn.

        Args:
            user_id: User the input came from
            text: Transcribed or typed input
            source: Whether the input was spoken or typed

        Returns:
            Reply lines tagged with the kind of turn that produced them

        Raises:
            ReasoningError: If the model call fails; the context is left as it was
        """
        schedule = self._schedule_lookup(user_id)
        if not schedule:
            logger.info(f"📅 No schedule data for {user_id}, asking for it")
            return DialogueReply(
                kind=ReplyKind.SCHEDULE_REQUIRED, lines=list(SCHEDULE_REQUIRED_LINES)
            )

        stored = self._store.get_context(user_id)
        existing = stored or ConversationContext()
        summarize = self.should_summarize(existing)

        if summarize:
            prompt = self.build_summary_prompt(text, schedule, existing)
        else:
            prompt = self.build_follow_up_prompt(text, schedule, existing)

        lines = await self._reasoning.suggest(prompt)

        # A reset during the model call leaves this turn without a context
        current = self._store.get_context(user_id)
        if stored is not None and current is not stored:
            logger.info(f"🔄 Context for {user_id} was reset mid-turn, not recording it")
            return DialogueReply(
                kind=ReplyKind.SUMMARY if summarize else ReplyKind.FOLLOW_UP,
                lines=lines,
            )

        context = current or self._store.get_or_create_context(user_id)
        context.add_entry(text, source)
        if not summarize:
            context.proposed_times.extend(lines)

        logger.info(
            f"💬 {user_id}: turn_count={context.turn_count}, "
            f"proposed_times={len(context.proposed_times)}, "
            f"complete={summarize}"
        )
        return DialogueReply(
            kind=ReplyKind.SUMMARY if summarize else ReplyKind.FOLLOW_UP,
            lines=lines,
        )

"""Scheduling conversation, meeting planning and model clients."""

from .dialogue import DialogueOrchestrator
from .models import (
    ConversationContext,
    DialogueReply,
    InputSource,
    MeetingRequest,
    ReplyKind,
)

__all__ = [
    "ConversationContext",
    "DialogueReply",
    "InputSource",
    "MeetingRequest",
    "ReplyKind",
    "DialogueOrchestrator",
]

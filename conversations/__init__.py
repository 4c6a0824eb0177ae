"""Conversation and messaging engine package.

This package contains the in-memory domain engine of the operator console:
contacts, conversations and messages, the ordered message store, derived
views (grouping, filtering, unread counts), disappearing messages, the
conversation coordinator and realtime event reconciliation.
"""

from conversations.config import EngineSettings, get_settings
from conversations.contact import ChatType, Contact
from conversations.conversation import Conversation, ConversationStatus, ConversationView
from conversations.errors import EngineError, InvalidTransitionError, NotFoundError
from conversations.message import (
    Attachment,
    Message,
    MessageStatus,
    MessageType,
    Reaction,
    ReplySnapshot,
)
from conversations.message_store import MessageStore
from conversations.disappearing import (
    DisappearingMessagePolicy,
    DisappearingSettings,
    SweepLoop,
)
from conversations.filters import ConversationFilter, DateRange
from conversations.grouping import DateGroup, MessageRow
from conversations.coordinator import ConversationCoordinator
from conversations.realtime import (
    EventOutcome,
    EventResult,
    RealtimeReconciler,
    ReconcilerLoop,
    parse_event,
)

__all__ = [
    "EngineSettings",
    "get_settings",
    "ChatType",
    "Contact",
    "Conversation",
    "ConversationStatus",
    "ConversationView",
    "EngineError",
    "InvalidTransitionError",
    "NotFoundError",
    "Attachment",
    "Message",
    "MessageStatus",
    "MessageType",
    "Reaction",
    "ReplySnapshot",
    "MessageStore",
    "DisappearingMessagePolicy",
    "DisappearingSettings",
    "SweepLoop",
    "ConversationFilter",
    "DateRange",
    "DateGroup",
    "MessageRow",
    "ConversationCoordinator",
    "EventOutcome",
    "EventResult",
    "RealtimeReconciler",
    "ReconcilerLoop",
    "parse_event",
]

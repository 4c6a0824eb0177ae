"""Conversation model and its derived read view."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from conversations.contact import ChatType, Contact
from conversations.grouping import message_preview
from conversations.message import Message


class ConversationStatus(str, Enum):
    """Workflow status an operator assigns to a conversation."""

    NEW = "new"
    ACTIVE = "active"
    WAITING = "waiting"
    RESOLVED = "resolved"


class Conversation(BaseModel):
    """A thread with a single contact.

    Holds only the operator-owned metadata. The last message and unread count
    are never stored here; they are derived from MessageStore on every read
    (see ConversationView).

    Args:
        id: Unique conversation identifier.
        contact_id: Contact this conversation is with.
        chat_type: Team, client or lead conversation.
        created_at: When the conversation was created.
        is_pinned: Whether the conversation is pinned to the top.
        assigned_to: Operator the conversation is assigned to.
        tags: Free-form labels.
        status: Workflow status.
    """

    id: str = Field(frozen=True, description="Unique conversation identifier")
    contact_id: str = Field(frozen=True, description="Contact this thread is with")
    chat_type: ChatType = Field(frozen=True, description="Team, client or lead")
    created_at: datetime = Field(frozen=True, description="Creation instant")
    is_pinned: bool = Field(default=False, description="Pinned to the top")
    assigned_to: Optional[str] = Field(default=None, description="Assigned operator")
    tags: set[str] = Field(default_factory=set, description="Free-form labels")
    status: ConversationStatus = Field(default=ConversationStatus.NEW)

    def to_dict(self) -> dict[str, Any]:
        """Convert conversation to dictionary for API responses.

        Returns:
            Dictionary representation of this conversation.
        """
        result = {
            "id": self.id,
            "contact_id": self.contact_id,
            "chat_type": self.chat_type.value,
            "created_at": self.created_at.isoformat(),
            "is_pinned": self.is_pinned,
            "tags": sorted(self.tags),
            "status": self.status.value,
        }
        if self.assigned_to:
            result["assigned_to"] = self.assigned_to
        return result


class ConversationView(BaseModel):
    """Read-only projection used by list views and filters.

    Built fresh from the store each time it is requested, so ``last_message``
    and ``unread_count`` always agree with the message list.

    Args:
        conversation: The conversation metadata.
        contact: The contact the conversation is with.
        last_message: Most recent message, if any.
        unread_count: Inbound messages not yet read.
    """

    conversation: Conversation
    contact: Contact
    last_message: Optional[Message] = None
    unread_count: int = 0

    @property
    def id(self) -> str:
        return self.conversation.id

    @property
    def last_activity(self) -> Optional[datetime]:
        """Timestamp of the last message, used for date filtering."""
        return self.last_message.timestamp if self.last_message else None

    def to_dict(self) -> dict[str, Any]:
        """Convert view to dictionary for API responses."""
        return {
            **self.conversation.to_dict(),
            "contact": self.contact.to_dict(),
            "last_message": self.last_message.to_dict() if self.last_message else None,
            "preview": message_preview(self.last_message),
            "unread_count": self.unread_count,
        }

"""Shared request and response models for API endpoints.

Engine entities are returned through their ``to_dict()`` representations;
the models here describe request bodies and the envelopes around those
dictionaries.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from conversations.contact import ChatType
from conversations.conversation import ConversationStatus
from conversations.message import Attachment
from conversations.realtime import EventResult, RealtimeEvent


# ============================================================================
# Request Models
# ============================================================================


class CreateContactRequest(BaseModel):
    """Request model for registering a contact.

    Attributes:
        id: Contact id assigned by the backend (generated if omitted).
        name: Display name.
        phone: Phone number.
        type: Team, client or lead.
        tags: Free-form labels.
        avatar_url: Optional avatar reference.
        is_online: Initial presence flag.
    """

    id: Optional[str] = Field(default=None, description="Backend contact id")
    name: str = Field(min_length=1, description="Display name")
    phone: str = Field(description="Phone number")
    type: ChatType = Field(default=ChatType.CLIENT, description="Team, client or lead")
    tags: list[str] = Field(default_factory=list, description="Free-form labels")
    avatar_url: Optional[str] = Field(default=None, description="Avatar reference")
    is_online: bool = Field(default=False, description="Presence flag")


class SendMessageRequest(BaseModel):
    """Request model for sending a text or media message.

    Attributes:
        content: Text content or caption.
        attachment: Uploaded attachment (the staged one is used if omitted).
    """

    content: str = Field(default="", description="Text content or caption")
    attachment: Optional[Attachment] = Field(default=None, description="Attachment")


class SendVoiceRequest(BaseModel):
    attachment: Attachment = Field(description="Uploaded recording")
    duration_seconds: Optional[float] = Field(
        default=None, ge=0, description="Recording length"
    )


class TagRequest(BaseModel):
    tag: str = Field(min_length=1, description="Tag to add or remove")


class AssignRequest(BaseModel):
    assignee: Optional[str] = Field(
        default=None, description="Operator to assign, or null to unassign"
    )


class ConversationStatusRequest(BaseModel):
    status: ConversationStatus = Field(description="New workflow status")


class DisappearingRequest(BaseModel):
    """Request model for disappearing message settings.

    Attributes:
        enabled: Whether messages expire.
        timeout_hours: Age after which messages are removed (kept if omitted).
    """

    enabled: bool = Field(description="Whether messages expire")
    timeout_hours: Optional[float] = Field(
        default=None, gt=0, description="Age in hours after which messages expire"
    )


class ReplyTargetRequest(BaseModel):
    message_id: str = Field(description="Message to reply to")


class ReactionRequest(BaseModel):
    """Request model for reacting to a message.

    Attributes:
        emoji: Emoji character(s).
        user_id: Reacting user (defaults to the operator).
        user_name: Display name of the reacting user.
    """

    emoji: str = Field(min_length=1, description="Emoji character(s)")
    user_id: Optional[str] = Field(default=None, description="Reacting user")
    user_name: Optional[str] = Field(default=None, description="Reacting user's name")


class ForwardRequest(BaseModel):
    target_conversation_id: str = Field(description="Conversation to forward to")


class RealtimeEventsRequest(BaseModel):
    """Batch of realtime events in arrival order."""

    events: list[RealtimeEvent] = Field(min_length=1, description="Events to apply")


class SweepRequest(BaseModel):
    now: Optional[datetime] = Field(
        default=None, description="Evaluation instant (defaults to the engine clock)"
    )

    @field_validator("now")
    @classmethod
    def validate_timezone_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            raise ValueError("Datetime must be timezone-aware (recommend UTC)")
        return v


# ============================================================================
# Response Models
# ============================================================================


class ActionResponse(BaseModel):
    """Generic response for state-changing endpoints.

    Attributes:
        status: Always "ok" for successful actions.
        message: Human-readable description of the result.
        data: Entity affected by the action, if any.
    """

    status: str = Field(default="ok")
    message: str
    data: Optional[dict[str, Any]] = None


class ContactListResponse(BaseModel):
    contacts: list[dict[str, Any]]
    total_count: int


class ConversationListResponse(BaseModel):
    """Response model for conversation list endpoints.

    Attributes:
        conversations: Matching conversation views, most recent first.
        groups: Conversation ids per Pinned/Active/Others section.
        total_count: Number of matching conversations.
        active_filter_count: Number of criteria in effect.
        total_unread: Unread inbound messages across all conversations.
    """

    conversations: list[dict[str, Any]]
    groups: dict[str, list[str]]
    total_count: int
    active_filter_count: int
    total_unread: int


class DateGroupResponse(BaseModel):
    date: str
    messages: list[dict[str, Any]]


class MessageListResponse(BaseModel):
    """Response model for a conversation's grouped messages.

    Attributes:
        conversation_id: Conversation the messages belong to.
        groups: Date buckets in ascending order.
        total_count: Number of messages.
        unread_count: Unread inbound messages.
    """

    conversation_id: str
    groups: list[DateGroupResponse]
    total_count: int
    unread_count: int


class EventBatchResponse(BaseModel):
    results: list[EventResult]
    applied_count: int
    duplicate_count: int
    failed_count: int


class SweepResponse(BaseModel):
    removed_count: int
    removed_ids: list[str]

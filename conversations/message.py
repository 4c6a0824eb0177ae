"""Message model and its value types.

A message is immutable once created except for its delivery ``status`` and
its ``reactions``. The kind of message is a tagged union of body variants so
that each variant carries only the fields it needs.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from conversations.errors import InvalidTransitionError


class MessageStatus(str, Enum):
    """Delivery status of a message.

    Statuses only move forward along sending → sent → delivered → read.
    A send that fails moves sending → error, which is terminal.
    """

    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    ERROR = "error"

    @property
    def rank(self) -> int:
        """Position along the delivery order (error sits outside it)."""
        return _DELIVERY_ORDER.index(self) if self in _DELIVERY_ORDER else -1

    def can_advance_to(self, new_status: "MessageStatus") -> bool:
        """Check whether moving to ``new_status`` is a legal forward step.

        Steps may skip intermediate statuses (a delivery receipt can arrive
        before the send acknowledgement) but never go backwards.

        Args:
            new_status: Requested status.

        Returns:
            True if the transition is allowed. Same-status is not a transition
            and returns False; callers treat it as a no-op.
        """
        if new_status == self:
            return False
        if new_status == MessageStatus.ERROR:
            return self == MessageStatus.SENDING
        if self == MessageStatus.ERROR:
            return False
        return new_status.rank > self.rank


_DELIVERY_ORDER = [
    MessageStatus.SENDING,
    MessageStatus.SENT,
    MessageStatus.DELIVERED,
    MessageStatus.READ,
]


class MessageType(str, Enum):
    """Kinds of message content."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    VOICE = "voice"


class Attachment(BaseModel):
    """Snapshot of an uploaded file.

    The engine only keeps what the storage collaborator returned, never the
    file bytes.

    Args:
        url: Public URL returned by attachment storage.
        filename: Original filename.
        size: File size in bytes.
        mime_type: MIME type (e.g., "image/jpeg").
        duration_seconds: Playback length for audio and video.
    """

    url: str = Field(description="Public URL returned by storage")
    filename: Optional[str] = Field(default=None, description="Original filename")
    size: Optional[int] = Field(default=None, ge=0, description="File size in bytes")
    mime_type: Optional[str] = Field(default=None, description="MIME type")
    duration_seconds: Optional[float] = Field(
        default=None,
        ge=0,
        description="Playback length for audio and video",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert attachment to dictionary for API responses.

        Returns:
            Dictionary representation of this attachment.
        """
        result: dict[str, Any] = {"url": self.url}
        if self.filename:
            result["filename"] = self.filename
        if self.size is not None:
            result["size"] = self.size
        if self.mime_type:
            result["mime_type"] = self.mime_type
        if self.duration_seconds is not None:
            result["duration_seconds"] = self.duration_seconds
        return result


class TextBody(BaseModel):
    """Plain text message; the text lives in ``Message.content``."""

    type: Literal["text"] = "text"


class ImageBody(BaseModel):
    """Image message with optional caption in ``Message.content``."""

    type: Literal["image"] = "image"
    attachment: Attachment


class VideoBody(BaseModel):
    """Video message with optional caption in ``Message.content``."""

    type: Literal["video"] = "video"
    attachment: Attachment


class DocumentBody(BaseModel):
    """Document message; display name comes from the attachment filename."""

    type: Literal["document"] = "document"
    attachment: Attachment


class VoiceBody(BaseModel):
    """Recorded voice note."""

    type: Literal["voice"] = "voice"
    attachment: Attachment
    duration_seconds: float = Field(ge=0, description="Recording length")


MessageBody = Annotated[
    Union[TextBody, ImageBody, VideoBody, DocumentBody, VoiceBody],
    Field(discriminator="type"),
]


def body_for_attachment(attachment: Optional[Attachment]) -> MessageBody:
    """Pick the body variant for an outbound message.

    Images and videos are recognized by MIME prefix; every other file is sent
    as a document. Voice notes are never inferred, they are built explicitly.

    Args:
        attachment: Attachment being sent, if any.

    Returns:
        The matching body variant.
    """
    if attachment is None:
        return TextBody()
    mime_type = attachment.mime_type or ""
    if mime_type.startswith("image/"):
        return ImageBody(attachment=attachment)
    if mime_type.startswith("video/"):
        return VideoBody(attachment=attachment)
    return DocumentBody(attachment=attachment)


class ReplySnapshot(BaseModel):
    """Frozen copy of the message being replied to.

    Captured when the reply target is chosen. It does not follow later
    changes to, or deletion of, the original message.

    Args:
        message_id: Id of the original message at capture time.
        sender: Sender of the original message.
        content: Content of the original message.
        type: Kind of the original message.
    """

    message_id: str = Field(frozen=True)
    sender: str = Field(frozen=True)
    content: str = Field(frozen=True)
    type: MessageType = Field(frozen=True)

    @classmethod
    def of(cls, message: "Message") -> "ReplySnapshot":
        """Capture a snapshot of ``message``."""
        return cls(
            message_id=message.id,
            sender=message.sender,
            content=message.content,
            type=message.type,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert snapshot to dictionary."""
        return {
            "message_id": self.message_id,
            "sender": self.sender,
            "content": self.content,
            "type": self.type.value,
        }


class Reaction(BaseModel):
    """An emoji reaction; at most one per user per message.

    Args:
        user_id: Who reacted.
        user_name: Display name of who reacted.
        emoji: Emoji character(s).
        reacted_at: When the reaction was added.
    """

    user_id: str = Field(description="Who reacted")
    user_name: str = Field(description="Display name of who reacted")
    emoji: str = Field(min_length=1, description="Emoji character(s)")
    reacted_at: Optional[datetime] = Field(
        default=None,
        description="When the reaction was added",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert reaction to dictionary."""
        result = {
            "user_id": self.user_id,
            "user_name": self.user_name,
            "emoji": self.emoji,
        }
        if self.reacted_at:
            result["reacted_at"] = self.reacted_at.isoformat()
        return result


class Message(BaseModel):
    """A single message in a conversation.

    ``id`` is either a client-generated temporary id (optimistic send) or the
    id assigned by the backend. Only ``status`` and ``reactions`` change after
    creation; ``sequence`` is set once by MessageStore when the message is
    stored and breaks ties between equal timestamps.

    Args:
        id: Temporary or server-assigned identifier.
        conversation_id: Conversation this message belongs to.
        timestamp: When the message was created (timezone-aware, kept in UTC).
        is_outbound: True for messages sent by the tenant.
        sender: Display name of the sender.
        sender_id: Optional stable id of the sender.
        content: Text content or caption.
        body: Kind-specific payload.
        reply_to: Snapshot of the message this one replies to.
        is_forwarded: Whether this message was forwarded from another chat.
        sequence: Insertion sequence number assigned by MessageStore.
        status: Delivery status.
        reactions: Emoji reactions, one per user.
    """

    id: str = Field(frozen=True, description="Temporary or server id")
    conversation_id: str = Field(frozen=True, description="Owning conversation")
    timestamp: datetime = Field(frozen=True, description="Creation instant (UTC)")
    is_outbound: bool = Field(frozen=True, description="Sent by the tenant")
    sender: str = Field(frozen=True, description="Sender display name")
    sender_id: Optional[str] = Field(
        default=None,
        frozen=True,
        description="Stable sender id",
    )
    content: str = Field(default="", frozen=True, description="Text or caption")
    body: MessageBody = Field(
        default_factory=TextBody,
        frozen=True,
        description="Kind-specific payload",
    )
    reply_to: Optional[ReplySnapshot] = Field(
        default=None,
        frozen=True,
        description="Snapshot of the replied-to message",
    )
    is_forwarded: bool = Field(default=False, frozen=True)
    sequence: int = Field(default=0, frozen=True, ge=0)
    status: MessageStatus = Field(default=MessageStatus.SENDING)
    reactions: list[Reaction] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def validate_timezone_aware(cls, v: datetime) -> datetime:
        """Ensure the timestamp is timezone-aware and expressed in UTC."""
        if v.tzinfo is None:
            raise ValueError("Datetime must be timezone-aware (recommend UTC)")
        return v.astimezone(timezone.utc)

    @property
    def type(self) -> MessageType:
        """Kind of this message, taken from the body variant."""
        return MessageType(self.body.type)

    @property
    def attachment(self) -> Optional[Attachment]:
        """Attachment carried by the body, if any."""
        return getattr(self.body, "attachment", None)

    @property
    def is_unread(self) -> bool:
        """Inbound and not yet read."""
        return not self.is_outbound and self.status != MessageStatus.READ

    @property
    def sort_key(self) -> tuple[datetime, int]:
        """Ordering key within a conversation."""
        return (self.timestamp, self.sequence)

    def advance_status(self, new_status: MessageStatus) -> bool:
        """Move to ``new_status`` if it is a forward step.

        Args:
            new_status: Requested status.

        Returns:
            True if the status changed, False if it already had that status.

        Raises:
            InvalidTransitionError: If the step is not allowed.
        """
        new_status = MessageStatus(new_status)
        if new_status == self.status:
            return False
        if not self.status.can_advance_to(new_status):
            raise InvalidTransitionError(self.id, self.status.value, new_status.value)
        self.status = new_status
        return True

    def set_reaction(self, reaction: Reaction) -> None:
        """Add ``reaction``, replacing any earlier one from the same user."""
        self.reactions = [
            r for r in self.reactions if r.user_id != reaction.user_id
        ] + [reaction]

    def drop_reaction(self, user_id: str) -> bool:
        """Remove the reaction from ``user_id``.

        Returns:
            True if a reaction was removed.
        """
        remaining = [r for r in self.reactions if r.user_id != user_id]
        removed = len(remaining) != len(self.reactions)
        self.reactions = remaining
        return removed

    def to_dict(self) -> dict[str, Any]:
        """Convert message to dictionary for API responses.

        Returns:
            Dictionary representation of this message.
        """
        result: dict[str, Any] = {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "timestamp": self.timestamp.isoformat(),
            "is_outbound": self.is_outbound,
            "sender": self.sender,
            "content": self.content,
            "type": self.type.value,
            "status": self.status.value,
            "sequence": self.sequence,
            "is_forwarded": self.is_forwarded,
            "reactions": [r.to_dict() for r in self.reactions],
        }
        if self.sender_id:
            result["sender_id"] = self.sender_id
        if self.attachment:
            result["attachment"] = self.attachment.to_dict()
        if isinstance(self.body, VoiceBody):
            result["duration_seconds"] = self.body.duration_seconds
        if self.reply_to:
            result["reply_to"] = self.reply_to.to_dict()
        return result

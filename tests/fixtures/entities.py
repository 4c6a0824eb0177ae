"""Fixtures for contacts, messages and their value types."""

from datetime import datetime, timedelta, timezone

from conversations.contact import ChatType, Contact
from conversations.message import (
    Attachment,
    Message,
    MessageStatus,
    Reaction,
    TextBody,
    VoiceBody,
    body_for_attachment,
)

BASE_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def create_contact(
    id: str = "contact-1",
    name: str = "Alice Johnson",
    phone: str = "+15551234567",
    type: ChatType = ChatType.CLIENT,
    **kwargs,
) -> Contact:
    """Create a Contact with sensible defaults.

    Args:
        id: Contact id (default: "contact-1").
        name: Display name (default: "Alice Johnson").
        phone: Phone number.
        type: Chat type (default: client).
        **kwargs: Additional fields to override.

    Returns:
        Contact instance ready for testing.
    """
    return Contact(id=id, name=name, phone=phone, type=type, **kwargs)


def create_attachment(
    mime_type: str = "image/jpeg",
    filename: str = "photo.jpg",
    url: str = "https://files.example.com/photo.jpg",
    **kwargs,
) -> Attachment:
    """Create an Attachment with sensible defaults."""
    return Attachment(url=url, filename=filename, mime_type=mime_type, size=2048, **kwargs)


def create_message(
    id: str = "msg-1",
    conversation_id: str = "conv-1",
    timestamp: datetime | None = None,
    is_outbound: bool = False,
    sender: str | None = None,
    content: str = "Hello there",
    status: MessageStatus | None = None,
    attachment: Attachment | None = None,
    **kwargs,
) -> Message:
    """Create a Message with sensible defaults.

    Inbound messages default to ``delivered`` (received, not yet read) and
    outbound ones to ``sent``.

    Args:
        id: Message id (default: "msg-1").
        conversation_id: Owning conversation (default: "conv-1").
        timestamp: Creation instant (defaults to BASE_TIME).
        is_outbound: Direction (default: inbound).
        sender: Sender name (defaults to "Alice Johnson" or "You").
        content: Text content.
        status: Delivery status (defaults by direction).
        attachment: Attachment to carry; picks the body variant by MIME type.
        **kwargs: Additional fields to override.

    Returns:
        Message instance ready for testing.
    """
    if status is None:
        status = MessageStatus.SENT if is_outbound else MessageStatus.DELIVERED
    if sender is None:
        sender = "You" if is_outbound else "Alice Johnson"
    if attachment is not None and "body" not in kwargs:
        kwargs["body"] = body_for_attachment(attachment)
    return Message(
        id=id,
        conversation_id=conversation_id,
        timestamp=timestamp or BASE_TIME,
        is_outbound=is_outbound,
        sender=sender,
        content=content,
        status=status,
        **kwargs,
    )


def create_reaction(
    emoji: str = "👍",
    user_id: str = "user-2",
    user_name: str = "Bob",
    **kwargs,
) -> Reaction:
    return Reaction(user_id=user_id, user_name=user_name, emoji=emoji, **kwargs)


def create_thread(
    count: int,
    conversation_id: str = "conv-1",
    start: datetime | None = None,
    step: timedelta = timedelta(minutes=5),
    **kwargs,
) -> list[Message]:
    """Create ``count`` inbound messages spaced ``step`` apart.

    Ids are "msg-1" through "msg-<count>".
    """
    start = start or BASE_TIME
    return [
        create_message(
            id=f"msg-{i + 1}",
            conversation_id=conversation_id,
            timestamp=start + step * i,
            content=f"Message {i + 1}",
            **kwargs,
        )
        for i in range(count)
    ]


# Pre-built examples
TEAM_CONTACT = create_contact(
    id="contact-team",
    name="Dana Reyes",
    phone="+15550000001",
    type=ChatType.TEAM,
)

LEAD_CONTACT = create_contact(
    id="contact-lead",
    name="Evan Park",
    phone="+15550000002",
    type=ChatType.LEAD,
)

VOICE_NOTE = Message(
    id="msg-voice",
    conversation_id="conv-1",
    timestamp=BASE_TIME,
    is_outbound=False,
    sender="Alice Johnson",
    body=VoiceBody(
        attachment=Attachment(url="https://files.example.com/note.ogg", mime_type="audio/ogg"),
        duration_seconds=12.5,
    ),
    status=MessageStatus.DELIVERED,
)

PLAIN_TEXT = create_message(id="msg-text", body=TextBody())

"""Derived message views: date buckets, sender runs and unread counts.

Everything here is a pure function of a message list. Nothing is cached; the
views are recomputed from the store whenever they are needed.
"""

from datetime import date, timedelta, timezone
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel

from conversations.message import Message, MessageType

DEFAULT_GAP_SECONDS = 60

_MEDIA_PREVIEWS = {
    MessageType.IMAGE: "Photo",
    MessageType.VIDEO: "Video",
    MessageType.DOCUMENT: "Document",
    MessageType.VOICE: "Voice message",
}


class MessageRow(BaseModel):
    """A message as it sits in a rendered list.

    Args:
        message: The message.
        is_sequential: Continues the previous message's run (same sender,
            same direction, within the gap threshold).
        show_sender: Whether the sender label starts a new run here.
    """

    message: Message
    is_sequential: bool = False
    show_sender: bool = True


class DateGroup(BaseModel):
    """Messages that fall on one calendar date.

    Args:
        day: Calendar date of the bucket.
        rows: Messages of that day in display order.
    """

    day: date
    rows: list[MessageRow]

    @property
    def messages(self) -> list[Message]:
        return [row.message for row in self.rows]


def message_date(message: Message, tz_offset: Optional[timedelta] = None) -> date:
    """Calendar date of a message in UTC, or at a fixed offset from UTC."""
    tz = timezone(tz_offset) if tz_offset is not None else timezone.utc
    return message.timestamp.astimezone(tz).date()


def is_sequential(
    prev: Optional[Message],
    curr: Message,
    gap_threshold_seconds: float = DEFAULT_GAP_SECONDS,
) -> bool:
    """Whether ``curr`` collapses into the run started before it.

    Only decides avatar and sender-label collapsing; it has no effect on
    ordering or unread counts.

    Args:
        prev: Message displayed immediately before, if any.
        curr: Message being displayed.
        gap_threshold_seconds: Maximum gap inside a run.

    Returns:
        True iff both have the same direction and sender and ``curr`` follows
        ``prev`` by less than the threshold.
    """
    if prev is None:
        return False
    if prev.is_outbound != curr.is_outbound or prev.sender != curr.sender:
        return False
    gap = (curr.timestamp - prev.timestamp).total_seconds()
    return gap < gap_threshold_seconds


def sequence_rows(
    messages: Sequence[Message],
    gap_threshold_seconds: float = DEFAULT_GAP_SECONDS,
) -> list[MessageRow]:
    """Pair each message with its run flags.

    Args:
        messages: Messages in display order.
        gap_threshold_seconds: Maximum gap inside a run.

    Returns:
        One row per message, in input order.
    """
    rows = []
    prev: Optional[Message] = None
    for message in messages:
        sequential = is_sequential(prev, message, gap_threshold_seconds)
        rows.append(
            MessageRow(
                message=message,
                is_sequential=sequential,
                show_sender=not sequential,
            )
        )
        prev = message
    return rows


def group_by_date(
    messages: Iterable[Message],
    tz_offset: Optional[timedelta] = None,
    gap_threshold_seconds: float = DEFAULT_GAP_SECONDS,
) -> list[DateGroup]:
    """Partition messages into calendar-date buckets.

    Every message lands in exactly one bucket. Buckets come out in ascending
    date order; inside a bucket the input order is kept. Runs never span a
    bucket boundary.

    Args:
        messages: Messages to group, normally in display order.
        tz_offset: Offset from UTC that defines the calendar day.
        gap_threshold_seconds: Maximum gap inside a sender run.

    Returns:
        Date buckets in ascending order.
    """
    buckets: dict[date, list[Message]] = {}
    for message in messages:
        buckets.setdefault(message_date(message, tz_offset), []).append(message)

    return [
        DateGroup(day=day, rows=sequence_rows(buckets[day], gap_threshold_seconds))
        for day in sorted(buckets)
    ]


def compute_unread_count(messages: Iterable[Message]) -> int:
    """Count inbound messages that are not yet read."""
    return sum(1 for message in messages if message.is_unread)


def message_preview(message: Optional[Message]) -> str:
    """Short text for a conversation list entry.

    Args:
        message: Last message of the conversation, if any.

    Returns:
        The content, or a placeholder for captionless media.
    """
    if message is None:
        return ""
    if message.content:
        return message.content
    return _MEDIA_PREVIEWS.get(message.type, "")

"""Conversation and contact filtering.

Filters are pure predicates over ConversationView lists. All criteria
combine with AND; an absent or blank criterion matches everything. Results
keep the input order.
"""

from datetime import datetime
from typing import Iterable, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from conversations.contact import ChatType, Contact
from conversations.conversation import ConversationView

PINNED_GROUP = "Pinned"
ACTIVE_GROUP = "Active"
OTHERS_GROUP = "Others"


class DateRange(BaseModel):
    """Inclusive range over the last-message timestamp.

    Args:
        start: Earliest accepted instant (inclusive), open if None.
        end: Latest accepted instant (inclusive), open if None.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def validate_timezone_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure bounds are comparable with message timestamps."""
        if v is not None and v.tzinfo is None:
            raise ValueError("Datetime must be timezone-aware (recommend UTC)")
        return v

    @model_validator(mode="after")
    def validate_order(self) -> "DateRange":
        """Ensure start does not come after end."""
        if self.start and self.end and self.start > self.end:
            raise ValueError("Date range start must not be after its end")
        return self

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, instant: Optional[datetime]) -> bool:
        if self.is_empty:
            return True
        if instant is None:
            return False
        if self.start and instant < self.start:
            return False
        if self.end and instant > self.end:
            return False
        return True


class ConversationFilter(BaseModel):
    """Criteria for the conversation list.

    The five criteria (chat type, search text, date range, assignee, tag) are
    the ones counted by ``active_filter_count``. The ``include_*`` flags only
    widen the view to hidden contacts and are not counted as filters.

    Args:
        chat_type: Only conversations of this type.
        search_text: Case-insensitive substring of the contact name.
        date_range: Range the last message must fall in.
        assignee: Only conversations assigned to this operator.
        tag: Only conversations carrying this tag.
        include_archived: Also show conversations with archived contacts.
        include_blocked: Also show conversations with blocked contacts.
    """

    chat_type: Optional[ChatType] = None
    search_text: Optional[str] = None
    date_range: Optional[DateRange] = None
    assignee: Optional[str] = None
    tag: Optional[str] = None
    include_archived: bool = Field(default=False)
    include_blocked: bool = Field(default=False)

    @field_validator("search_text", "assignee", "tag")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty and whitespace-only text as an absent criterion."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("date_range")
    @classmethod
    def empty_range_to_none(cls, v: Optional[DateRange]) -> Optional[DateRange]:
        if v is not None and v.is_empty:
            return None
        return v

    @property
    def is_default(self) -> bool:
        return active_filter_count(self) == 0

    def reset(self) -> "ConversationFilter":
        """Filter with every criterion cleared, keeping the view scope flags."""
        return ConversationFilter(
            include_archived=self.include_archived,
            include_blocked=self.include_blocked,
        )


def _visible(contact: Contact, criteria: ConversationFilter) -> bool:
    if contact.is_archived and not criteria.include_archived:
        return False
    if contact.is_blocked and not criteria.include_blocked:
        return False
    return True


def matches(view: ConversationView, criteria: ConversationFilter) -> bool:
    """Check one conversation against every criterion.

    Args:
        view: Conversation to test.
        criteria: Filter criteria.

    Returns:
        True if every provided criterion matches.
    """
    if not _visible(view.contact, criteria):
        return False

    if criteria.chat_type is not None and view.conversation.chat_type != criteria.chat_type:
        return False

    if criteria.search_text and criteria.search_text.lower() not in view.contact.name.lower():
        return False

    if criteria.date_range is not None and not criteria.date_range.contains(view.last_activity):
        return False

    if criteria.assignee and view.conversation.assigned_to != criteria.assignee:
        return False

    if criteria.tag and criteria.tag not in view.conversation.tags:
        return False

    return True


def apply_filters(
    views: Iterable[ConversationView],
    criteria: ConversationFilter,
) -> list[ConversationView]:
    """Keep the conversations matching ``criteria``, in input order."""
    return [view for view in views if matches(view, criteria)]


def active_filter_count(criteria: ConversationFilter) -> int:
    """Number of criteria ``matches`` actually enforces."""
    return sum(
        [
            criteria.chat_type is not None,
            bool(criteria.search_text),
            criteria.date_range is not None,
            bool(criteria.assignee),
            bool(criteria.tag),
        ]
    )


def filter_contacts(
    contacts: Iterable[Contact],
    criteria: ConversationFilter,
) -> list[Contact]:
    """Filter the contact sidebar.

    Contacts have no last message or assignee, so only the chat type, search
    text and tag criteria apply here. The tag is matched against the
    contact's own tags.

    Args:
        contacts: Contacts in display order.
        criteria: Filter criteria.

    Returns:
        Matching contacts, in input order.
    """
    results = []
    for contact in contacts:
        if not _visible(contact, criteria):
            continue
        if criteria.chat_type is not None and contact.type != criteria.chat_type:
            continue
        if criteria.search_text and criteria.search_text.lower() not in contact.name.lower():
            continue
        if criteria.tag and criteria.tag not in contact.tags:
            continue
        results.append(contact)
    return results


def group_conversations(
    views: Iterable[ConversationView],
) -> dict[str, list[ConversationView]]:
    """Split a conversation list into Pinned, Active and Others sections.

    Pinned conversations go first regardless of type, client conversations
    form the Active section, everything else lands in Others. Empty sections
    are omitted and each section keeps the input order.
    """
    groups: dict[str, list[ConversationView]] = {
        PINNED_GROUP: [],
        ACTIVE_GROUP: [],
        OTHERS_GROUP: [],
    }
    for view in views:
        if view.conversation.is_pinned:
            groups[PINNED_GROUP].append(view)
        elif view.conversation.chat_type == ChatType.CLIENT:
            groups[ACTIVE_GROUP].append(view)
        else:
            groups[OTHERS_GROUP].append(view)

    return {name: members for name, members in groups.items() if members}

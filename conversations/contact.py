"""Contact model for the operator console."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ChatType(str, Enum):
    """Classification of a contact or conversation."""

    TEAM = "team"
    CLIENT = "client"
    LEAD = "lead"


class Contact(BaseModel):
    """A person or organization the tenant talks to.

    Identity fields are frozen. The flags below them are owned by
    ConversationCoordinator, which is the only code that flips them.
    Archived and blocked contacts drop out of default views but remain
    addressable by id; hard deletion belongs to the backend.

    Args:
        id: Unique contact identifier.
        name: Display name.
        phone: Phone number in any display format.
        type: Whether the contact is a team member, client or lead.
        is_online: Presence flag pushed by the backend.
        is_starred: Whether the operator starred this contact.
        is_archived: Whether the contact is hidden from default views.
        is_blocked: Whether the contact is blocked.
        is_muted: Whether notifications for this contact are muted.
        tags: Free-form labels.
        avatar_url: Optional avatar image reference.
        last_seen: When the contact was last seen online.
    """

    id: str = Field(frozen=True, description="Unique contact identifier")
    name: str = Field(frozen=True, description="Display name")
    phone: str = Field(frozen=True, description="Phone number")
    type: ChatType = Field(frozen=True, description="Team, client or lead")
    is_online: bool = Field(default=False, description="Presence flag")
    is_starred: bool = Field(default=False, description="Starred by the operator")
    is_archived: bool = Field(default=False, description="Hidden from default views")
    is_blocked: bool = Field(default=False, description="Blocked contact")
    is_muted: bool = Field(default=False, description="Notifications muted")
    tags: set[str] = Field(default_factory=set, description="Free-form labels")
    avatar_url: Optional[str] = Field(default=None, description="Avatar reference")
    last_seen: Optional[datetime] = Field(
        default=None,
        description="When the contact was last seen online",
    )

    @property
    def is_hidden(self) -> bool:
        """Whether default views should leave this contact out."""
        return self.is_archived or self.is_blocked

    def to_dict(self) -> dict[str, Any]:
        """Convert contact to dictionary for API responses.

        Returns:
            Dictionary representation of this contact.
        """
        result = {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "type": self.type.value,
            "is_online": self.is_online,
            "is_starred": self.is_starred,
            "is_archived": self.is_archived,
            "is_blocked": self.is_blocked,
            "is_muted": self.is_muted,
            "tags": sorted(self.tags),
        }
        if self.avatar_url:
            result["avatar_url"] = self.avatar_url
        if self.last_seen:
            result["last_seen"] = self.last_seen.isoformat()
        return result

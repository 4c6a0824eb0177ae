"""Error taxonomy for the conversation engine.

Every engine operation works on in-memory data, so the only failures it can
report are references to unknown entities and illegal status transitions.
Both are recoverable: callers decide whether to surface them to the user.

Exception Hierarchy:
    EngineError (base)
    ├── NotFoundError - Unknown contact, conversation or message
    └── InvalidTransitionError - Status change outside the forward-only order

Duplicate realtime deliveries are not errors. They are absorbed as no-ops by
MessageStore and reported as a "duplicate" outcome by the reconciler.
"""

from typing import Any


class EngineError(Exception):
    """Base exception for all conversation engine errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(EngineError):
    """Raised when an operation references an unknown entity.

    Args:
        kind: Entity kind ("contact", "conversation" or "message").
        identifier: The id that could not be resolved.
    """

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} {identifier} not found")

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses.

        Returns:
            Dictionary representation of this error.
        """
        return {"kind": self.kind, "identifier": self.identifier}


class InvalidTransitionError(EngineError):
    """Raised when a message status change breaks the forward-only order.

    Args:
        message_id: Message whose status was being changed.
        current: Status the message currently has.
        requested: Status the caller asked for.
    """

    def __init__(self, message_id: str, current: str, requested: str) -> None:
        self.message_id = message_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Message {message_id} cannot move from '{current}' to '{requested}'"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses.

        Returns:
            Dictionary representation of this error.
        """
        return {
            "message_id": self.message_id,
            "current_status": self.current,
            "requested_status": self.requested,
        }

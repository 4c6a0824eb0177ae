"""Ordered per-conversation message storage."""

import bisect
import logging
from typing import Optional

from pydantic import BaseModel, Field

from conversations.errors import InvalidTransitionError, NotFoundError
from conversations.message import Message, MessageStatus, Reaction

logger = logging.getLogger(__name__)


class MessageStore(BaseModel):
    """Owns the ordered message list of every conversation.

    Messages in a thread are kept sorted by (timestamp, sequence). The
    sequence number is assigned on insert from a store-wide counter, so ties
    between equal timestamps resolve by insertion order.

    The store is also where optimistic sends meet server confirmations:
    ``reconcile`` swaps a temporary entry for its confirmed copy in place and
    remembers the mapping in ``aliases``, so late references to the temporary
    id (status updates, duplicate confirmations) still land on the right
    message. ``append`` and ``reconcile`` are both idempotent under
    at-least-once delivery. Ids of removed messages are remembered so a
    redelivered event cannot bring a deleted message back.

    Args:
        threads: Ordered message lists keyed by conversation id.
        locations: Conversation id of every stored message, keyed by message id.
        aliases: Server id of every reconciled temporary id (a confirmed
            message that kept its client id maps to itself).
        removed_ids: Ids of messages that were deleted or expired.
        next_sequence: Sequence number the next stored message receives.
    """

    threads: dict[str, list[Message]] = Field(
        default_factory=dict,
        description="Ordered message lists keyed by conversation id",
    )
    locations: dict[str, str] = Field(
        default_factory=dict,
        description="Conversation id of each stored message",
    )
    aliases: dict[str, str] = Field(
        default_factory=dict,
        description="Server id of each reconciled temporary id",
    )
    removed_ids: set[str] = Field(
        default_factory=set,
        description="Ids of deleted messages",
    )
    next_sequence: int = Field(default=1, description="Next sequence number")

    # ===== Queries =====

    def resolve_id(self, message_id: str) -> str:
        """Map a reconciled temporary id to its server id."""
        return self.aliases.get(message_id, message_id)

    def contains(self, message_id: str) -> bool:
        return self.resolve_id(message_id) in self.locations

    def was_reconciled(self, temp_id: str) -> bool:
        return temp_id in self.aliases

    def was_removed(self, message_id: str) -> bool:
        """Whether the message was deleted or expired."""
        return message_id in self.removed_ids or self.resolve_id(message_id) in self.removed_ids

    def find(self, message_id: str) -> Optional[Message]:
        """Look up a message by temporary or server id.

        Args:
            message_id: Message identifier.

        Returns:
            The stored message, or None if not found.
        """
        resolved = self.resolve_id(message_id)
        conversation_id = self.locations.get(resolved)
        if conversation_id is None:
            return None
        thread = self.threads[conversation_id]
        return thread[self._index_of(thread, resolved)]

    def get(self, message_id: str) -> Message:
        """Look up a message, raising if it is unknown.

        Raises:
            NotFoundError: If no stored message has this id.
        """
        message = self.find(message_id)
        if message is None:
            raise NotFoundError("message", message_id)
        return message

    def find_conversation(self, message_id: str) -> Optional[str]:
        """Conversation id of a stored message, or None."""
        return self.locations.get(self.resolve_id(message_id))

    def messages(self, conversation_id: str) -> list[Message]:
        """Messages of a conversation in display order.

        Returns a new list; mutating it does not touch the store.
        """
        return list(self.threads.get(conversation_id, []))

    def last_message(self, conversation_id: str) -> Optional[Message]:
        thread = self.threads.get(conversation_id)
        return thread[-1] if thread else None

    def conversation_ids(self) -> list[str]:
        return list(self.threads.keys())

    def ensure_thread(self, conversation_id: str) -> None:
        """Create an empty thread for a new conversation."""
        self.threads.setdefault(conversation_id, [])

    @property
    def message_count(self) -> int:
        return len(self.locations)

    # ===== Mutations =====

    def append(self, conversation_id: str, message: Message) -> Optional[Message]:
        """Insert a message keeping the thread in timestamp order.

        Appending a message whose id is already stored (directly or as a
        reconciled temporary id) is a no-op: duplicate deliveries return the
        message already in the store. A redelivered message that was removed
        stays removed.

        Args:
            conversation_id: Thread to insert into.
            message: Message to store.

        Returns:
            The stored message carrying its assigned sequence number, or None
            if the message was removed earlier.

        Raises:
            ValueError: If the message belongs to another conversation.
        """
        if message.conversation_id != conversation_id:
            raise ValueError(
                f"Message {message.id} belongs to conversation "
                f"{message.conversation_id}, not {conversation_id}"
            )

        existing = self.find(message.id)
        if existing is not None:
            logger.debug(f"Ignoring duplicate delivery of message {message.id}")
            return existing
        if self.was_removed(message.id):
            logger.debug(f"Ignoring redelivery of removed message {message.id}")
            return None

        stored = message.model_copy(update={"sequence": self.next_sequence}, deep=True)
        self.next_sequence += 1

        thread = self.threads.setdefault(conversation_id, [])
        bisect.insort_right(thread, stored, key=lambda m: m.sort_key)
        self.locations[stored.id] = conversation_id

        logger.debug(
            f"Stored message {stored.id} in {conversation_id} (seq {stored.sequence})"
        )
        return stored

    def update_status(self, message_id: str, new_status: MessageStatus) -> Message:
        """Advance a message's delivery status.

        Repeating the current status is a no-op.

        Args:
            message_id: Temporary or server id.
            new_status: Requested status.

        Returns:
            The updated message.

        Raises:
            NotFoundError: If the message is unknown.
            InvalidTransitionError: If the step is not forward-only.
        """
        message = self.get(message_id)
        if message.advance_status(MessageStatus(new_status)):
            logger.debug(f"Message {message.id} is now {message.status.value}")
        return message

    def reconcile(self, temp_id: str, server_message: Message) -> Optional[Message]:
        """Replace an optimistic entry with its server-confirmed copy.

        The confirmed message takes the temporary entry's place: it keeps the
        local timestamp and sequence so the thread order does not change.
        Everything else, including id and status, comes from the server copy.

        Reconciling an already reconciled id is a no-op. A confirmation for
        an optimistic message that was removed in the meantime is ignored and
        the server id is remembered as removed too.

        Args:
            temp_id: Temporary id of the optimistic message.
            server_message: Message as confirmed by the backend.

        Returns:
            The stored confirmed message, or None if it was removed.

        Raises:
            NotFoundError: If ``temp_id`` was never stored. The server event
                may have overtaken the local insert; callers fall back to
                ``append``.
            InvalidTransitionError: If the temporary entry is no longer in
                ``sending`` status.
            ValueError: If the confirmation targets another conversation.
        """
        if temp_id in self.aliases:
            logger.debug(f"Temporary message {temp_id} was already reconciled")
            return self.find(self.aliases[temp_id])

        if temp_id in self.removed_ids:
            self.aliases[temp_id] = server_message.id
            self.removed_ids.add(server_message.id)
            logger.debug(f"Ignoring confirmation of removed message {temp_id}")
            return None

        conversation_id = self.locations.get(temp_id)
        if conversation_id is None:
            raise NotFoundError("message", temp_id)
        if server_message.conversation_id != conversation_id:
            raise ValueError(
                f"Confirmation for {temp_id} targets conversation "
                f"{server_message.conversation_id}, not {conversation_id}"
            )

        thread = self.threads[conversation_id]
        index = self._index_of(thread, temp_id)
        temporary = thread[index]
        if temporary.status != MessageStatus.SENDING:
            raise InvalidTransitionError(
                temp_id, temporary.status.value, MessageStatus(server_message.status).value
            )

        if server_message.id != temp_id and server_message.id in self.locations:
            # The push for the server id arrived before the send confirmation.
            del thread[index]
            del self.locations[temp_id]
            self.aliases[temp_id] = server_message.id
            logger.debug(
                f"Dropped temporary message {temp_id}; {server_message.id} already stored"
            )
            return self.get(server_message.id)

        reactions = {r.user_id: r for r in temporary.reactions}
        reactions.update({r.user_id: r for r in server_message.reactions})
        confirmed = server_message.model_copy(
            update={
                "timestamp": temporary.timestamp,
                "sequence": temporary.sequence,
                "reactions": list(reactions.values()),
            },
            deep=True,
        )
        thread[index] = confirmed
        del self.locations[temp_id]
        self.locations[confirmed.id] = conversation_id
        self.aliases[temp_id] = confirmed.id

        logger.debug(f"Reconciled {temp_id} as {confirmed.id}")
        return confirmed

    def remove(self, message_id: str) -> Message:
        """Delete a message.

        The id is remembered so later deliveries of the same message are
        ignored. Reply snapshots in other messages are copies and are left
        untouched.

        Raises:
            NotFoundError: If the message is unknown.
        """
        resolved = self.resolve_id(message_id)
        conversation_id = self.locations.pop(resolved, None)
        if conversation_id is None:
            raise NotFoundError("message", message_id)
        self.removed_ids.update({message_id, resolved})
        thread = self.threads[conversation_id]
        return thread.pop(self._index_of(thread, resolved))

    def add_reaction(self, message_id: str, reaction: Reaction) -> Message:
        """Set a user's reaction, replacing any earlier one from that user.

        Raises:
            NotFoundError: If the message is unknown.
        """
        message = self.get(message_id)
        message.set_reaction(reaction)
        return message

    def remove_reaction(self, message_id: str, user_id: str) -> Message:
        """Remove a user's reaction; no-op if the user has none.

        Raises:
            NotFoundError: If the message is unknown.
        """
        message = self.get(message_id)
        message.drop_reaction(user_id)
        return message

    def clear_conversation(self, conversation_id: str) -> int:
        """Remove every message of a conversation, keeping the thread.

        Returns:
            Number of messages removed.
        """
        thread = self.threads.get(conversation_id, [])
        for message in thread:
            del self.locations[message.id]
            self.removed_ids.add(message.id)
        removed = len(thread)
        thread.clear()
        return removed

    def drop_conversation(self, conversation_id: str) -> int:
        """Remove a conversation's thread entirely.

        Returns:
            Number of messages removed.
        """
        removed = self.clear_conversation(conversation_id)
        self.threads.pop(conversation_id, None)
        return removed

    def validate_state(self) -> list[str]:
        """Validate ordering and index consistency.

        Returns:
            List of validation error messages (empty if valid).
        """
        errors = []
        seen_sequences: set[int] = set()
        indexed = 0

        for conversation_id, thread in self.threads.items():
            for i, message in enumerate(thread):
                if message.conversation_id != conversation_id:
                    errors.append(
                        f"Message {message.id} stored in {conversation_id} but "
                        f"belongs to {message.conversation_id}"
                    )
                if self.locations.get(message.id) != conversation_id:
                    errors.append(f"Message {message.id} missing from location index")
                if message.id in self.removed_ids:
                    errors.append(f"Removed message {message.id} is still stored")
                if message.sequence in seen_sequences:
                    errors.append(f"Duplicate sequence number {message.sequence}")
                seen_sequences.add(message.sequence)
                if i > 0 and thread[i - 1].sort_key >= message.sort_key:
                    errors.append(
                        f"Messages not ordered in {conversation_id}: "
                        f"{thread[i - 1].id} precedes {message.id}"
                    )
            indexed += len(thread)

        if indexed != len(self.locations):
            errors.append(
                f"Location index has {len(self.locations)} entries for {indexed} messages"
            )

        return errors

    def _index_of(self, thread: list[Message], message_id: str) -> int:
        for i, message in enumerate(thread):
            if message.id == message_id:
                return i
        raise NotFoundError("message", message_id)

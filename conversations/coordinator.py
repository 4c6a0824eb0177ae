"""Conversation coordinator: the engine's entry point for user actions.

The coordinator owns contacts and conversations, drives MessageStore for
message actions, keeps the selection, reply and composer state of the
operator, and runs the reactive disappearing-message sweep after every change
to a conversation's messages.

All operations are synchronous over in-memory state. They fail only with
NotFoundError (unknown reference), InvalidTransitionError (illegal status
change) or ValueError (malformed argument), and every failure leaves the
state unchanged.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

from conversations.config import EngineSettings
from conversations.contact import ChatType, Contact
from conversations.conversation import Conversation, ConversationStatus, ConversationView
from conversations.disappearing import (
    DisappearingMessagePolicy,
    DisappearingSettings,
    SweepLoop,
)
from conversations.errors import InvalidTransitionError, NotFoundError
from conversations.filters import ConversationFilter, apply_filters
from conversations.grouping import DateGroup, compute_unread_count, group_by_date
from conversations.message import (
    Attachment,
    Message,
    MessageBody,
    MessageStatus,
    Reaction,
    ReplySnapshot,
    VoiceBody,
    body_for_attachment,
)
from conversations.message_store import MessageStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConversationCoordinator:
    """Orchestrates contacts, conversations and message actions.

    Every collaborator is injected, so independent instances can live side by
    side (one per tenant, one per test).

    Attributes:
        settings: Engine settings.
        store: Message store shared with the disappearing policy.
        policy: Disappearing message policy.
        clock: Callable returning the current timezone-aware instant.
        id_factory: Callable returning a fresh unique id.
        active_conversation_id: Conversation currently open, if any.
        selected_contact_id: Contact currently selected, if any.
        reply_target: Snapshot of the message being replied to, if any.
        staged_attachment: Attachment chosen for the next send, if any.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        store: Optional[MessageStore] = None,
        policy: Optional[DisappearingMessagePolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        """Initialize coordinator.

        Args:
            settings: Engine settings (loaded from the environment if omitted).
            store: Message store; taken from ``policy`` or created if omitted.
            policy: Disappearing policy; built from ``settings`` if omitted.
            clock: Source of the current instant (defaults to UTC wall clock).
            id_factory: Source of unique ids (defaults to uuid4).

        Raises:
            ValueError: If ``store`` and ``policy`` do not share one store.
        """
        self.settings = settings if settings is not None else EngineSettings()

        if policy is not None and store is not None and policy.store is not store:
            raise ValueError("Disappearing policy must sweep the coordinator's store")
        if store is None:
            store = policy.store if policy is not None else MessageStore()
        if policy is None:
            policy = DisappearingMessagePolicy(
                store=store,
                default=DisappearingSettings(
                    enabled=self.settings.disappearing_enabled,
                    timeout_hours=self.settings.disappearing_timeout_hours,
                ),
                grace_period=timedelta(seconds=self.settings.send_grace_period_seconds),
            )

        self.store = store
        self.policy = policy
        self.clock = clock or utc_now
        self.id_factory = id_factory or (lambda: str(uuid4()))

        self.contacts_by_id: dict[str, Contact] = {}
        self.conversations_by_id: dict[str, Conversation] = {}
        self.active_conversation_id: Optional[str] = None
        self.selected_contact_id: Optional[str] = None
        self.reply_target: Optional[ReplySnapshot] = None
        self.staged_attachment: Optional[Attachment] = None

        self._sweep_loop: Optional[SweepLoop] = None
        self._operation_lock = threading.RLock()

    @property
    def operation_lock(self) -> threading.RLock:
        """Lock serializing mutations with background loops."""
        return self._operation_lock

    # ===== Contacts & Conversations =====

    def add_contact(self, contact: Contact) -> Contact:
        """Register a contact created by the backend.

        Raises:
            ValueError: If a contact with the same id already exists.
        """
        with self._operation_lock:
            if contact.id in self.contacts_by_id:
                raise ValueError(f"Contact {contact.id} already exists")
            self.contacts_by_id[contact.id] = contact
            logger.debug(f"Added contact {contact.id} ({contact.type.value})")
            return contact

    def get_contact(self, contact_id: str) -> Contact:
        contact = self.contacts_by_id.get(contact_id)
        if contact is None:
            raise NotFoundError("contact", contact_id)
        return contact

    def contacts(self) -> list[Contact]:
        return list(self.contacts_by_id.values())

    def get_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.conversations_by_id.get(conversation_id)
        if conversation is None:
            raise NotFoundError("conversation", conversation_id)
        return conversation

    def conversation_for_contact(self, contact_id: str) -> Optional[Conversation]:
        for conversation in self.conversations_by_id.values():
            if conversation.contact_id == contact_id:
                return conversation
        return None

    def start_conversation(
        self,
        contact_id: str,
        chat_type: Optional[ChatType] = None,
        conversation_id: Optional[str] = None,
    ) -> Conversation:
        """Return the contact's conversation, creating it on first use.

        Args:
            contact_id: Contact to talk to.
            chat_type: Conversation type (defaults to the contact's type).
            conversation_id: Id to use when creating (e.g. assigned by the
                backend); a new id is generated when omitted.

        Returns:
            The existing or newly created conversation.

        Raises:
            NotFoundError: If the contact is unknown.
        """
        with self._operation_lock:
            contact = self.get_contact(contact_id)
            existing = self.conversation_for_contact(contact_id)
            if existing is not None:
                return existing

            conversation = Conversation(
                id=conversation_id or self.id_factory(),
                contact_id=contact.id,
                chat_type=chat_type or contact.type,
                created_at=self.clock(),
            )
            self.conversations_by_id[conversation.id] = conversation
            self.store.ensure_thread(conversation.id)

            logger.info(
                f"Created {conversation.chat_type.value} conversation "
                f"{conversation.id} with contact {contact.id}"
            )
            return conversation

    def delete_conversation(self, conversation_id: str) -> Conversation:
        """Forget a conversation and all of its messages."""
        with self._operation_lock:
            conversation = self.get_conversation(conversation_id)
            del self.conversations_by_id[conversation_id]
            removed = self.store.drop_conversation(conversation_id)
            self.policy.reset(conversation_id)
            if self.active_conversation_id == conversation_id:
                self.active_conversation_id = None

            logger.info(f"Deleted conversation {conversation_id} ({removed} messages)")
            return conversation

    def clear_chat(self, conversation_id: str) -> int:
        """Remove every message of a conversation, keeping the conversation.

        Returns:
            Number of messages removed.
        """
        with self._operation_lock:
            self.get_conversation(conversation_id)
            return self.store.clear_conversation(conversation_id)

    # ===== Selection =====

    def select_contact(self, contact_id: str) -> Optional[Conversation]:
        """Select a contact and open its conversation if it has one.

        Selecting never creates a conversation and never changes unread state.

        Returns:
            The contact's conversation, or None if there is none yet.
        """
        with self._operation_lock:
            self.get_contact(contact_id)
            conversation = self.conversation_for_contact(contact_id)
            self.selected_contact_id = contact_id
            self.active_conversation_id = conversation.id if conversation else None
            return conversation

    def select_conversation(self, conversation_id: str) -> Conversation:
        """Make a conversation the single active one."""
        with self._operation_lock:
            conversation = self.get_conversation(conversation_id)
            self.active_conversation_id = conversation.id
            self.selected_contact_id = conversation.contact_id
            return conversation

    @property
    def active_conversation(self) -> Optional[Conversation]:
        if self.active_conversation_id is None:
            return None
        return self.conversations_by_id.get(self.active_conversation_id)

    def mark_read(self, conversation_id: str) -> int:
        """Mark every inbound unread message of a conversation as read.

        Inbound messages stuck in ``error`` cannot become read and are left
        as they are.

        Returns:
            Number of messages that changed status.
        """
        with self._operation_lock:
            self.get_conversation(conversation_id)
            changed = 0
            for message in self.store.messages(conversation_id):
                if message.is_unread and message.status.can_advance_to(MessageStatus.READ):
                    self.store.update_status(message.id, MessageStatus.READ)
                    changed += 1
            self.apply_expiry(conversation_id)
            return changed

    # ===== Sending =====

    def stage_attachment(self, attachment: Attachment) -> None:
        """Hold an uploaded attachment for the next send."""
        self.staged_attachment = attachment

    def cancel_attachment(self) -> None:
        """Drop the staged attachment; possible any time before sending."""
        self.staged_attachment = None

    def set_reply_target(self, message: Optional[Message]) -> Optional[ReplySnapshot]:
        """Choose the message the next send replies to.

        The target is captured as a snapshot now, so later changes to or
        deletion of the original do not affect the reply.

        Args:
            message: Message to reply to, or None to clear.

        Returns:
            The captured snapshot, or None.
        """
        self.reply_target = ReplySnapshot.of(message) if message is not None else None
        return self.reply_target

    def cancel_reply(self) -> None:
        self.reply_target = None

    def send_message(
        self,
        conversation_id: str,
        content: str = "",
        attachment: Optional[Attachment] = None,
    ) -> Message:
        """Optimistically send a message.

        Stores a ``sending`` message with a temporary id and returns at once.
        The collaborator later confirms it through the realtime reconciler or
        reports failure through ``mark_failed``. A pending reply target and a
        staged attachment are consumed by this send.

        Args:
            conversation_id: Conversation to send to.
            content: Text or caption.
            attachment: Attachment to send (defaults to the staged one).

        Returns:
            The stored optimistic message.

        Raises:
            NotFoundError: If the conversation is unknown.
            ValueError: If there is neither content nor an attachment.
        """
        with self._operation_lock:
            conversation = self.get_conversation(conversation_id)
            attachment = attachment or self.staged_attachment
            if not content.strip() and attachment is None:
                raise ValueError("Cannot send an empty message")

            message = self._send(conversation, content, body_for_attachment(attachment))
            self.staged_attachment = None
            return message

    def send_to_contact(
        self,
        contact_id: str,
        content: str = "",
        attachment: Optional[Attachment] = None,
    ) -> Message:
        """Send to a contact, creating the conversation on first message."""
        with self._operation_lock:
            if not content.strip() and attachment is None and self.staged_attachment is None:
                raise ValueError("Cannot send an empty message")
            conversation = self.start_conversation(contact_id)
            return self.send_message(conversation.id, content, attachment)

    def send_voice_message(
        self,
        conversation_id: str,
        attachment: Attachment,
        duration_seconds: Optional[float] = None,
    ) -> Message:
        """Optimistically send a recorded voice note.

        Args:
            conversation_id: Conversation to send to.
            attachment: Uploaded recording.
            duration_seconds: Recording length (defaults to the attachment's).

        Raises:
            NotFoundError: If the conversation is unknown.
            ValueError: If no duration is known.
        """
        with self._operation_lock:
            conversation = self.get_conversation(conversation_id)
            duration = (
                duration_seconds
                if duration_seconds is not None
                else attachment.duration_seconds
            )
            if duration is None:
                raise ValueError("Voice messages need a duration")

            body = VoiceBody(attachment=attachment, duration_seconds=duration)
            return self._send(conversation, "", body)

    def mark_failed(self, message_id: str) -> Message:
        """Record that the backend could not deliver an optimistic send."""
        with self._operation_lock:
            message = self.store.update_status(message_id, MessageStatus.ERROR)
            self.apply_expiry(message.conversation_id)
            return message

    def retry_message(self, message_id: str) -> Message:
        """Send a failed message again as a fresh optimistic message.

        The failed entry is removed once the new attempt is stored.

        Raises:
            NotFoundError: If the message is unknown.
            InvalidTransitionError: If the message has not failed.
        """
        with self._operation_lock:
            failed = self.store.get(message_id)
            if failed.status != MessageStatus.ERROR:
                raise InvalidTransitionError(
                    failed.id, failed.status.value, MessageStatus.SENDING.value
                )
            conversation = self.get_conversation(failed.conversation_id)
            retry = self._new_outbound(
                conversation,
                failed.content,
                failed.body,
                reply_to=failed.reply_to,
                is_forwarded=failed.is_forwarded,
            )
            stored = self._store(retry)
            self.store.remove(failed.id)

            logger.debug(f"Retrying {failed.id} as {stored.id}")
            return stored

    # ===== Message Actions =====

    def add_reaction(
        self,
        message_id: str,
        emoji: str,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> Message:
        """React to a message, replacing the user's earlier reaction."""
        with self._operation_lock:
            reaction = Reaction(
                user_id=user_id or self.settings.user_id,
                user_name=user_name or self.settings.user_name,
                emoji=emoji,
                reacted_at=self.clock(),
            )
            message = self.store.add_reaction(message_id, reaction)
            self.apply_expiry(message.conversation_id)
            return message

    def remove_reaction(self, message_id: str, user_id: Optional[str] = None) -> Message:
        with self._operation_lock:
            message = self.store.remove_reaction(message_id, user_id or self.settings.user_id)
            self.apply_expiry(message.conversation_id)
            return message

    def forward_message(self, message_id: str, target_conversation_id: str) -> Message:
        """Send a copy of a message to another conversation.

        The copy is a new optimistic message flagged as forwarded. It does
        not consume the pending reply target.

        Raises:
            NotFoundError: If the message or target conversation is unknown.
        """
        with self._operation_lock:
            source = self.store.get(message_id)
            target = self.get_conversation(target_conversation_id)
            message = self._new_outbound(
                target, source.content, source.body, is_forwarded=True
            )
            return self._store(message)

    def delete_message(self, message_id: str) -> Message:
        """Delete a message; replies quoting it keep their snapshot."""
        with self._operation_lock:
            removed = self.store.remove(message_id)
            logger.debug(f"Deleted message {removed.id}")
            self.apply_expiry(removed.conversation_id)
            return removed

    # ===== Contact Flags =====

    def toggle_archive(self, contact_id: str) -> bool:
        return self._toggle(contact_id, "is_archived")

    def toggle_star(self, contact_id: str) -> bool:
        return self._toggle(contact_id, "is_starred")

    def toggle_block(self, contact_id: str) -> bool:
        return self._toggle(contact_id, "is_blocked")

    def toggle_mute(self, contact_id: str) -> bool:
        return self._toggle(contact_id, "is_muted")

    # ===== Conversation Metadata =====

    def tag_conversation(self, conversation_id: str, tag: str) -> Conversation:
        """Add a tag to a conversation (no-op if already present)."""
        tag = tag.strip()
        if not tag:
            raise ValueError("Tag must not be empty")
        with self._operation_lock:
            conversation = self.get_conversation(conversation_id)
            conversation.tags.add(tag)
            return conversation

    def untag_conversation(self, conversation_id: str, tag: str) -> Conversation:
        with self._operation_lock:
            conversation = self.get_conversation(conversation_id)
            conversation.tags.discard(tag.strip())
            return conversation

    def assign_conversation(
        self,
        conversation_id: str,
        assignee: Optional[str],
    ) -> Conversation:
        """Assign a conversation to an operator, or unassign with None."""
        with self._operation_lock:
            conversation = self.get_conversation(conversation_id)
            conversation.assigned_to = assignee.strip() if assignee and assignee.strip() else None
            return conversation

    def toggle_pin(self, conversation_id: str) -> bool:
        with self._operation_lock:
            conversation = self.get_conversation(conversation_id)
            conversation.is_pinned = not conversation.is_pinned
            return conversation.is_pinned

    def set_conversation_status(
        self,
        conversation_id: str,
        status: ConversationStatus,
    ) -> Conversation:
        with self._operation_lock:
            conversation = self.get_conversation(conversation_id)
            conversation.status = ConversationStatus(status)
            return conversation

    # ===== Disappearing Messages =====

    def configure_disappearing(
        self,
        conversation_id: Optional[str],
        enabled: bool,
        timeout_hours: Optional[float] = None,
    ) -> DisappearingSettings:
        """Change expiry settings and sweep immediately.

        Args:
            conversation_id: Conversation to configure, or None for the
                default used by every conversation without an override.
            enabled: Whether messages expire.
            timeout_hours: New timeout (keeps the current one if omitted).

        Returns:
            The settings now in effect.
        """
        with self._operation_lock:
            if conversation_id is None:
                settings = self.policy.configure_default(enabled, timeout_hours)
                self.policy.sweep(self.clock())
            else:
                self.get_conversation(conversation_id)
                settings = self.policy.configure(conversation_id, enabled, timeout_hours)
                self.apply_expiry(conversation_id)
            still_enabled = self.policy.any_enabled()

        # Outside the lock: the sweep thread may be waiting on it.
        if not still_enabled:
            self.stop_background_sweep()
        return settings

    def apply_expiry(self, conversation_id: str) -> list[Message]:
        """Run the reactive sweep for one conversation.

        Called after every change to a conversation's messages.
        """
        with self._operation_lock:
            return self.policy.sweep_conversation(conversation_id, self.clock())

    def sweep_expired(self, now: Optional[datetime] = None) -> list[Message]:
        """Sweep every conversation with disappearing messages enabled."""
        with self._operation_lock:
            return self.policy.sweep(now or self.clock())

    def start_background_sweep(self, interval: Optional[float] = None) -> bool:
        """Start the periodic safety-net sweep.

        Args:
            interval: Seconds between sweeps (defaults to settings).

        Returns:
            True if the loop is running afterwards. Nothing is started while
            no conversation has disappearing messages enabled.
        """
        with self._operation_lock:
            if self._sweep_loop is not None and self._sweep_loop.is_running:
                return True
            if not self.policy.any_enabled():
                logger.info("Background sweep not started: disappearing messages disabled")
                return False
            self._sweep_loop = SweepLoop(
                self.sweep_expired,
                interval or self.settings.sweep_interval_seconds,
            )
            self._sweep_loop.start()
            return True

    def stop_background_sweep(self) -> None:
        if self._sweep_loop is not None:
            self._sweep_loop.stop()
            self._sweep_loop = None

    @property
    def background_sweep_running(self) -> bool:
        return self._sweep_loop is not None and self._sweep_loop.is_running

    # ===== Derived Views =====

    def messages(self, conversation_id: str) -> list[Message]:
        self.get_conversation(conversation_id)
        return self.store.messages(conversation_id)

    def last_message(self, conversation_id: str) -> Optional[Message]:
        self.get_conversation(conversation_id)
        return self.store.last_message(conversation_id)

    def unread_count(self, conversation_id: str) -> int:
        return compute_unread_count(self.messages(conversation_id))

    def total_unread(self) -> int:
        return sum(
            compute_unread_count(self.store.messages(conversation_id))
            for conversation_id in self.conversations_by_id
        )

    def conversation_view(self, conversation_id: str) -> ConversationView:
        """Fresh read view of a conversation."""
        with self._operation_lock:
            conversation = self.get_conversation(conversation_id)
            messages = self.store.messages(conversation_id)
            return ConversationView(
                conversation=conversation,
                contact=self.get_contact(conversation.contact_id),
                last_message=messages[-1] if messages else None,
                unread_count=compute_unread_count(messages),
            )

    def conversation_views(self) -> list[ConversationView]:
        """Views of all conversations, most recent activity first."""
        with self._operation_lock:
            views = [self.conversation_view(cid) for cid in self.conversations_by_id]
        views.sort(
            key=lambda v: v.last_activity or v.conversation.created_at,
            reverse=True,
        )
        return views

    def filtered_conversations(
        self,
        criteria: Optional[ConversationFilter] = None,
    ) -> list[ConversationView]:
        return apply_filters(self.conversation_views(), criteria or ConversationFilter())

    def grouped_messages(
        self,
        conversation_id: str,
        tz_offset: Optional[timedelta] = None,
    ) -> list[DateGroup]:
        """Messages of a conversation bucketed by date with run flags."""
        return group_by_date(
            self.messages(conversation_id),
            tz_offset=tz_offset,
            gap_threshold_seconds=self.settings.sequential_gap_seconds,
        )

    def get_snapshot(self) -> dict[str, Any]:
        """Return complete engine state for API responses."""
        with self._operation_lock:
            return {
                "contacts": {cid: c.to_dict() for cid, c in self.contacts_by_id.items()},
                "conversations": [v.to_dict() for v in self.conversation_views()],
                "active_conversation_id": self.active_conversation_id,
                "selected_contact_id": self.selected_contact_id,
                "reply_target": self.reply_target.to_dict() if self.reply_target else None,
                "total_messages": self.store.message_count,
                "unread_total": self.total_unread(),
            }

    def validate_state(self) -> list[str]:
        """Validate cross-entity consistency.

        Returns:
            List of validation error messages (empty if valid).
        """
        with self._operation_lock:
            errors = self.store.validate_state()
            for conversation in self.conversations_by_id.values():
                if conversation.contact_id not in self.contacts_by_id:
                    errors.append(
                        f"Conversation {conversation.id} references unknown contact "
                        f"{conversation.contact_id}"
                    )
            for conversation_id in self.store.conversation_ids():
                if conversation_id not in self.conversations_by_id:
                    errors.append(f"Messages stored for unknown conversation {conversation_id}")
            return errors

    # ===== Internals =====

    def _toggle(self, contact_id: str, flag: str) -> bool:
        with self._operation_lock:
            contact = self.get_contact(contact_id)
            value = not getattr(contact, flag)
            setattr(contact, flag, value)
            logger.debug(f"Contact {contact_id} {flag}={value}")
            return value

    def _new_outbound(
        self,
        conversation: Conversation,
        content: str,
        body: MessageBody,
        reply_to: Optional[ReplySnapshot] = None,
        is_forwarded: bool = False,
    ) -> Message:
        return Message(
            id=f"{self.settings.temp_id_prefix}{self.id_factory()}",
            conversation_id=conversation.id,
            timestamp=self.clock(),
            is_outbound=True,
            sender=self.settings.user_name,
            sender_id=self.settings.user_id,
            content=content,
            body=body,
            reply_to=reply_to,
            is_forwarded=is_forwarded,
            status=MessageStatus.SENDING,
        )

    def _send(self, conversation: Conversation, content: str, body: MessageBody) -> Message:
        message = self._new_outbound(
            conversation, content, body, reply_to=self.reply_target
        )
        stored = self._store(message)
        self.reply_target = None
        return stored

    def _store(self, message: Message) -> Optional[Message]:
        """Append a message and run the follow-up bookkeeping."""
        stored = self.store.append(message.conversation_id, message)
        if stored is None:
            return None
        conversation = self.conversations_by_id.get(message.conversation_id)
        if conversation is not None and conversation.status == ConversationStatus.NEW:
            conversation.status = ConversationStatus.ACTIVE
        self.apply_expiry(message.conversation_id)
        return stored

    def store_incoming(self, message: Message) -> Optional[Message]:
        """Append a pushed message with the same bookkeeping as a local send.

        Used by the realtime reconciler for messages it did not reconcile.
        Returns None when the message was removed earlier and stays removed.
        """
        with self._operation_lock:
            self.get_conversation(message.conversation_id)
            return self._store(message)

"""Realtime event ingestion.

The realtime collaborator pushes server-side changes (new messages, status
changes, reactions, tags) with at-least-once delivery. Events are validated
into the models below, queued in arrival order and applied one at a time by
RealtimeReconciler, which turns every event into exactly one engine call and
reports whether it was applied, was a duplicate or failed.
"""

import logging
import queue
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from conversations.coordinator import ConversationCoordinator
from conversations.errors import EngineError, NotFoundError
from conversations.message import Message, MessageStatus, Reaction

logger = logging.getLogger(__name__)


class RealtimeEventBase(BaseModel):
    """Fields shared by every realtime event.

    Args:
        event_id: Identifier of the delivery, for logging and results.
        received_at: When the event reached the engine.
    """

    event_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Identifier of the delivery",
    )
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event reached the engine",
    )

    @field_validator("received_at")
    @classmethod
    def validate_timezone_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("Datetime must be timezone-aware (recommend UTC)")
        return v


class MessageCreated(RealtimeEventBase):
    """A message was stored by the backend.

    Args:
        message: The message as stored server-side.
        temp_id: Temporary id of the optimistic send this confirms, if any.
        contact_id: Contact of the conversation, used to create the
            conversation locally when it is not known yet.
    """

    type: Literal["message_created"] = "message_created"
    message: Message
    temp_id: Optional[str] = None
    contact_id: Optional[str] = None


class MessageStatusChanged(RealtimeEventBase):
    type: Literal["message_status_changed"] = "message_status_changed"
    message_id: str
    status: MessageStatus


class ReactionAdded(RealtimeEventBase):
    type: Literal["reaction_added"] = "reaction_added"
    message_id: str
    reaction: Reaction


class ConversationTagged(RealtimeEventBase):
    type: Literal["conversation_tagged"] = "conversation_tagged"
    conversation_id: str
    tag: str = Field(min_length=1)


RealtimeEvent = Annotated[
    Union[MessageCreated, MessageStatusChanged, ReactionAdded, ConversationTagged],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[RealtimeEvent] = TypeAdapter(RealtimeEvent)


def parse_event(payload: dict[str, Any]) -> RealtimeEvent:
    """Validate a raw realtime payload into its event model.

    Raises:
        pydantic.ValidationError: If the payload is malformed or its ``type``
            is unknown.
    """
    return _event_adapter.validate_python(payload)


class EventOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    FAILED = "failed"


class EventResult(BaseModel):
    """What happened to one realtime event.

    Args:
        event_id: Id of the event.
        type: Event type.
        outcome: Applied, duplicate or failed.
        error: Error message when the event failed.
    """

    event_id: str
    type: str
    outcome: EventOutcome
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "type": self.type,
            "outcome": self.outcome.value,
            "error": self.error,
        }


class RealtimeReconciler:
    """Applies realtime events to the engine in arrival order.

    This is the single consumer of realtime events and the only component
    that calls ``MessageStore.reconcile``. Events are applied under the
    coordinator's operation lock, so they are serialized with local actions
    and background sweeps.

    Duplicate deliveries are silent no-ops, and so are deliveries of
    messages the operator deleted or that expired. An event that fails is
    reported and logged; it never stops the processing of later events.

    Attributes:
        coordinator: Engine the events are applied to.
        inbox: FIFO queue of events waiting to be applied.
    """

    def __init__(self, coordinator: ConversationCoordinator) -> None:
        self.coordinator = coordinator
        self.inbox: queue.Queue = queue.Queue()

    @property
    def pending_count(self) -> int:
        return self.inbox.qsize()

    def submit(self, event: Union[RealtimeEvent, dict[str, Any]]) -> RealtimeEvent:
        """Queue an event for processing.

        Args:
            event: Event model or raw payload.

        Returns:
            The queued event.

        Raises:
            pydantic.ValidationError: If a raw payload is malformed.
        """
        if isinstance(event, dict):
            event = parse_event(event)
        self.inbox.put(event)
        return event

    def process_pending(self) -> list[EventResult]:
        """Apply every queued event, oldest first."""
        results = []
        while True:
            try:
                event = self.inbox.get_nowait()
            except queue.Empty:
                break
            try:
                results.append(self.apply(event))
            finally:
                self.inbox.task_done()
        return results

    def apply(self, event: RealtimeEvent) -> EventResult:
        """Apply one event immediately.

        Args:
            event: Event to apply.

        Returns:
            The outcome of the event.
        """
        handlers = {
            MessageCreated: self._message_created,
            MessageStatusChanged: self._status_changed,
            ReactionAdded: self._reaction_added,
            ConversationTagged: self._conversation_tagged,
        }
        handler = handlers[type(event)]

        try:
            with self.coordinator.operation_lock:
                duplicate = handler(event)
        except (EngineError, ValueError) as e:
            logger.warning(f"Realtime event {event.event_id} ({event.type}) failed: {e}")
            return EventResult(
                event_id=event.event_id,
                type=event.type,
                outcome=EventOutcome.FAILED,
                error=str(e),
            )

        if duplicate:
            logger.debug(f"Duplicate realtime event {event.event_id} ({event.type})")
        return EventResult(
            event_id=event.event_id,
            type=event.type,
            outcome=EventOutcome.DUPLICATE if duplicate else EventOutcome.APPLIED,
        )

    # Each handler returns True when the event changed nothing.

    def _message_created(self, event: MessageCreated) -> bool:
        coordinator = self.coordinator
        store = coordinator.store
        message = event.message

        if store.was_removed(message.id):
            return True
        if message.conversation_id not in coordinator.conversations_by_id:
            if event.contact_id is None:
                raise NotFoundError("conversation", message.conversation_id)
            coordinator.start_conversation(
                event.contact_id, conversation_id=message.conversation_id
            )

        if event.temp_id is not None:
            if store.was_reconciled(event.temp_id):
                return True
            try:
                confirmed = store.reconcile(event.temp_id, message)
            except NotFoundError:
                # The optimistic send was never stored by this engine.
                logger.debug(
                    f"No pending message {event.temp_id}; storing {message.id} directly"
                )
            else:
                if confirmed is None:
                    return True
                coordinator.apply_expiry(message.conversation_id)
                return False

        if store.contains(message.id):
            return True
        return coordinator.store_incoming(message) is None

    def _status_changed(self, event: MessageStatusChanged) -> bool:
        store = self.coordinator.store
        message = store.get(event.message_id)
        if message.status == event.status:
            return True
        store.update_status(event.message_id, event.status)
        self.coordinator.apply_expiry(message.conversation_id)
        return False

    def _reaction_added(self, event: ReactionAdded) -> bool:
        store = self.coordinator.store
        message = store.get(event.message_id)
        for reaction in message.reactions:
            if (
                reaction.user_id == event.reaction.user_id
                and reaction.emoji == event.reaction.emoji
            ):
                return True
        store.add_reaction(event.message_id, event.reaction)
        self.coordinator.apply_expiry(message.conversation_id)
        return False

    def _conversation_tagged(self, event: ConversationTagged) -> bool:
        conversation = self.coordinator.get_conversation(event.conversation_id)
        if event.tag.strip() in conversation.tags:
            return True
        self.coordinator.tag_conversation(event.conversation_id, event.tag)
        return False


class ReconcilerLoop:
    """Background thread draining a reconciler's inbox.

    For collaborators that push events from another thread. Events are
    applied as soon as they arrive; ``stop()`` returns within one poll
    interval.

    Attributes:
        reconciler: Reconciler whose inbox is drained.
        poll_interval: Seconds to wait for an event before rechecking stop
            (defaults to the coordinator's ``reconciler_poll_seconds``).
        is_running: Whether the loop thread is active.
    """

    def __init__(
        self,
        reconciler: RealtimeReconciler,
        poll_interval: Optional[float] = None,
    ) -> None:
        if poll_interval is None:
            poll_interval = reconciler.coordinator.settings.reconciler_poll_seconds
        if poll_interval <= 0:
            raise ValueError("Poll interval must be positive")
        self.reconciler = reconciler
        self.poll_interval = poll_interval

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.is_running = False

    def start(self) -> None:
        """Start the consumer thread.

        Raises:
            RuntimeError: If the loop is already running.
        """
        if self.is_running:
            raise RuntimeError("Reconciler loop is already running")

        self.is_running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()

        logger.info("ReconcilerLoop started")

    def stop(self) -> None:
        if not self.is_running:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=1.0)

        self.is_running = False
        self._thread = None

        logger.info("ReconcilerLoop stopped")

    def _run_loop(self) -> None:
        inbox = self.reconciler.inbox
        while not self._stop_event.is_set():
            try:
                event = inbox.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            try:
                self.reconciler.apply(event)
            except Exception as e:
                logger.error(f"Error applying realtime event: {e}", exc_info=True)
            finally:
                inbox.task_done()

"""Disappearing messages: time-based expiry of old messages.

Expiry is an explicit ``sweep(now)`` operation. The coordinator runs it for a
conversation after every change to that conversation's messages, so an
expired message is never observable. SweepLoop can additionally run a sweep
on a background thread as a safety net.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from conversations.message import Message, MessageStatus
from conversations.message_store import MessageStore

logger = logging.getLogger(__name__)


class DisappearingSettings(BaseModel):
    """Expiry configuration for one conversation (or the global default).

    Args:
        enabled: Whether messages expire.
        timeout_hours: Age after which a message is removed.
    """

    enabled: bool = Field(default=False, description="Whether messages expire")
    timeout_hours: float = Field(
        default=24.0,
        gt=0,
        description="Age in hours after which a message is removed",
    )

    @property
    def timeout(self) -> timedelta:
        return timedelta(hours=self.timeout_hours)

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "timeout_hours": self.timeout_hours}


class DisappearingMessagePolicy(BaseModel):
    """Removes messages older than a conversation's configured timeout.

    Conversations without an override use ``default``. Messages still in
    ``sending`` status are spared while younger than ``grace_period`` so a
    sweep never pulls a message out from under an in-flight send.

    Sweeping is idempotent: for a fixed ``now`` a second sweep finds nothing
    left to remove.

    Args:
        store: Message store to sweep.
        default: Settings for conversations without an override.
        overrides: Per-conversation settings.
        grace_period: Minimum age before a ``sending`` message may expire.
    """

    store: MessageStore
    default: DisappearingSettings = Field(default_factory=DisappearingSettings)
    overrides: dict[str, DisappearingSettings] = Field(default_factory=dict)
    grace_period: timedelta = Field(default=timedelta(seconds=30))

    def settings_for(self, conversation_id: str) -> DisappearingSettings:
        """Effective settings of a conversation."""
        return self.overrides.get(conversation_id, self.default)

    def configure(
        self,
        conversation_id: str,
        enabled: bool,
        timeout_hours: Optional[float] = None,
    ) -> DisappearingSettings:
        """Set the expiry settings of one conversation.

        Args:
            conversation_id: Conversation to configure.
            enabled: Whether messages expire.
            timeout_hours: New timeout; keeps the current one when omitted.

        Returns:
            The settings now in effect.
        """
        current = self.settings_for(conversation_id)
        settings = DisappearingSettings(
            enabled=enabled,
            timeout_hours=current.timeout_hours if timeout_hours is None else timeout_hours,
        )
        self.overrides[conversation_id] = settings
        logger.info(
            f"Disappearing messages {'enabled' if enabled else 'disabled'} for "
            f"{conversation_id} ({settings.timeout_hours}h)"
        )
        return settings

    def configure_default(
        self,
        enabled: bool,
        timeout_hours: Optional[float] = None,
    ) -> DisappearingSettings:
        """Set the settings used by conversations without an override."""
        self.default = DisappearingSettings(
            enabled=enabled,
            timeout_hours=(
                self.default.timeout_hours if timeout_hours is None else timeout_hours
            ),
        )
        logger.info(
            f"Default disappearing messages {'enabled' if enabled else 'disabled'} "
            f"({self.default.timeout_hours}h)"
        )
        return self.default

    def reset(self, conversation_id: str) -> None:
        """Drop a conversation's override so it follows the default again."""
        self.overrides.pop(conversation_id, None)

    def enabled_conversations(self) -> list[str]:
        return [
            conversation_id
            for conversation_id in self.store.conversation_ids()
            if self.settings_for(conversation_id).enabled
        ]

    def any_enabled(self) -> bool:
        """Whether any conversation can currently have expiring messages."""
        return self.default.enabled or any(s.enabled for s in self.overrides.values())

    def is_expired(
        self,
        message: Message,
        now: datetime,
        settings: DisappearingSettings,
    ) -> bool:
        """Check a single message against the cutoff.

        Args:
            message: Message to check.
            now: Evaluation instant.
            settings: Settings of the message's conversation.

        Returns:
            True if the message should be removed.
        """
        if not settings.enabled:
            return False
        if message.timestamp >= now - settings.timeout:
            return False
        if (
            message.status == MessageStatus.SENDING
            and now - message.timestamp < self.grace_period
        ):
            return False
        return True

    def sweep_conversation(self, conversation_id: str, now: datetime) -> list[Message]:
        """Remove the expired messages of one conversation.

        Args:
            conversation_id: Conversation to sweep.
            now: Evaluation instant (timezone-aware).

        Returns:
            The removed messages, oldest first.
        """
        settings = self.settings_for(conversation_id)
        if not settings.enabled:
            return []

        expired = [
            message
            for message in self.store.messages(conversation_id)
            if self.is_expired(message, now, settings)
        ]
        for message in expired:
            self.store.remove(message.id)

        if expired:
            logger.debug(
                f"Expired {len(expired)} message(s) in {conversation_id}"
            )
        return expired

    def sweep(self, now: datetime) -> list[Message]:
        """Remove expired messages from every enabled conversation.

        Args:
            now: Evaluation instant (timezone-aware).

        Returns:
            All removed messages.
        """
        removed: list[Message] = []
        for conversation_id in self.enabled_conversations():
            removed.extend(self.sweep_conversation(conversation_id, now))
        return removed


class SweepLoop:
    """Background thread that periodically runs a sweep.

    Holds no expiry logic of its own: every ``interval`` seconds it calls
    ``run_sweep``. Errors raised by a sweep are logged and the loop keeps
    going. ``stop()`` wakes the thread immediately instead of waiting out
    the interval.

    Attributes:
        run_sweep: Callable performing one sweep.
        interval: Seconds between sweeps.
        is_running: Whether the loop thread is active.
    """

    def __init__(self, run_sweep: Callable[[], Any], interval: float = 60.0) -> None:
        """Initialize sweep loop.

        Args:
            run_sweep: Callable performing one sweep.
            interval: Seconds between sweeps (must be > 0).

        Raises:
            ValueError: If interval is not positive.
        """
        if interval <= 0:
            raise ValueError("Sweep interval must be positive")
        self.run_sweep = run_sweep
        self.interval = interval

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.is_running = False

    def start(self) -> None:
        """Start the sweep thread.

        Raises:
            RuntimeError: If the loop is already running.
        """
        if self.is_running:
            raise RuntimeError("Sweep loop is already running")

        self.is_running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()

        logger.info(f"SweepLoop started (every {self.interval}s)")

    def stop(self) -> None:
        """Stop the sweep thread; safe to call when not running."""
        if not self.is_running:
            return

        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)

        self.is_running = False
        self._thread = None

        logger.info("SweepLoop stopped")

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.run_sweep()
            except Exception as e:
                logger.error(f"Error during disappearing sweep: {e}", exc_info=True)

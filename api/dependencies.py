"""Dependency injection providers for the FastAPI application.

This module defines dependencies that can be injected into route handlers,
providing access to the shared ConversationCoordinator and its
RealtimeReconciler.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends

from conversations.config import EngineSettings, get_settings
from conversations.coordinator import ConversationCoordinator
from conversations.realtime import RealtimeReconciler

logger = logging.getLogger(__name__)


# One engine per process; tests swap it through app.dependency_overrides
_coordinator: Optional[ConversationCoordinator] = None
_reconciler: Optional[RealtimeReconciler] = None


def get_coordinator() -> ConversationCoordinator:
    """Get the shared ConversationCoordinator instance.

    Returns:
        The shared coordinator.

    Raises:
        RuntimeError: If the engine hasn't been initialized yet.
    """
    if _coordinator is None:
        raise RuntimeError(
            "ConversationCoordinator not initialized. Call initialize_engine() first."
        )
    return _coordinator


def get_reconciler(
    coordinator: Annotated[ConversationCoordinator, Depends(get_coordinator)],
) -> RealtimeReconciler:
    """Get the reconciler bound to the current coordinator.

    A new reconciler is created whenever the coordinator changes, so an
    overridden coordinator in tests gets its own reconciler.
    """
    global _reconciler

    if _reconciler is None or _reconciler.coordinator is not coordinator:
        _reconciler = RealtimeReconciler(coordinator)
    return _reconciler


def initialize_engine(settings: Optional[EngineSettings] = None) -> ConversationCoordinator:
    """Create the shared coordinator.

    Called once when the FastAPI app starts up. Starts the background
    disappearing sweep when disappearing messages are enabled by default.

    Args:
        settings: Engine settings (loaded from the environment if omitted).

    Returns:
        The newly created coordinator.
    """
    global _coordinator, _reconciler

    settings = settings or get_settings()
    _coordinator = ConversationCoordinator(settings=settings)
    _reconciler = RealtimeReconciler(_coordinator)
    _coordinator.start_background_sweep()

    logger.info(f"Engine initialized for operator {settings.user_id}")
    return _coordinator


def shutdown_engine() -> None:
    """Stop background loops and drop the shared coordinator."""
    global _coordinator, _reconciler

    if _coordinator is not None:
        _coordinator.stop_background_sweep()

    _coordinator = None
    _reconciler = None


CoordinatorDep = Annotated[ConversationCoordinator, Depends(get_coordinator)]
ReconcilerDep = Annotated[RealtimeReconciler, Depends(get_reconciler)]

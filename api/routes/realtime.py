"""Realtime endpoints.

The realtime collaborator pushes server-side changes here. Events are queued
in the reconciler in request order and applied before the response is sent,
so the caller sees the outcome of every event it delivered.
"""

from fastapi import APIRouter

from api.dependencies import ReconcilerDep
from api.models import EventBatchResponse, RealtimeEventsRequest
from conversations.realtime import EventOutcome

router = APIRouter(
    prefix="/realtime",
    tags=["realtime"],
)


@router.post("/events", response_model=EventBatchResponse)
async def push_events(
    request: RealtimeEventsRequest, reconciler: ReconcilerDep
) -> EventBatchResponse:
    """Apply a batch of realtime events.

    Duplicate deliveries are reported as ``duplicate`` and change nothing.
    An event that fails is reported as ``failed`` without affecting the
    events after it.

    Args:
        request: Events in arrival order.
        reconciler: The realtime reconciler dependency.

    Returns:
        Per-event results with outcome counts.
    """
    for event in request.events:
        reconciler.submit(event)
    results = reconciler.process_pending()

    def count(outcome: EventOutcome) -> int:
        return sum(1 for result in results if result.outcome == outcome)

    return EventBatchResponse(
        results=results,
        applied_count=count(EventOutcome.APPLIED),
        duplicate_count=count(EventOutcome.DUPLICATE),
        failed_count=count(EventOutcome.FAILED),
    )

"""Disappearing message endpoints that are not tied to one conversation."""

from fastapi import APIRouter

from api.dependencies import CoordinatorDep
from api.models import ActionResponse, DisappearingRequest, SweepRequest, SweepResponse

router = APIRouter(
    prefix="/disappearing",
    tags=["disappearing"],
)


@router.get("")
async def get_default_settings(coordinator: CoordinatorDep) -> dict:
    return {
        "default": coordinator.policy.default.to_dict(),
        "background_sweep_running": coordinator.background_sweep_running,
    }


@router.put("", response_model=ActionResponse)
async def configure_default(
    request: DisappearingRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    """Set the settings used by conversations without their own override."""
    settings = coordinator.configure_disappearing(
        None, request.enabled, request.timeout_hours
    )
    if settings.enabled:
        coordinator.start_background_sweep()
    return ActionResponse(message="Default disappearing settings updated", data=settings.to_dict())


@router.post("/sweep", response_model=SweepResponse)
async def sweep(request: SweepRequest, coordinator: CoordinatorDep) -> SweepResponse:
    """Remove every expired message now."""
    removed = coordinator.sweep_expired(request.now)
    return SweepResponse(
        removed_count=len(removed),
        removed_ids=[message.id for message in removed],
    )

"""Message endpoints.

Provides REST API endpoints for actions on a single message: reactions,
forwarding, deletion, and the send-failure and retry calls the backend
collaborator uses for optimistic sends.
"""

from fastapi import APIRouter

from api.dependencies import CoordinatorDep
from api.models import ActionResponse, ForwardRequest, ReactionRequest

router = APIRouter(
    prefix="/messages",
    tags=["messages"],
)


@router.get("/{message_id}")
async def get_message(message_id: str, coordinator: CoordinatorDep) -> dict:
    """Get a message by temporary or server id."""
    return coordinator.store.get(message_id).to_dict()


@router.delete("/{message_id}", response_model=ActionResponse)
async def delete_message(message_id: str, coordinator: CoordinatorDep) -> ActionResponse:
    removed = coordinator.delete_message(message_id)
    return ActionResponse(message=f"Message {removed.id} deleted", data=removed.to_dict())


@router.post("/{message_id}/reactions", response_model=ActionResponse)
async def add_reaction(
    message_id: str, request: ReactionRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    """React to a message, replacing the user's earlier reaction."""
    message = coordinator.add_reaction(
        message_id, request.emoji, user_id=request.user_id, user_name=request.user_name
    )
    return ActionResponse(message=f"Reacted to {message.id}", data=message.to_dict())


@router.delete("/{message_id}/reactions", response_model=ActionResponse)
async def remove_reaction(
    message_id: str, coordinator: CoordinatorDep, user_id: str | None = None
) -> ActionResponse:
    message = coordinator.remove_reaction(message_id, user_id)
    return ActionResponse(message=f"Reaction removed from {message.id}", data=message.to_dict())


@router.post("/{message_id}/forward", response_model=ActionResponse)
async def forward_message(
    message_id: str, request: ForwardRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    """Forward a copy of the message to another conversation."""
    message = coordinator.forward_message(message_id, request.target_conversation_id)
    return ActionResponse(message=f"Message {message.id} sending", data=message.to_dict())


@router.post("/{message_id}/failed", response_model=ActionResponse)
async def mark_failed(message_id: str, coordinator: CoordinatorDep) -> ActionResponse:
    """Record that the backend could not deliver an optimistic send."""
    message = coordinator.mark_failed(message_id)
    return ActionResponse(message=f"Message {message.id} failed", data=message.to_dict())


@router.post("/{message_id}/retry", response_model=ActionResponse)
async def retry_message(message_id: str, coordinator: CoordinatorDep) -> ActionResponse:
    message = coordinator.retry_message(message_id)
    return ActionResponse(message=f"Message {message.id} sending", data=message.to_dict())

"""Conversation endpoints.

Provides REST API endpoints for the conversation list (filtered and grouped),
reading a conversation's messages grouped by date, sending, and managing
conversation metadata, the reply target, the composer attachment and
disappearing message settings.
"""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from api.dependencies import CoordinatorDep
from api.models import (
    ActionResponse,
    AssignRequest,
    ConversationListResponse,
    ConversationStatusRequest,
    DateGroupResponse,
    DisappearingRequest,
    MessageListResponse,
    ReplyTargetRequest,
    SendMessageRequest,
    SendVoiceRequest,
    TagRequest,
)
from conversations.contact import ChatType
from conversations.conversation import ConversationView
from conversations.coordinator import ConversationCoordinator
from conversations.filters import (
    ConversationFilter,
    active_filter_count,
    group_conversations,
)
from conversations.message import Attachment

router = APIRouter(
    prefix="/conversations",
    tags=["conversations"],
)


class StartConversationRequest(BaseModel):
    """Request model for opening a conversation with a contact.

    Attributes:
        contact_id: Contact to talk to.
        chat_type: Conversation type (defaults to the contact's type).
        conversation_id: Backend-assigned id, if already known.
    """

    contact_id: str = Field(description="Contact to talk to")
    chat_type: Optional[ChatType] = Field(default=None, description="Conversation type")
    conversation_id: Optional[str] = Field(default=None, description="Backend id")


def _list_response(
    coordinator: ConversationCoordinator,
    views: list[ConversationView],
    criteria: ConversationFilter,
) -> ConversationListResponse:
    groups = group_conversations(views)
    return ConversationListResponse(
        conversations=[view.to_dict() for view in views],
        groups={name: [view.id for view in members] for name, members in groups.items()},
        total_count=len(views),
        active_filter_count=active_filter_count(criteria),
        total_unread=coordinator.total_unread(),
    )


@router.get("", response_model=ConversationListResponse)
async def list_conversations(coordinator: CoordinatorDep) -> ConversationListResponse:
    """List visible conversations, most recent activity first."""
    criteria = ConversationFilter()
    return _list_response(coordinator, coordinator.filtered_conversations(criteria), criteria)


@router.post("/query", response_model=ConversationListResponse)
async def query_conversations(
    request: ConversationFilter, coordinator: CoordinatorDep
) -> ConversationListResponse:
    """Filter the conversation list.

    All criteria combine with AND; blank criteria are ignored.

    Args:
        request: Filter criteria.
        coordinator: The conversation coordinator dependency.

    Returns:
        Matching conversations with their Pinned/Active/Others sections and
        the number of criteria in effect.
    """
    return _list_response(coordinator, coordinator.filtered_conversations(request), request)


@router.post("", response_model=ActionResponse, status_code=status.HTTP_201_CREATED)
async def start_conversation(
    request: StartConversationRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    """Open the contact's conversation, creating it on first use."""
    conversation = coordinator.start_conversation(
        request.contact_id,
        chat_type=request.chat_type,
        conversation_id=request.conversation_id,
    )
    return ActionResponse(
        message=f"Conversation {conversation.id} ready",
        data=coordinator.conversation_view(conversation.id).to_dict(),
    )


@router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, coordinator: CoordinatorDep) -> dict:
    return coordinator.conversation_view(conversation_id).to_dict()


@router.delete("/{conversation_id}", response_model=ActionResponse)
async def delete_conversation(
    conversation_id: str, coordinator: CoordinatorDep
) -> ActionResponse:
    conversation = coordinator.delete_conversation(conversation_id)
    return ActionResponse(
        message=f"Conversation {conversation_id} deleted", data=conversation.to_dict()
    )


@router.get("/{conversation_id}/messages", response_model=MessageListResponse)
async def get_messages(
    conversation_id: str,
    coordinator: CoordinatorDep,
    tz_offset_minutes: int = Query(
        default=0, ge=-14 * 60, le=14 * 60, description="Viewer's offset from UTC"
    ),
) -> MessageListResponse:
    """Get a conversation's messages bucketed by calendar date.

    Each message carries ``is_sequential`` and ``show_sender`` flags for
    collapsing consecutive messages from the same sender.
    """
    groups = coordinator.grouped_messages(
        conversation_id, tz_offset=timedelta(minutes=tz_offset_minutes)
    )
    return MessageListResponse(
        conversation_id=conversation_id,
        groups=[
            DateGroupResponse(
                date=group.day.isoformat(),
                messages=[
                    {
                        **row.message.to_dict(),
                        "is_sequential": row.is_sequential,
                        "show_sender": row.show_sender,
                    }
                    for row in group.rows
                ],
            )
            for group in groups
        ],
        total_count=sum(len(group.rows) for group in groups),
        unread_count=coordinator.unread_count(conversation_id),
    )


@router.post("/{conversation_id}/messages", response_model=ActionResponse)
async def send_message(
    conversation_id: str, request: SendMessageRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    """Optimistically send a text or media message.

    The message is stored with status ``sending`` and a temporary id; the
    backend confirms it later through the realtime endpoint.
    """
    message = coordinator.send_message(conversation_id, request.content, request.attachment)
    return ActionResponse(message=f"Message {message.id} sending", data=message.to_dict())


@router.post("/{conversation_id}/voice", response_model=ActionResponse)
async def send_voice_message(
    conversation_id: str, request: SendVoiceRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    message = coordinator.send_voice_message(
        conversation_id, request.attachment, request.duration_seconds
    )
    return ActionResponse(message=f"Message {message.id} sending", data=message.to_dict())


@router.post("/{conversation_id}/read", response_model=ActionResponse)
async def mark_read(conversation_id: str, coordinator: CoordinatorDep) -> ActionResponse:
    changed = coordinator.mark_read(conversation_id)
    return ActionResponse(
        message=f"Marked {changed} message(s) read",
        data={"conversation_id": conversation_id, "marked_count": changed},
    )


@router.post("/{conversation_id}/select", response_model=ActionResponse)
async def select_conversation(
    conversation_id: str, coordinator: CoordinatorDep
) -> ActionResponse:
    coordinator.select_conversation(conversation_id)
    return ActionResponse(
        message=f"Conversation {conversation_id} selected",
        data=coordinator.conversation_view(conversation_id).to_dict(),
    )


@router.post("/{conversation_id}/clear", response_model=ActionResponse)
async def clear_chat(conversation_id: str, coordinator: CoordinatorDep) -> ActionResponse:
    removed = coordinator.clear_chat(conversation_id)
    return ActionResponse(
        message=f"Cleared {removed} message(s)",
        data={"conversation_id": conversation_id, "removed_count": removed},
    )


# ===== Metadata =====


@router.post("/{conversation_id}/tags", response_model=ActionResponse)
async def tag_conversation(
    conversation_id: str, request: TagRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    conversation = coordinator.tag_conversation(conversation_id, request.tag)
    return ActionResponse(message=f"Tagged {conversation_id}", data=conversation.to_dict())


@router.delete("/{conversation_id}/tags/{tag}", response_model=ActionResponse)
async def untag_conversation(
    conversation_id: str, tag: str, coordinator: CoordinatorDep
) -> ActionResponse:
    conversation = coordinator.untag_conversation(conversation_id, tag)
    return ActionResponse(message=f"Untagged {conversation_id}", data=conversation.to_dict())


@router.put("/{conversation_id}/assignee", response_model=ActionResponse)
async def assign_conversation(
    conversation_id: str, request: AssignRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    conversation = coordinator.assign_conversation(conversation_id, request.assignee)
    return ActionResponse(
        message=f"Conversation {conversation_id} assigned to {conversation.assigned_to}",
        data=conversation.to_dict(),
    )


@router.post("/{conversation_id}/pin", response_model=ActionResponse)
async def toggle_pin(conversation_id: str, coordinator: CoordinatorDep) -> ActionResponse:
    pinned = coordinator.toggle_pin(conversation_id)
    return ActionResponse(
        message=f"Conversation {conversation_id} {'pinned' if pinned else 'unpinned'}",
        data={"conversation_id": conversation_id, "is_pinned": pinned},
    )


@router.put("/{conversation_id}/status", response_model=ActionResponse)
async def set_conversation_status(
    conversation_id: str, request: ConversationStatusRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    conversation = coordinator.set_conversation_status(conversation_id, request.status)
    return ActionResponse(
        message=f"Conversation {conversation_id} is {conversation.status.value}",
        data=conversation.to_dict(),
    )


# ===== Composer =====


@router.put("/{conversation_id}/reply", response_model=ActionResponse)
async def set_reply_target(
    conversation_id: str, request: ReplyTargetRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    """Choose the message the next send in this conversation replies to.

    Raises:
        ValueError: If the message belongs to another conversation.
    """
    coordinator.get_conversation(conversation_id)
    message = coordinator.store.get(request.message_id)
    if message.conversation_id != conversation_id:
        raise ValueError(
            f"Message {message.id} does not belong to conversation {conversation_id}"
        )
    snapshot = coordinator.set_reply_target(message)
    return ActionResponse(message=f"Replying to {message.id}", data=snapshot.to_dict())


@router.delete("/{conversation_id}/reply", response_model=ActionResponse)
async def cancel_reply(conversation_id: str, coordinator: CoordinatorDep) -> ActionResponse:
    coordinator.get_conversation(conversation_id)
    coordinator.cancel_reply()
    return ActionResponse(message="Reply cancelled")


@router.put("/{conversation_id}/attachment", response_model=ActionResponse)
async def stage_attachment(
    conversation_id: str, request: Attachment, coordinator: CoordinatorDep
) -> ActionResponse:
    """Hold an uploaded attachment for the next send."""
    coordinator.get_conversation(conversation_id)
    coordinator.stage_attachment(request)
    return ActionResponse(message="Attachment staged", data=request.to_dict())


@router.delete("/{conversation_id}/attachment", response_model=ActionResponse)
async def cancel_attachment(
    conversation_id: str, coordinator: CoordinatorDep
) -> ActionResponse:
    coordinator.get_conversation(conversation_id)
    coordinator.cancel_attachment()
    return ActionResponse(message="Attachment cancelled")


# ===== Disappearing Messages =====


@router.get("/{conversation_id}/disappearing")
async def get_disappearing(conversation_id: str, coordinator: CoordinatorDep) -> dict:
    coordinator.get_conversation(conversation_id)
    return coordinator.policy.settings_for(conversation_id).to_dict()


@router.put("/{conversation_id}/disappearing", response_model=ActionResponse)
async def configure_disappearing(
    conversation_id: str, request: DisappearingRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    """Enable or disable disappearing messages for one conversation.

    Messages already past the new timeout are removed immediately.
    """
    settings = coordinator.configure_disappearing(
        conversation_id, request.enabled, request.timeout_hours
    )
    if settings.enabled:
        coordinator.start_background_sweep()
    return ActionResponse(
        message=f"Disappearing messages {'enabled' if settings.enabled else 'disabled'}",
        data=settings.to_dict(),
    )

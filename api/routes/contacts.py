"""Contact endpoints.

Provides REST API endpoints for registering contacts, listing and filtering
the contact sidebar, flipping contact flags and starting a conversation by
sending the first message.
"""

from typing import Literal

from fastapi import APIRouter, status

from api.dependencies import CoordinatorDep
from api.models import (
    ActionResponse,
    ContactListResponse,
    CreateContactRequest,
    SendMessageRequest,
)
from conversations.contact import Contact
from conversations.filters import ConversationFilter, filter_contacts

router = APIRouter(
    prefix="/contacts",
    tags=["contacts"],
)

_TOGGLES = {
    "archive": ("toggle_archive", "is_archived"),
    "star": ("toggle_star", "is_starred"),
    "block": ("toggle_block", "is_blocked"),
    "mute": ("toggle_mute", "is_muted"),
}


@router.post("", response_model=ActionResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    request: CreateContactRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    """Register a contact created by the backend.

    Args:
        request: Contact details.
        coordinator: The conversation coordinator dependency.

    Returns:
        Action response carrying the stored contact.
    """
    contact = coordinator.add_contact(
        Contact(
            id=request.id or coordinator.id_factory(),
            name=request.name,
            phone=request.phone,
            type=request.type,
            tags=set(request.tags),
            avatar_url=request.avatar_url,
            is_online=request.is_online,
        )
    )
    return ActionResponse(message=f"Contact {contact.id} created", data=contact.to_dict())


@router.get("", response_model=ContactListResponse)
async def list_contacts(coordinator: CoordinatorDep) -> ContactListResponse:
    """List every contact, including archived and blocked ones."""
    contacts = [contact.to_dict() for contact in coordinator.contacts()]
    return ContactListResponse(contacts=contacts, total_count=len(contacts))


@router.post("/query", response_model=ContactListResponse)
async def query_contacts(
    request: ConversationFilter, coordinator: CoordinatorDep
) -> ContactListResponse:
    """Filter the contact sidebar by chat type, name search and tag.

    Args:
        request: Filter criteria; criteria that need a conversation are ignored.
        coordinator: The conversation coordinator dependency.

    Returns:
        Matching contacts in registration order.
    """
    contacts = [c.to_dict() for c in filter_contacts(coordinator.contacts(), request)]
    return ContactListResponse(contacts=contacts, total_count=len(contacts))


@router.get("/{contact_id}")
async def get_contact(contact_id: str, coordinator: CoordinatorDep) -> dict:
    return coordinator.get_contact(contact_id).to_dict()


@router.post("/{contact_id}/select", response_model=ActionResponse)
async def select_contact(contact_id: str, coordinator: CoordinatorDep) -> ActionResponse:
    """Select a contact and open its conversation if one exists."""
    conversation = coordinator.select_contact(contact_id)
    return ActionResponse(
        message=f"Contact {contact_id} selected",
        data={
            "contact_id": contact_id,
            "conversation": (
                coordinator.conversation_view(conversation.id).to_dict()
                if conversation
                else None
            ),
        },
    )


@router.post("/{contact_id}/messages", response_model=ActionResponse)
async def send_to_contact(
    contact_id: str, request: SendMessageRequest, coordinator: CoordinatorDep
) -> ActionResponse:
    """Send a message to a contact, creating the conversation if needed."""
    message = coordinator.send_to_contact(contact_id, request.content, request.attachment)
    return ActionResponse(message=f"Message {message.id} sending", data=message.to_dict())


@router.post("/{contact_id}/{flag}", response_model=ActionResponse)
async def toggle_contact_flag(
    contact_id: str,
    flag: Literal["archive", "star", "block", "mute"],
    coordinator: CoordinatorDep,
) -> ActionResponse:
    """Flip one of the contact's archive, star, block or mute flags.

    Returns:
        Action response with the flag's new value.
    """
    method, field = _TOGGLES[flag]
    value = getattr(coordinator, method)(contact_id)
    return ActionResponse(
        message=f"Contact {contact_id} {field}={value}",
        data={"contact_id": contact_id, field: value},
    )

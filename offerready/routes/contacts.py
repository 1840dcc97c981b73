"""
Contact API Routes
CRUD over the user's contacts and explicit stage transitions.
"""

from fastapi import APIRouter, Depends

from offerready.auth.verify import current_user
from offerready.errors import NotFoundError
from offerready.models.api.common_response import DeletedResponse
from offerready.models.api.contact_request import (
    CreateContactRequest,
    UpdateContactRequest,
    UpdateStageRequest,
)
from offerready.models.domain._types import is_row_id
from offerready.models.domain.billing_domain import AuthenticatedUser
from offerready.models.domain.contact_domain import Contact
from offerready.repositories.contact_repository import ContactRepository
from offerready.services import cached_reads

router = APIRouter(prefix="/contacts", tags=["contacts"])


def contact_path_id(contact_id: str) -> str:
    """Ids that cannot name a row are reported as missing contacts."""
    if not is_row_id(contact_id):
        raise NotFoundError("Contact not found")
    return contact_id


@router.get("", response_model=list[Contact])
async def list_contacts(user: AuthenticatedUser = Depends(current_user)):
    """Contacts of the user, newest first."""
    return await cached_reads.contacts_for(user.user_id)


@router.post("", response_model=Contact, status_code=201)
async def create_contact(
    request: CreateContactRequest, user: AuthenticatedUser = Depends(current_user)
):
    return await ContactRepository.create(user.user_id, request.model_dump(exclude_unset=True))


@router.get("/{contact_id}", response_model=Contact)
async def get_contact(
    user: AuthenticatedUser = Depends(current_user),
    contact_id: str = Depends(contact_path_id),
):
    return await cached_reads.contact_for(user.user_id, contact_id)


@router.patch("/{contact_id}", response_model=Contact)
async def update_contact(
    request: UpdateContactRequest,
    user: AuthenticatedUser = Depends(current_user),
    contact_id: str = Depends(contact_path_id),
):
    return await ContactRepository.update(
        user.user_id, contact_id, request.model_dump(exclude_unset=True)
    )


@router.delete("/{contact_id}", response_model=DeletedResponse)
async def delete_contact(contact_id: str, user: AuthenticatedUser = Depends(current_user)):
    # Deleting a contact that cannot exist succeeds like any other missing contact
    if is_row_id(contact_id):
        await ContactRepository.delete(user.user_id, contact_id)
    return DeletedResponse()


@router.post("/{contact_id}/stage", response_model=Contact)
async def update_contact_stage(
    request: UpdateStageRequest,
    user: AuthenticatedUser = Depends(current_user),
    contact_id: str = Depends(contact_path_id),
):
    return await ContactRepository.update_stage(
        user.user_id,
        contact_id,
        request.stage,
        delete_scheduled_call=request.delete_scheduled_call,
    )

"""
Call Event API Routes
Scheduled calls and their status transitions.
"""

from fastapi import APIRouter, Depends, Query

from offerready.auth.verify import current_user
from offerready.errors import NotFoundError
from offerready.models.api.common_response import DeletedResponse
from offerready.models.api.contact_request import (
    CreateCallEventRequest,
    UpdateCallEventRequest,
    UpdateCallStatusRequest,
)
from offerready.models.domain._types import is_row_id
from offerready.models.domain.billing_domain import AuthenticatedUser
from offerready.models.domain.contact_domain import CallEvent
from offerready.repositories.call_event_repository import (
    UPCOMING_DEFAULT_DAYS,
    CallEventRepository,
)
from offerready.services import cached_reads

router = APIRouter(prefix="/call-events", tags=["call-events"])


def call_event_path_id(call_event_id: str) -> str:
    if not is_row_id(call_event_id):
        raise NotFoundError("Call event not found")
    return call_event_id


@router.get("", response_model=list[CallEvent])
async def list_call_events(user: AuthenticatedUser = Depends(current_user)):
    return await cached_reads.call_events_for(user.user_id)


@router.get("/upcoming", response_model=list[CallEvent])
async def upcoming_call_events(
    days: int = Query(UPCOMING_DEFAULT_DAYS, ge=1, le=90, description="Window in days"),
    user: AuthenticatedUser = Depends(current_user),
):
    return await cached_reads.upcoming_calls_for(user.user_id, days)


@router.post("", response_model=CallEvent, status_code=201)
async def create_call_event(
    request: CreateCallEventRequest, user: AuthenticatedUser = Depends(current_user)
):
    fields = request.model_dump(exclude_unset=True, exclude={"update_contact_stage"})
    return await CallEventRepository.create(
        user.user_id, fields, update_contact_stage=request.update_contact_stage
    )


@router.patch("/{call_event_id}", response_model=CallEvent)
async def update_call_event(
    request: UpdateCallEventRequest,
    user: AuthenticatedUser = Depends(current_user),
    call_event_id: str = Depends(call_event_path_id),
):
    return await CallEventRepository.update(
        user.user_id, call_event_id, request.model_dump(exclude_unset=True)
    )


@router.post("/{call_event_id}/status", response_model=CallEvent)
async def update_call_event_status(
    request: UpdateCallStatusRequest,
    user: AuthenticatedUser = Depends(current_user),
    call_event_id: str = Depends(call_event_path_id),
):
    return await CallEventRepository.update_status(
        user.user_id,
        call_event_id,
        request.status,
        update_contact_stage=request.update_contact_stage,
    )


@router.delete("/{call_event_id}", response_model=DeletedResponse)
async def delete_call_event(
    user: AuthenticatedUser = Depends(current_user),
    call_event_id: str = Depends(call_event_path_id),
):
    await CallEventRepository.delete(user.user_id, call_event_id)
    return DeletedResponse()

"""
Pipeline API Routes
The grouped board and the drag-and-drop move endpoint.
"""

from fastapi import APIRouter, Depends, Query

from offerready.auth.verify import current_user
from offerready.infrastructure.observability.logging import get_logger
from offerready.models.api.common_response import PipelineMoveResponse
from offerready.models.api.contact_request import PipelineMoveRequest
from offerready.models.domain.billing_domain import AuthenticatedUser
from offerready.repositories.contact_repository import ContactRepository
from offerready.services.pipeline.board import PipelineBoard, apply_move, load_board, resolve_drop

logger = get_logger(__name__)

router = APIRouter(prefix="/pipeline", tags=["pipeline"])


@router.get("", response_model=PipelineBoard)
async def get_board(
    q: str | None = Query(None, max_length=200, description="Search name, firm, position, email"),
    user: AuthenticatedUser = Depends(current_user),
):
    return await load_board(user.user_id, q)


@router.post("/moves", response_model=PipelineMoveResponse)
async def move_contact(
    request: PipelineMoveRequest, user: AuthenticatedUser = Depends(current_user)
):
    """Resolve a drop gesture and apply it. Drops on 'scheduled' only report intent."""
    # Resolve against the store, not the cache, so the source stage is current
    contacts = await ContactRepository.list_for_user(user.user_id)
    intent = resolve_drop(contacts, request.contact_id, request.over_id)
    contact = await apply_move(user.user_id, intent)

    logger.info(
        "Pipeline move",
        user_id=user.user_id,
        contact_id=request.contact_id,
        action=intent.action,
        source_stage=intent.source_stage,
        target_stage=intent.target_stage,
    )

    return PipelineMoveResponse(
        action=intent.action,
        source_stage=intent.source_stage,
        target_stage=intent.target_stage,
        delete_scheduled_call=intent.delete_scheduled_call,
        requires_call_notes=intent.requires_call_notes,
        contact=contact,
    )

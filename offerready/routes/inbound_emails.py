from fastapi import APIRouter, Depends

from offerready.auth.verify import current_user
from offerready.models.domain.billing_domain import AuthenticatedUser
from offerready.models.domain.inbound_email_domain import InboundEmail
from offerready.repositories.inbound_email_repository import InboundEmailRepository

router = APIRouter(prefix="/inbound-emails", tags=["inbound-emails"])


@router.get("", response_model=list[InboundEmail])
async def list_inbound_emails(user: AuthenticatedUser = Depends(current_user)):
    """The 20 most recent inbound scheduling emails, newest first."""
    return await InboundEmailRepository.list_recent(user.user_id)

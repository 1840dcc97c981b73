"""
Billing API Routes
Stripe checkout, customer portal, webhook and the user's plan.
"""

from fastapi import APIRouter, Depends, Header, Request

from offerready.auth.verify import current_user
from offerready.models.api.billing_request import CheckoutRequest, PortalRequest
from offerready.models.api.common_response import UrlResponse, WebhookAckResponse
from offerready.models.domain.billing_domain import AuthenticatedUser, SubscriptionInfo
from offerready.services import cached_reads
from offerready.services.billing import provisioning_service, webhook_service

router = APIRouter(prefix="/billing", tags=["billing"])


@router.post("/checkout", response_model=UrlResponse)
async def create_checkout(
    request: CheckoutRequest, user: AuthenticatedUser = Depends(current_user)
):
    """Start a subscription checkout with a trial; returns the Stripe Checkout URL."""
    url = await provisioning_service.create_checkout_session(
        user, request.price_type, request.return_url
    )
    return UrlResponse(url=url)


@router.post("/portal", response_model=UrlResponse)
async def create_portal(request: PortalRequest, user: AuthenticatedUser = Depends(current_user)):
    url = await provisioning_service.create_portal_session(user, request.return_url)
    return UrlResponse(url=url)


@router.post("/webhook", response_model=WebhookAckResponse)
async def stripe_webhook(
    request: Request, stripe_signature: str | None = Header(None)
):
    # Signature covers the raw bytes, so the body is read unparsed
    payload = await request.body()
    return await webhook_service.handle_webhook(payload, stripe_signature)


@router.get("/subscription", response_model=SubscriptionInfo)
async def get_subscription(user: AuthenticatedUser = Depends(current_user)):
    return await cached_reads.subscription_for(user.user_id)

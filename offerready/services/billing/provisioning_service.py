"""
Subscription provisioning: Stripe customer linkage, checkout and portal sessions.

Per user, the flow is a two-state machine:
    NoCustomer  -> create a Stripe customer, upsert user_subscriptions -> HasCustomer
    HasCustomer -> reuse the stored customer id
and then a checkout session is opened for the requested price.

Customer creation and the upsert cannot share a transaction. Two concurrent
first checkouts can therefore both create a Stripe customer; the upsert keeps
whichever id was stored first and both sessions use that one, leaving the
other customer orphaned in Stripe.
"""

from offerready.config import settings
from offerready.errors import UpstreamError, ValidationError
from offerready.infrastructure.observability.logging import get_logger
from offerready.models.domain.billing_domain import PRICE_TYPES, AuthenticatedUser
from offerready.repositories.subscription_repository import SubscriptionRepository
from offerready.services.billing.stripe_client import stripe_client

logger = get_logger(__name__)


def checkout_urls(return_url: str) -> tuple[str, str]:
    """success_url and cancel_url for a checkout started from return_url."""
    return f"{return_url}?checkout=success", f"{return_url}?checkout=canceled"


def validate_checkout_request(price_type: str | None, return_url: str | None) -> None:
    if not price_type or price_type not in PRICE_TYPES:
        raise ValidationError("Invalid priceType. Must be monthly or annual")
    if not return_url:
        raise ValidationError("Missing returnUrl")


def _require_stripe_key() -> None:
    if not settings.STRIPE_SECRET_KEY:
        raise UpstreamError("Stripe not configured")


def _price_id(price_type: str) -> str:
    if not (settings.STRIPE_PRICE_MONTHLY and settings.STRIPE_PRICE_ANNUAL):
        raise UpstreamError("Stripe prices not configured")
    return settings.stripe_price_for(price_type)


async def ensure_customer(user: AuthenticatedUser) -> str:
    """Return the user's Stripe customer id, creating and linking one if needed."""
    customer_id = await SubscriptionRepository.get_customer_id(user.user_id)
    if customer_id:
        return customer_id

    customer = await stripe_client.create_customer(user.email, user.user_id)
    return await SubscriptionRepository.link_customer(user.user_id, customer["id"])


async def create_checkout_session(
    user: AuthenticatedUser, price_type: str | None, return_url: str | None
) -> str:
    """
    Open a subscription checkout with a trial and return its URL.

    Input is validated before any configuration check or external call.
    Stripe failures surface as UpstreamError and are not retried.
    """
    validate_checkout_request(price_type, return_url)
    _require_stripe_key()
    price_id = _price_id(price_type)

    customer_id = await ensure_customer(user)
    success_url, cancel_url = checkout_urls(return_url)

    session = await stripe_client.create_checkout_session(
        customer_id=customer_id,
        price_id=price_id,
        success_url=success_url,
        cancel_url=cancel_url,
        trial_days=settings.CHECKOUT_TRIAL_DAYS,
    )

    logger.info(
        "Checkout started",
        user_id=user.user_id,
        customer_id=customer_id,
        price_type=price_type,
        session_id=session.get("id"),
    )
    return session["url"]


async def create_portal_session(user: AuthenticatedUser, return_url: str | None) -> str:
    """Billing-portal URL for a user who already has a Stripe customer."""
    if not return_url:
        raise ValidationError("Missing returnUrl")
    _require_stripe_key()

    customer_id = await SubscriptionRepository.get_customer_id(user.user_id)
    if not customer_id:
        raise ValidationError("No subscription found")

    session = await stripe_client.create_portal_session(customer_id, return_url)
    logger.info("Billing portal opened", user_id=user.user_id, customer_id=customer_id)
    return session["url"]

"""
Stripe webhook ingestion.

Keeps user_subscriptions in sync with Stripe. Rows are addressed by
stripe_customer_id, which the checkout flow links before a subscription can
exist. Event types other than the three handled here are acknowledged and
ignored.
"""

import hashlib
import hmac
import json
import time
from datetime import UTC, datetime
from typing import Any

from offerready.config import settings
from offerready.errors import ValidationError
from offerready.infrastructure.observability.logging import get_logger
from offerready.repositories.subscription_repository import SubscriptionRepository
from offerready.services.billing.stripe_client import stripe_client

logger = get_logger(__name__)

SIGNATURE_TOLERANCE_S = 300


def verify_signature(
    payload: bytes, header: str | None, secret: str, now: float | None = None
) -> bool:
    """Check a `Stripe-Signature: t=...,v1=...` header against the raw body."""
    parts: dict[str, str] = {}
    for item in (header or "").split(","):
        key, _, value = item.partition("=")
        if key.strip() and value.strip():
            parts[key.strip()] = value.strip()

    timestamp = parts.get("t")
    signature = parts.get("v1")
    if not timestamp or not signature:
        return False

    try:
        age = abs((now if now is not None else time.time()) - int(timestamp))
    except ValueError:
        return False
    if age > SIGNATURE_TOLERANCE_S:
        return False

    signed_payload = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def plan_from_price_id(price_id: str | None) -> str:
    if price_id and price_id == settings.STRIPE_PRICE_MONTHLY:
        return "pro_monthly"
    if price_id and price_id == settings.STRIPE_PRICE_ANNUAL:
        return "pro_annual"
    return "pro_monthly"


def _timestamp(value: int | None) -> datetime | None:
    return datetime.fromtimestamp(value, UTC) if value else None


def subscription_fields(subscription: dict[str, Any]) -> dict[str, Any]:
    """user_subscriptions columns described by a Stripe subscription object."""
    items = (subscription.get("items") or {}).get("data") or []
    price_id = ((items[0] if items else {}).get("price") or {}).get("id")
    return {
        "plan": plan_from_price_id(price_id),
        "status": subscription.get("status"),
        "current_period_start": _timestamp(subscription.get("current_period_start")),
        "current_period_end": _timestamp(subscription.get("current_period_end")),
        "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
        "trial_end": _timestamp(subscription.get("trial_end")),
    }


async def _checkout_completed(session: dict[str, Any]) -> None:
    customer_id = session.get("customer")
    subscription_id = session.get("subscription")
    if not customer_id or not subscription_id:
        logger.info("Checkout session without customer or subscription", session_id=session.get("id"))
        return

    subscription = await stripe_client.get_subscription(subscription_id)
    fields = {"stripe_subscription_id": subscription_id, **subscription_fields(subscription)}
    await SubscriptionRepository.update_by_customer(customer_id, fields)


async def _subscription_updated(subscription: dict[str, Any]) -> None:
    await SubscriptionRepository.update_by_customer(
        subscription.get("customer"), subscription_fields(subscription)
    )


async def _subscription_deleted(subscription: dict[str, Any]) -> None:
    await SubscriptionRepository.update_by_customer(
        subscription.get("customer"),
        {"plan": "free", "status": "canceled", "cancel_at_period_end": False},
    )


EVENT_HANDLERS = {
    "checkout.session.completed": _checkout_completed,
    "customer.subscription.updated": _subscription_updated,
    "customer.subscription.deleted": _subscription_deleted,
}


async def handle_webhook(payload: bytes, signature_header: str | None) -> dict:
    """Verify (when a secret is configured) and apply one Stripe event."""
    secret = settings.STRIPE_WEBHOOK_SECRET
    if secret and not verify_signature(payload, signature_header, secret):
        logger.warning("Stripe webhook rejected - invalid signature")
        raise ValidationError("Invalid signature")

    try:
        event = json.loads(payload)
    except ValueError as e:
        raise ValidationError("Invalid webhook payload") from e

    event_type = event.get("type")
    logger.info("Stripe webhook received", event_type=event_type, event_id=event.get("id"))

    handler = EVENT_HANDLERS.get(event_type)
    if handler:
        await handler((event.get("data") or {}).get("object") or {})

    return {"received": True}

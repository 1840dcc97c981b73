"""
Repository for user_subscriptions.

One row per user, keyed by user_id. The row is created lazily on first
checkout (plan 'free', status 'active') and afterwards only changed by Stripe
webhooks, which address it by stripe_customer_id.
"""

from typing import Any

from offerready.db.helpers import fetch_all, fetch_one
from offerready.errors import ValidationError
from offerready.infrastructure.events import MutationEvent, mutation_notifier
from offerready.infrastructure.observability.logging import get_logger
from offerready.models.domain.billing_domain import UserSubscription

logger = get_logger(__name__)

SUBSCRIPTION_COLUMNS = """
    user_id, stripe_customer_id, stripe_subscription_id, plan, status,
    current_period_start, current_period_end, cancel_at_period_end, trial_end
"""

# Columns a webhook may set
WEBHOOK_FIELDS = frozenset(
    {
        "stripe_subscription_id",
        "plan",
        "status",
        "current_period_start",
        "current_period_end",
        "cancel_at_period_end",
        "trial_end",
    }
)

# First writer wins: a customer id already stored is never replaced
LINK_CUSTOMER = """
    INSERT INTO user_subscriptions (user_id, stripe_customer_id, plan, status)
    VALUES (%s, %s, 'free', 'active')
    ON CONFLICT (user_id) DO UPDATE
    SET stripe_customer_id = COALESCE(
            user_subscriptions.stripe_customer_id, EXCLUDED.stripe_customer_id
        ),
        updated_at = NOW()
    RETURNING stripe_customer_id
"""


class SubscriptionRepository:
    @classmethod
    async def get(cls, user_id: str) -> UserSubscription | None:
        row = await fetch_one(
            f"SELECT {SUBSCRIPTION_COLUMNS} FROM user_subscriptions WHERE user_id = %s",
            (user_id,),
        )
        return UserSubscription.model_validate(row) if row else None

    @classmethod
    async def get_customer_id(cls, user_id: str) -> str | None:
        row = await fetch_one(
            "SELECT stripe_customer_id FROM user_subscriptions WHERE user_id = %s",
            (user_id,),
        )
        return row["stripe_customer_id"] if row else None

    @classmethod
    async def link_customer(cls, user_id: str, customer_id: str) -> str:
        """
        Upsert the user's row with a Stripe customer id.

        Returns the customer id that is actually stored, which is the earlier
        one when two first checkouts race.
        """
        row = await fetch_one(LINK_CUSTOMER, (user_id, customer_id))
        stored = row["stripe_customer_id"] if row else customer_id

        if stored != customer_id:
            logger.warning(
                "Stripe customer already linked, discarding new customer",
                user_id=user_id,
                stored_customer_id=stored,
                discarded_customer_id=customer_id,
            )
        else:
            logger.info("Stripe customer linked", user_id=user_id, customer_id=customer_id)

        await mutation_notifier.publish(MutationEvent("subscription", "updated", user_id))
        return stored

    @classmethod
    async def update_by_customer(cls, customer_id: str, fields: dict[str, Any]) -> list[str]:
        """Apply webhook fields to every row of a Stripe customer; returns affected user ids."""
        unknown = sorted(set(fields) - WEBHOOK_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown subscription field(s): {', '.join(unknown)}")
        if not fields:
            return []

        assignments = ", ".join(f"{column} = %s" for column in fields)
        rows = await fetch_all(
            f"""
            UPDATE user_subscriptions
            SET {assignments}, updated_at = NOW()
            WHERE stripe_customer_id = %s
            RETURNING user_id
            """,
            (*fields.values(), customer_id),
        )
        user_ids = [str(row["user_id"]) for row in rows]

        if not user_ids:
            logger.warning("No subscription row for Stripe customer", customer_id=customer_id)
        for user_id in user_ids:
            await mutation_notifier.publish(MutationEvent("subscription", "updated", user_id))

        logger.info(
            "Subscription updated from Stripe",
            customer_id=customer_id,
            plan=fields.get("plan"),
            status=fields.get("status"),
            users=len(user_ids),
        )
        return user_ids

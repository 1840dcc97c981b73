from datetime import datetime
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict

from offerready.models.domain._types import RowId

PriceType = Literal["monthly", "annual"]
PlanName = Literal["free", "pro_monthly", "pro_annual"]
SubscriptionStatus = Literal[
    "active", "trialing", "past_due", "canceled", "incomplete", "incomplete_expired", "unpaid", "paused"
]

PRICE_TYPES: tuple[PriceType, ...] = get_args(PriceType)
PRO_STATUSES = frozenset({"active", "trialing"})


class UserSubscription(BaseModel):
    """Row of user_subscriptions; one per user."""

    model_config = ConfigDict(extra="ignore")

    user_id: RowId
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    plan: PlanName = "free"
    status: SubscriptionStatus = "active"
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False
    trial_end: datetime | None = None


class SubscriptionInfo(BaseModel):
    """What the client needs to decide whether paid features are unlocked."""

    plan: str = "free"
    status: str = "active"
    is_pro: bool = False
    trial_end: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False

    @classmethod
    def from_subscription(cls, subscription: UserSubscription | None) -> "SubscriptionInfo":
        if subscription is None:
            return cls()
        return cls(
            plan=subscription.plan,
            status=subscription.status,
            is_pro=subscription.status in PRO_STATUSES and subscription.plan != "free",
            trial_end=subscription.trial_end,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
        )


class AuthenticatedUser(BaseModel):
    """Identity resolved from a verified bearer token."""

    user_id: RowId
    email: str | None = None

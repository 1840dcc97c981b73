"""
Cached read paths used by the routes.

Key names here must match `query_cache.invalidation_keys`, which is what keeps
them fresh after writes.
"""

from pydantic import TypeAdapter

from offerready.models.domain.billing_domain import SubscriptionInfo
from offerready.models.domain.contact_domain import CallEvent, Contact
from offerready.repositories.call_event_repository import CallEventRepository
from offerready.repositories.contact_repository import ContactRepository
from offerready.repositories.subscription_repository import SubscriptionRepository
from offerready.services.query_cache import cached_query, query_key

_contacts = TypeAdapter(list[Contact])
_contact = TypeAdapter(Contact)
_call_events = TypeAdapter(list[CallEvent])
_subscription = TypeAdapter(SubscriptionInfo)


async def contacts_for(user_id: str) -> list[Contact]:
    return await cached_query(
        query_key("contacts", user_id),
        lambda: ContactRepository.list_for_user(user_id),
        _contacts,
    )


async def contact_for(user_id: str, contact_id: str) -> Contact:
    return await cached_query(
        query_key("contact", user_id, contact_id),
        lambda: ContactRepository.get(user_id, contact_id),
        _contact,
    )


async def call_events_for(user_id: str) -> list[CallEvent]:
    return await cached_query(
        query_key("call_events", user_id),
        lambda: CallEventRepository.list_for_user(user_id),
        _call_events,
    )


async def upcoming_calls_for(user_id: str, days: int) -> list[CallEvent]:
    # The window moves with the clock, so entries live only as long as the TTL
    return await cached_query(
        query_key("upcoming_calls", user_id),
        lambda: CallEventRepository.upcoming(user_id, days),
        _call_events,
        variant=f"days={days}",
    )


async def subscription_for(user_id: str) -> SubscriptionInfo:
    async def load() -> SubscriptionInfo:
        return SubscriptionInfo.from_subscription(await SubscriptionRepository.get(user_id))

    return await cached_query(query_key("subscription", user_id), load, _subscription)

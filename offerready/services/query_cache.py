"""
Redis-backed cache of query results, keyed by logical query identity.

Each logical query (e.g. "contacts of user X") maps to one Redis hash
`query:{name}:{identity}`; parameterized variants of the same query (e.g. the
upcoming-calls window in days) are fields of that hash, so invalidating the
query drops every variant at once.

A generation counter per key (`{key}:generation`) guards cache fills: a load
that overlaps an invalidation is returned but not stored.

The cache is never authoritative. Mutations reach it only through
MutationEvents, see `invalidate_for_mutation`.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import TypeAdapter, ValidationError

from offerready.config import settings
from offerready.infrastructure.events import MutationEvent
from offerready.infrastructure.observability.logging import get_logger
from offerready.services.redis_client import fast_redis

logger = get_logger(__name__)

KEY_PREFIX = "query"
DEFAULT_VARIANT = "all"


def query_key(name: str, *identity: str) -> str:
    return ":".join((KEY_PREFIX, name, *identity))


def invalidation_keys(event: MutationEvent) -> list[str]:
    """Query keys made stale by a committed mutation."""
    user_id = event.user_id

    if event.entity == "subscription":
        return [query_key("subscription", user_id)]

    # Contacts and call events feed each other's listings
    keys = [
        query_key("contacts", user_id),
        query_key("call_events", user_id),
        query_key("upcoming_calls", user_id),
    ]
    if event.contact_id:
        keys.append(query_key("contact", user_id, event.contact_id))
    return keys


def generation_key(key: str) -> str:
    return f"{key}:generation"


async def invalidate_for_mutation(event: MutationEvent) -> None:
    keys = invalidation_keys(event)
    # Generations move before the data is dropped
    await fast_redis.incr(*(generation_key(key) for key in keys))
    removed = await fast_redis.delete(*keys)
    logger.debug(
        "Query cache invalidated",
        entity=event.entity,
        action=event.action,
        user_id=event.user_id,
        keys=keys,
        removed=removed,
    )


async def cached_query(
    key: str,
    loader: Callable[[], Awaitable[Any]],
    adapter: TypeAdapter,
    *,
    variant: str = DEFAULT_VARIANT,
) -> Any:
    """
    Return the cached result for (key, variant), loading and storing it on a miss.

    The loaded value is stored only if no invalidation of `key` happened while
    it was being loaded.
    """
    raw = await fast_redis.hget(key, variant)
    if raw is not None:
        try:
            return adapter.validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cache entry", key=key, variant=variant)

    generation = await fast_redis.get(generation_key(key))
    value = await loader()
    stored = await fast_redis.hset_if_unchanged(
        key,
        variant,
        adapter.dump_json(value).decode("utf-8"),
        guard_key=generation_key(key),
        expected=generation,
        ttl_s=settings.QUERY_CACHE_TTL_S,
    )
    if not stored:
        logger.debug("Query result not cached", key=key, variant=variant)
    return value

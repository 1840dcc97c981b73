"""
In-process notifications for committed writes.

Repositories publish a MutationEvent after each successful mutation; view-state
holders (the query cache) subscribe and react. Publishing happens after the
transaction has committed, so subscribers never see rolled-back writes.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

from offerready.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MutationEntity = Literal["contact", "call_event", "subscription"]
MutationAction = Literal["created", "updated", "stage_changed", "status_changed", "deleted"]


@dataclass(frozen=True, slots=True)
class MutationEvent:
    entity: MutationEntity
    action: MutationAction
    user_id: str
    entity_id: str | None = None
    contact_id: str | None = None


MutationHandler = Callable[[MutationEvent], Awaitable[None]]


class MutationNotifier:
    """Fan a MutationEvent out to registered async handlers, in order."""

    def __init__(self):
        self._handlers: list[MutationHandler] = []

    def subscribe(self, handler: MutationHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: MutationHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def publish(self, event: MutationEvent) -> None:
        # The write is already committed; a failing handler must not fail it
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Mutation handler failed",
                    handler=getattr(handler, "__name__", repr(handler)),
                    entity=event.entity,
                    action=event.action,
                    user_id=event.user_id,
                )


mutation_notifier = MutationNotifier()

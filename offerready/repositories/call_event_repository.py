"""
Repository for scheduled calls.

Status changes drive the owning contact through the pipeline:
    - scheduling a call moves the contact to 'scheduled'
    - completing it moves the contact to 'call_done'
    - canceling it moves the contact back to 'messaged'
    - deleting a still-scheduled call moves the contact back to 'researching'
Each event write and its contact side effect share one transaction.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from offerready.db.helpers import execute_query, fetch_all, fetch_one, get_db_transaction
from offerready.errors import NotFoundError, ValidationError
from offerready.infrastructure.events import MutationEvent, mutation_notifier
from offerready.infrastructure.observability.logging import get_logger
from offerready.models.domain.contact_domain import (
    CALL_EVENT_STATUSES,
    CallEvent,
    CallEventStatus,
    ContactStage,
)

logger = get_logger(__name__)

EVENT_COLUMNS = """
    id, user_id, contact_id, title, start_at, end_at, location, notes, status,
    external_provider, external_event_id, created_at, updated_at
"""

EVENT_WITH_CONTACT_COLUMNS = """
    ce.id, ce.user_id, ce.contact_id, ce.title, ce.start_at, ce.end_at,
    ce.location, ce.notes, ce.status, ce.external_provider, ce.external_event_id,
    ce.created_at, ce.updated_at,
    c.name AS contact_name, c.firm AS contact_firm,
    c.position AS contact_position, c.stage AS contact_stage
"""

# status and contact_id move only through create/update_status
MUTABLE_FIELDS = frozenset(
    {"title", "start_at", "end_at", "location", "notes", "external_provider", "external_event_id"}
)
REQUIRED_ON_CREATE = ("contact_id", "title", "start_at", "end_at")

# Contact stage implied by a call's new status
STATUS_CONTACT_STAGE: dict[str, ContactStage] = {
    "completed": "call_done",
    "canceled": "messaged",
}

UPCOMING_DEFAULT_DAYS = 7


def _row_to_event(row: dict[str, Any]) -> CallEvent:
    data = dict(row)
    contact_name = data.pop("contact_name", None)
    contact = {
        "id": data["contact_id"],
        "name": contact_name,
        "firm": data.pop("contact_firm", None),
        "position": data.pop("contact_position", None),
        "stage": data.pop("contact_stage", None),
    }
    if contact_name is not None:
        data["contact"] = contact
    return CallEvent.model_validate(data)


def _validate_window(start_at: datetime | None, end_at: datetime | None) -> None:
    if start_at and end_at and end_at < start_at:
        raise ValidationError("Call end_at must not be before start_at")


async def _set_contact_stage(
    conn, user_id: str, contact_id: str, stage: ContactStage, *, contacted: bool = False
) -> int:
    touched = ", last_contacted_at = NOW()" if contacted else ""
    return await execute_query(
        f"""
        UPDATE contacts
        SET stage = %s{touched}, updated_at = NOW()
        WHERE id = %s AND user_id = %s
        """,
        (stage, contact_id, user_id),
        connection=conn,
    )


class CallEventRepository:
    """CRUD and status transitions for call events."""

    @classmethod
    async def list_for_user(cls, user_id: str | None) -> list[CallEvent]:
        """All call events of a user with their contact, earliest first."""
        if not user_id:
            return []

        query = f"""
            SELECT {EVENT_WITH_CONTACT_COLUMNS}
            FROM call_events ce
            LEFT JOIN contacts c ON c.id = ce.contact_id
            WHERE ce.user_id = %s
            ORDER BY ce.start_at ASC
        """
        rows = await fetch_all(query, (user_id,))
        return [_row_to_event(row) for row in rows]

    @classmethod
    async def upcoming(
        cls, user_id: str | None, days: int = UPCOMING_DEFAULT_DAYS
    ) -> list[CallEvent]:
        """Scheduled calls starting within the next `days` days."""
        if not user_id:
            return []

        now = datetime.now(UTC)
        query = f"""
            SELECT {EVENT_WITH_CONTACT_COLUMNS}
            FROM call_events ce
            LEFT JOIN contacts c ON c.id = ce.contact_id
            WHERE ce.user_id = %s
              AND ce.status = 'scheduled'
              AND ce.start_at >= %s
              AND ce.start_at <= %s
            ORDER BY ce.start_at ASC
        """
        rows = await fetch_all(query, (user_id, now, now + timedelta(days=days)))
        return [_row_to_event(row) for row in rows]

    @classmethod
    async def scheduled_by_contact(cls, user_id: str | None) -> dict[str, CallEvent]:
        """The scheduled call of each contact; the latest-starting one wins."""
        events = await cls.list_for_user(user_id)
        return {event.contact_id: event for event in events if event.status == "scheduled"}

    @classmethod
    async def create(
        cls, user_id: str, fields: dict[str, Any], update_contact_stage: bool = True
    ) -> CallEvent:
        missing = [name for name in REQUIRED_ON_CREATE if not fields.get(name)]
        if missing:
            raise ValidationError(f"Missing call event field(s): {', '.join(missing)}")

        unknown = sorted(set(fields) - MUTABLE_FIELDS - {"contact_id", "status"})
        if unknown:
            raise ValidationError(f"Unknown call event field(s): {', '.join(unknown)}")

        status = fields.get("status") or "scheduled"
        if status not in CALL_EVENT_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        _validate_window(fields["start_at"], fields["end_at"])

        data = {**fields, "status": status}
        contact_id = data["contact_id"]
        columns = ["user_id", *data]

        async with await get_db_transaction() as conn:
            owner = await fetch_one(
                "SELECT id FROM contacts WHERE id = %s AND user_id = %s",
                (contact_id, user_id),
                connection=conn,
            )
            if owner is None:
                raise NotFoundError("Contact not found")

            row = await fetch_one(
                f"""
                INSERT INTO call_events ({", ".join(columns)})
                VALUES ({", ".join(["%s"] * len(columns))})
                RETURNING {EVENT_COLUMNS}
                """,
                (user_id, *data.values()),
                connection=conn,
            )

            if update_contact_stage:
                await _set_contact_stage(conn, user_id, contact_id, "scheduled")

        event = _row_to_event(row)
        logger.info(
            "Call event created",
            user_id=user_id,
            call_event_id=event.id,
            contact_id=contact_id,
            contact_stage_updated=update_contact_stage,
        )

        await mutation_notifier.publish(
            MutationEvent("call_event", "created", user_id, event.id, contact_id)
        )
        return event

    @classmethod
    async def update(cls, user_id: str, call_event_id: str, fields: dict[str, Any]) -> CallEvent:
        unknown = sorted(set(fields) - MUTABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown call event field(s): {', '.join(unknown)}")
        if not fields:
            raise ValidationError("No call event fields to update")

        assignments = ", ".join(f"{column} = %s" for column in fields)
        async with await get_db_transaction() as conn:
            if {"start_at", "end_at"} & set(fields):
                # A one-sided patch is checked against the stored other end
                current = await fetch_one(
                    """
                    SELECT start_at, end_at FROM call_events
                    WHERE id = %s AND user_id = %s
                    FOR UPDATE
                    """,
                    (call_event_id, user_id),
                    connection=conn,
                )
                if current is None:
                    raise NotFoundError("Call event not found")
                _validate_window(
                    fields.get("start_at", current["start_at"]),
                    fields.get("end_at", current["end_at"]),
                )

            row = await fetch_one(
                f"""
                UPDATE call_events
                SET {assignments}, updated_at = NOW()
                WHERE id = %s AND user_id = %s
                RETURNING {EVENT_COLUMNS}
                """,
                (*fields.values(), call_event_id, user_id),
                connection=conn,
            )
            if row is None:
                raise NotFoundError("Call event not found")

        event = _row_to_event(row)
        logger.info(
            "Call event updated",
            user_id=user_id,
            call_event_id=call_event_id,
            fields=sorted(fields),
        )

        await mutation_notifier.publish(
            MutationEvent("call_event", "updated", user_id, event.id, event.contact_id)
        )
        return event

    @classmethod
    async def update_status(
        cls,
        user_id: str,
        call_event_id: str,
        status: CallEventStatus,
        update_contact_stage: bool = True,
    ) -> CallEvent:
        if status not in CALL_EVENT_STATUSES:
            raise ValidationError(f"Invalid status: {status}")

        async with await get_db_transaction() as conn:
            row = await fetch_one(
                f"""
                UPDATE call_events
                SET status = %s, updated_at = NOW()
                WHERE id = %s AND user_id = %s
                RETURNING {EVENT_COLUMNS}
                """,
                (status, call_event_id, user_id),
                connection=conn,
            )
            if row is None:
                raise NotFoundError("Call event not found")

            contact_stage = STATUS_CONTACT_STAGE.get(status) if update_contact_stage else None
            if contact_stage:
                await _set_contact_stage(
                    conn,
                    user_id,
                    str(row["contact_id"]),
                    contact_stage,
                    contacted=status == "completed",
                )

        event = _row_to_event(row)
        logger.info(
            "Call event status changed",
            user_id=user_id,
            call_event_id=call_event_id,
            status=status,
            contact_stage=contact_stage,
        )

        await mutation_notifier.publish(
            MutationEvent("call_event", "status_changed", user_id, event.id, event.contact_id)
        )
        return event

    @classmethod
    async def delete(cls, user_id: str, call_event_id: str) -> None:
        """Delete a call; a deleted scheduled call sends its contact back to researching."""
        async with await get_db_transaction() as conn:
            row = await fetch_one(
                """
                DELETE FROM call_events
                WHERE id = %s AND user_id = %s
                RETURNING contact_id, status
                """,
                (call_event_id, user_id),
                connection=conn,
            )
            if row is None:
                raise NotFoundError("Call event not found")

            contact_id = str(row["contact_id"])
            if row["status"] == "scheduled":
                await _set_contact_stage(conn, user_id, contact_id, "researching")

        logger.info(
            "Call event deleted",
            user_id=user_id,
            call_event_id=call_event_id,
            contact_id=contact_id,
            was_scheduled=row["status"] == "scheduled",
        )

        await mutation_notifier.publish(
            MutationEvent("call_event", "deleted", user_id, call_event_id, contact_id)
        )

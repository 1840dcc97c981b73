"""
Repository for the contacts pipeline.

All statements are scoped by user_id: the service connects with the service
role, so row ownership is enforced here rather than by RLS.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from offerready.db.helpers import execute_query, fetch_all, fetch_one, get_db_transaction
from offerready.errors import NotFoundError, ValidationError
from offerready.infrastructure.events import MutationEvent, mutation_notifier
from offerready.infrastructure.observability.logging import get_logger
from offerready.models.domain.contact_domain import (
    CONNECTION_TYPES,
    FOLLOWUP_DEFAULT_DAYS,
    PIPELINE_STAGES,
    Contact,
    ContactStage,
)

logger = get_logger(__name__)

CONTACT_COLUMNS = """
    id, user_id, name, firm, group_name, position, email, phone,
    connection_type, relationship_strength, stage, last_contacted_at,
    next_followup_at, notes_summary, created_at, updated_at
"""

# Columns a caller may write; also the whitelist for dynamic statements
MUTABLE_FIELDS = frozenset(
    {
        "name",
        "firm",
        "group_name",
        "position",
        "email",
        "phone",
        "connection_type",
        "relationship_strength",
        "stage",
        "last_contacted_at",
        "next_followup_at",
        "notes_summary",
    }
)

COMPLETE_SCHEDULED_CALLS = """
    UPDATE call_events
    SET status = 'completed', updated_at = NOW()
    WHERE contact_id = %s AND user_id = %s AND status = 'scheduled'
"""

DELETE_SCHEDULED_CALLS = """
    DELETE FROM call_events
    WHERE contact_id = %s AND user_id = %s AND status = 'scheduled'
"""


def default_followup_at(now: datetime | None = None) -> datetime:
    return (now or datetime.now(UTC)) + timedelta(days=FOLLOWUP_DEFAULT_DAYS)


def _validate_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(fields) - MUTABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown contact field(s): {', '.join(unknown)}")

    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationError("Contact name is required")
    if "stage" in fields and fields["stage"] not in PIPELINE_STAGES:
        raise ValidationError(f"Invalid stage: {fields['stage']}")
    if "connection_type" in fields and fields["connection_type"] not in CONNECTION_TYPES:
        raise ValidationError(f"Invalid connection_type: {fields['connection_type']}")
    return fields


class ContactRepository:
    """CRUD and stage transitions over contacts and their call events."""

    @classmethod
    async def list_for_user(cls, user_id: str | None) -> list[Contact]:
        """Contacts of a user, newest first. No user, no contacts."""
        if not user_id:
            return []

        query = f"""
            SELECT {CONTACT_COLUMNS}
            FROM contacts
            WHERE user_id = %s
            ORDER BY created_at DESC
        """
        rows = await fetch_all(query, (user_id,))
        return [Contact.model_validate(row) for row in rows]

    @classmethod
    async def get(cls, user_id: str, contact_id: str) -> Contact:
        query = f"""
            SELECT {CONTACT_COLUMNS}
            FROM contacts
            WHERE id = %s AND user_id = %s
        """
        row = await fetch_one(query, (contact_id, user_id))
        if row is None:
            raise NotFoundError("Contact not found")
        return Contact.model_validate(row)

    @classmethod
    async def create(cls, user_id: str, fields: dict[str, Any]) -> Contact:
        """
        Insert a contact for the user.

        next_followup_at defaults to one week from now when not supplied.
        """
        if "name" not in fields:
            raise ValidationError("Contact name is required")
        data = dict(_validate_fields(fields))
        if not data.get("next_followup_at"):
            data["next_followup_at"] = default_followup_at()

        columns = ["user_id", *data]
        query = f"""
            INSERT INTO contacts ({", ".join(columns)})
            VALUES ({", ".join(["%s"] * len(columns))})
            RETURNING {CONTACT_COLUMNS}
        """
        row = await fetch_one(query, (user_id, *data.values()))
        if row is None:
            raise ValidationError("Contact could not be created")

        contact = Contact.model_validate(row)
        logger.info("Contact created", user_id=user_id, contact_id=contact.id, stage=contact.stage)

        await mutation_notifier.publish(
            MutationEvent("contact", "created", user_id, contact.id, contact.id)
        )
        return contact

    @classmethod
    async def update(cls, user_id: str, contact_id: str, fields: dict[str, Any]) -> Contact:
        """Patch the given columns of one contact."""
        data = _validate_fields(fields)
        if not data:
            return await cls.get(user_id, contact_id)

        assignments = ", ".join(f"{column} = %s" for column in data)
        query = f"""
            UPDATE contacts
            SET {assignments}, updated_at = NOW()
            WHERE id = %s AND user_id = %s
            RETURNING {CONTACT_COLUMNS}
        """
        row = await fetch_one(query, (*data.values(), contact_id, user_id))
        if row is None:
            raise NotFoundError("Contact not found")

        contact = Contact.model_validate(row)
        logger.info("Contact updated", user_id=user_id, contact_id=contact_id, fields=sorted(data))

        await mutation_notifier.publish(
            MutationEvent("contact", "updated", user_id, contact_id, contact_id)
        )
        return contact

    @classmethod
    async def update_stage(
        cls,
        user_id: str,
        contact_id: str,
        stage: ContactStage,
        delete_scheduled_call: bool = False,
    ) -> Contact:
        """
        Move a contact to another pipeline stage.

        Steps, in order:
            1. stage == call_done: the contact's scheduled calls become completed.
            2. delete_scheduled_call: the contact's scheduled calls are deleted.
            3. The contact row takes the new stage.

        The three steps share one transaction. If step 3 finds no contact the
        transaction rolls back, so call events are never left half-transitioned,
        and NotFoundError propagates.
        """
        if stage not in PIPELINE_STAGES:
            raise ValidationError(f"Invalid stage: {stage}")

        completed_calls = 0
        deleted_calls = 0

        async with await get_db_transaction() as conn:
            if stage == "call_done":
                completed_calls = await execute_query(
                    COMPLETE_SCHEDULED_CALLS, (contact_id, user_id), connection=conn
                )

            if delete_scheduled_call:
                deleted_calls = await execute_query(
                    DELETE_SCHEDULED_CALLS, (contact_id, user_id), connection=conn
                )

            row = await fetch_one(
                f"""
                UPDATE contacts
                SET stage = %s, updated_at = NOW()
                WHERE id = %s AND user_id = %s
                RETURNING {CONTACT_COLUMNS}
                """,
                (stage, contact_id, user_id),
                connection=conn,
            )
            if row is None:
                logger.warning(
                    "Stage transition rolled back - contact not found",
                    user_id=user_id,
                    contact_id=contact_id,
                    target_stage=stage,
                )
                raise NotFoundError("Contact not found")

        contact = Contact.model_validate(row)
        logger.info(
            "Contact stage changed",
            user_id=user_id,
            contact_id=contact_id,
            stage=stage,
            completed_calls=completed_calls,
            deleted_calls=deleted_calls,
        )

        await mutation_notifier.publish(
            MutationEvent("contact", "stage_changed", user_id, contact_id, contact_id)
        )
        return contact

    @classmethod
    async def delete(cls, user_id: str, contact_id: str) -> None:
        """
        Delete a contact.

        Deleting a contact that does not exist (or belongs to someone else)
        is not an error and cannot be told apart from a successful delete.
        """
        removed = await execute_query(
            "DELETE FROM contacts WHERE id = %s AND user_id = %s", (contact_id, user_id)
        )
        logger.info("Contact deleted", user_id=user_id, contact_id=contact_id, removed=removed)

        await mutation_notifier.publish(
            MutationEvent("contact", "deleted", user_id, contact_id, contact_id)
        )

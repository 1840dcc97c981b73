from offerready.db.helpers import fetch_all
from offerready.models.domain.inbound_email_domain import InboundEmail

RECENT_LIMIT = 20


class InboundEmailRepository:
    """Read side of inbound scheduling emails. Rows are written elsewhere."""

    @classmethod
    async def list_recent(cls, user_id: str | None, limit: int = RECENT_LIMIT) -> list[InboundEmail]:
        if not user_id:
            return []

        rows = await fetch_all(
            """
            SELECT id, user_id, from_address, to_address, subject, status,
                   contact_id, call_event_id, error_message, parsed_result, created_at
            FROM inbound_emails
            WHERE user_id = %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (user_id, limit),
        )
        return [InboundEmail.model_validate(row) for row in rows]

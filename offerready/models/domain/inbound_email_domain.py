from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from offerready.models.domain._types import RowId

InboundEmailStatus = Literal["processed", "needs_confirmation", "failed", "ignored"]


class InboundEmail(BaseModel):
    """An inbound scheduling email and the outcome of processing it."""

    model_config = ConfigDict(extra="ignore")

    id: RowId
    user_id: RowId | None = None
    from_address: str
    to_address: str | None = None
    subject: str | None = None
    status: InboundEmailStatus
    contact_id: RowId | None = None
    call_event_id: RowId | None = None
    error_message: str | None = None
    parsed_result: dict[str, Any] | None = None
    created_at: datetime

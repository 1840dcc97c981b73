from datetime import datetime
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict

from offerready.models.domain._types import RowId

ContactStage = Literal[
    "researching",
    "messaged",
    "scheduled",
    "call_done",
    "strong_connection",
    "referral_requested",
    "interview",
    "offer",
]
ConnectionType = Literal["cold", "alumni", "friend", "referral"]
CallEventStatus = Literal["scheduled", "completed", "canceled"]

# Board display order
PIPELINE_STAGES: tuple[ContactStage, ...] = get_args(ContactStage)
CONNECTION_TYPES: tuple[ConnectionType, ...] = get_args(ConnectionType)
CALL_EVENT_STATUSES: tuple[CallEventStatus, ...] = get_args(CallEventStatus)

STAGE_LABELS: dict[ContactStage, str] = {
    "researching": "Researching",
    "messaged": "Messaged",
    "scheduled": "Scheduled",
    "call_done": "Call Done",
    "strong_connection": "Strong Connection",
    "referral_requested": "Referral Requested",
    "interview": "Interview",
    "offer": "Offer",
}

FOLLOWUP_DEFAULT_DAYS = 7


class Contact(BaseModel):
    """A networking contact tracked through the recruiting pipeline."""

    model_config = ConfigDict(extra="ignore")

    id: RowId
    user_id: RowId
    name: str
    firm: str | None = None
    group_name: str | None = None
    position: str | None = None
    email: str | None = None
    phone: str | None = None
    connection_type: ConnectionType = "cold"
    relationship_strength: int = 1
    stage: ContactStage = "researching"
    last_contacted_at: datetime | None = None
    next_followup_at: datetime | None = None
    notes_summary: str | None = None
    created_at: datetime
    updated_at: datetime


class ContactSummary(BaseModel):
    """Contact fields embedded in call event listings."""

    id: RowId
    name: str
    firm: str | None = None
    position: str | None = None
    stage: ContactStage | None = None


class CallEvent(BaseModel):
    """A call scheduled with a contact."""

    model_config = ConfigDict(extra="ignore")

    id: RowId
    user_id: RowId
    contact_id: RowId
    title: str
    start_at: datetime
    end_at: datetime
    location: str | None = None
    notes: str | None = None
    status: CallEventStatus = "scheduled"
    external_provider: str | None = None
    external_event_id: str | None = None
    created_at: datetime
    updated_at: datetime
    contact: ContactSummary | None = None

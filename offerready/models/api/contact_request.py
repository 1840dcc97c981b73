# offerready/models/api/contact_request.py
"""
Contact, call event and pipeline request models.
Used by routes for input validation.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from offerready.models.domain.contact_domain import CallEventStatus, ConnectionType, ContactStage


class CreateContactRequest(BaseModel):
    """Request for adding a contact."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200, description="Contact name")
    firm: str | None = Field(None, max_length=200, description="Company")
    group_name: str | None = Field(None, max_length=200, description="Group or team")
    position: str | None = Field(None, max_length=200, description="Job title")
    email: str | None = Field(None, max_length=320, description="Email address")
    phone: str | None = Field(None, max_length=50, description="Phone number")
    connection_type: ConnectionType = Field(default="cold", description="How the user knows them")
    relationship_strength: int = Field(default=1, ge=1, le=5, description="1 (weak) to 5 (strong)")
    stage: ContactStage = Field(default="researching", description="Pipeline stage")
    last_contacted_at: datetime | None = Field(None, description="Last touchpoint")
    next_followup_at: datetime | None = Field(None, description="Follow-up due (default: in 7 days)")
    notes_summary: str | None = Field(None, description="Notes")


class UpdateContactRequest(BaseModel):
    """Partial contact update; only fields present in the body are written."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(None, min_length=1, max_length=200)
    firm: str | None = Field(None, max_length=200)
    group_name: str | None = Field(None, max_length=200)
    position: str | None = Field(None, max_length=200)
    email: str | None = Field(None, max_length=320)
    phone: str | None = Field(None, max_length=50)
    connection_type: ConnectionType | None = None
    relationship_strength: int | None = Field(None, ge=1, le=5)
    stage: ContactStage | None = None
    last_contacted_at: datetime | None = None
    next_followup_at: datetime | None = None
    notes_summary: str | None = None


class UpdateStageRequest(BaseModel):
    """Move a contact to a pipeline stage."""

    stage: ContactStage
    delete_scheduled_call: bool = Field(
        default=False, description="Delete the contact's scheduled calls as part of the move"
    )


class PipelineMoveRequest(BaseModel):
    """A drag-and-drop gesture on the pipeline board."""

    model_config = ConfigDict(populate_by_name=True)

    contact_id: str = Field(..., alias="contactId", description="Dragged contact")
    over_id: str | None = Field(None, alias="overId", description="Stage id or contact id dropped on")


class CreateCallEventRequest(BaseModel):
    """Request for scheduling a call with a contact."""

    model_config = ConfigDict(extra="forbid")

    contact_id: str = Field(..., description="Contact the call is with")
    title: str = Field(..., min_length=1, max_length=200, description="Call title")
    start_at: datetime = Field(..., description="Call start")
    end_at: datetime = Field(..., description="Call end")
    location: str | None = Field(None, max_length=500)
    notes: str | None = None
    status: CallEventStatus = "scheduled"
    external_provider: str | None = None
    external_event_id: str | None = None
    update_contact_stage: bool = Field(
        default=True, description="Move the contact to 'scheduled'"
    )


class UpdateCallEventRequest(BaseModel):
    """Partial call event update. Status changes go through the status endpoint."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(None, min_length=1, max_length=200)
    start_at: datetime | None = None
    end_at: datetime | None = None
    location: str | None = Field(None, max_length=500)
    notes: str | None = None
    external_provider: str | None = None
    external_event_id: str | None = None


class UpdateCallStatusRequest(BaseModel):
    status: CallEventStatus
    update_contact_stage: bool = True

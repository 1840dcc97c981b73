# offerready/models/api/common_response.py
"""
Response models shared by several routers.
"""

from pydantic import BaseModel, Field

from offerready.models.domain.contact_domain import Contact, ContactStage


class UrlResponse(BaseModel):
    """A hosted Stripe page to redirect to."""

    url: str = Field(..., description="Redirect URL")


class WebhookAckResponse(BaseModel):
    received: bool = True


class DeletedResponse(BaseModel):
    deleted: bool = True


class PipelineMoveResponse(BaseModel):
    """Outcome of a drop gesture."""

    action: str = Field(..., description="none | schedule_call | update_stage")
    source_stage: ContactStage | None = None
    target_stage: ContactStage | None = None
    delete_scheduled_call: bool = False
    requires_call_notes: bool = False
    contact: Contact | None = Field(None, description="Updated contact when the stage changed")

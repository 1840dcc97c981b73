"""
Pipeline board: contacts grouped into stage columns, and the drag-and-drop
move protocol on top of ContactRepository.update_stage.

Column membership is derived from Contact.stage alone; there is no ordering
field, so a drop only ever changes a contact's stage.

Move rules:
    - dropping on 'scheduled' does not touch the stage; the client is asked to
      schedule a call, and creating that call moves the contact
    - dropping on 'call_done' changes the stage and asks for call notes
    - any other target changes the stage
    - leaving 'scheduled' for anything but 'call_done' deletes the scheduled call
"""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel

from offerready.infrastructure.observability.logging import get_logger
from offerready.models.domain.contact_domain import (
    PIPELINE_STAGES,
    STAGE_LABELS,
    CallEvent,
    Contact,
    ContactStage,
)
from offerready.repositories.contact_repository import ContactRepository
from offerready.services import cached_reads

logger = get_logger(__name__)

MoveAction = Literal["none", "schedule_call", "update_stage"]

SEARCH_FIELDS = ("name", "firm", "position", "email")


@dataclass(frozen=True)
class MoveIntent:
    """What a drop gesture means, before anything is written."""

    contact_id: str
    source_stage: ContactStage | None
    target_stage: ContactStage | None
    action: MoveAction
    delete_scheduled_call: bool = False
    requires_call_notes: bool = False


class PipelineColumn(BaseModel):
    stage: ContactStage
    label: str
    contacts: list[Contact]


class PipelineBoard(BaseModel):
    columns: list[PipelineColumn]
    scheduled_calls: dict[str, CallEvent]


def group_by_stage(contacts: list[Contact]) -> dict[ContactStage, list[Contact]]:
    """Partition contacts into every stage, in board order. Input order is kept per stage."""
    groups: dict[ContactStage, list[Contact]] = {stage: [] for stage in PIPELINE_STAGES}
    for contact in contacts:
        groups[contact.stage].append(contact)
    return groups


def filter_contacts(contacts: list[Contact], query: str | None) -> list[Contact]:
    """Case-insensitive substring match over name, firm, position and email."""
    needle = (query or "").strip().lower()
    if not needle:
        return contacts

    def matches(contact: Contact) -> bool:
        return any(needle in (getattr(contact, field) or "").lower() for field in SEARCH_FIELDS)

    return [contact for contact in contacts if matches(contact)]


def should_delete_scheduled_call(source: ContactStage | None, target: ContactStage) -> bool:
    return source == "scheduled" and target not in ("scheduled", "call_done")


def resolve_target_stage(contacts: list[Contact], over_id: str | None) -> ContactStage | None:
    """A drop target is a column (stage id) or a card (contact id, meaning its stage)."""
    if not over_id:
        return None
    if over_id in PIPELINE_STAGES:
        return over_id
    for contact in contacts:
        if contact.id == over_id:
            return contact.stage
    return None


def resolve_drop(contacts: list[Contact], contact_id: str, over_id: str | None) -> MoveIntent:
    source = next((contact.stage for contact in contacts if contact.id == contact_id), None)
    target = resolve_target_stage(contacts, over_id)

    if source is None or target is None or target == source:
        return MoveIntent(contact_id, source, target, "none")

    if target == "scheduled":
        return MoveIntent(contact_id, source, target, "schedule_call")

    return MoveIntent(
        contact_id,
        source,
        target,
        "update_stage",
        delete_scheduled_call=should_delete_scheduled_call(source, target),
        requires_call_notes=target == "call_done",
    )


async def apply_move(user_id: str, intent: MoveIntent) -> Contact | None:
    """Carry out a resolved intent; only 'update_stage' writes."""
    if intent.action != "update_stage":
        logger.debug(
            "Pipeline drop needs no stage update",
            user_id=user_id,
            contact_id=intent.contact_id,
            action=intent.action,
            target_stage=intent.target_stage,
        )
        return None

    return await ContactRepository.update_stage(
        user_id,
        intent.contact_id,
        intent.target_stage,
        delete_scheduled_call=intent.delete_scheduled_call,
    )


async def load_board(user_id: str, query: str | None = None) -> PipelineBoard:
    contacts = filter_contacts(await cached_reads.contacts_for(user_id), query)
    events = await cached_reads.call_events_for(user_id)

    groups = group_by_stage(contacts)
    columns = [
        PipelineColumn(stage=stage, label=STAGE_LABELS[stage], contacts=members)
        for stage, members in groups.items()
    ]
    # Ascending start_at, so the latest scheduled call of a contact wins
    scheduled = {event.contact_id: event for event in events if event.status == "scheduled"}
    return PipelineBoard(columns=columns, scheduled_calls=scheduled)

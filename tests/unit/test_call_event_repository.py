from datetime import UTC, datetime, timedelta

import pytest
from conftest import CALL_EVENT_ID, CONTACT_ID, USER_ID, make_call_event_row

from offerready.errors import NotFoundError, ValidationError
from offerready.repositories.call_event_repository import CallEventRepository


def _new_call_fields(**overrides):
    start = datetime.now(UTC) + timedelta(days=2)
    fields = {
        "contact_id": CONTACT_ID,
        "title": "Coffee chat",
        "start_at": start,
        "end_at": start + timedelta(minutes=30),
    }
    fields.update(overrides)
    return fields


@pytest.mark.asyncio
async def test_list_embeds_contact_summary(fake_db):
    fake_db.respond(
        "FROM call_events ce",
        rows=[
            make_call_event_row(
                contact_name="Jordan Lee",
                contact_firm="Evercore",
                contact_position="Analyst",
                contact_stage="scheduled",
            )
        ],
    )

    events = await CallEventRepository.list_for_user(USER_ID)

    assert events[0].contact.name == "Jordan Lee"
    assert events[0].contact.id == CONTACT_ID
    assert "ORDER BY ce.start_at ASC" in fake_db.statements[0][0]


@pytest.mark.asyncio
async def test_upcoming_queries_scheduled_window(fake_db):
    before = datetime.now(UTC)
    await CallEventRepository.upcoming(USER_ID, days=3)

    sql, params = fake_db.statements[0]
    assert "ce.status = 'scheduled'" in sql
    user_id, window_start, window_end = params
    assert user_id == USER_ID
    assert window_start >= before
    assert window_end - window_start == timedelta(days=3)


@pytest.mark.asyncio
async def test_scheduled_by_contact_ignores_finished_calls(fake_db):
    other_contact = "11111111-2222-4333-8444-555555555555"
    fake_db.respond(
        "FROM call_events ce",
        rows=[
            make_call_event_row(),
            make_call_event_row(
                id="99999999-2222-4333-8444-555555555555",
                contact_id=other_contact,
                status="completed",
            ),
        ],
    )

    scheduled = await CallEventRepository.scheduled_by_contact(USER_ID)

    assert list(scheduled) == [CONTACT_ID]


@pytest.mark.asyncio
async def test_create_moves_contact_to_scheduled(fake_db, published_events):
    fake_db.respond("SELECT id FROM contacts", rows=[{"id": CONTACT_ID}])
    fake_db.respond("INSERT INTO call_events", rows=[make_call_event_row()])

    event = await CallEventRepository.create(USER_ID, _new_call_fields())

    assert event.status == "scheduled"
    stage_updates = fake_db.executed("UPDATE contacts")
    assert stage_updates[0][1] == ("scheduled", CONTACT_ID, USER_ID)
    assert fake_db.transactions == ["begin", "commit"]
    assert [(e.entity, e.action, e.contact_id) for e in published_events] == [
        ("call_event", "created", CONTACT_ID)
    ]


@pytest.mark.asyncio
async def test_create_without_stage_update(fake_db):
    fake_db.respond("SELECT id FROM contacts", rows=[{"id": CONTACT_ID}])
    fake_db.respond("INSERT INTO call_events", rows=[make_call_event_row()])

    await CallEventRepository.create(USER_ID, _new_call_fields(), update_contact_stage=False)

    assert fake_db.executed("UPDATE contacts") == []


@pytest.mark.asyncio
async def test_create_for_foreign_contact_is_not_found(fake_db):
    with pytest.raises(NotFoundError):
        await CallEventRepository.create(USER_ID, _new_call_fields())

    assert fake_db.executed("INSERT INTO call_events") == []
    assert fake_db.transactions == ["begin", "rollback"]


@pytest.mark.asyncio
async def test_create_rejects_end_before_start(fake_db):
    start = datetime.now(UTC)
    with pytest.raises(ValidationError):
        await CallEventRepository.create(
            USER_ID, _new_call_fields(start_at=start, end_at=start - timedelta(minutes=5))
        )
    assert fake_db.statements == []


@pytest.mark.asyncio
async def test_update_rejects_status_field(fake_db):
    with pytest.raises(ValidationError):
        await CallEventRepository.update(USER_ID, CALL_EVENT_ID, {"status": "completed"})


@pytest.mark.asyncio
async def test_update_missing_event_raises_not_found(fake_db):
    with pytest.raises(NotFoundError):
        await CallEventRepository.update(USER_ID, CALL_EVENT_ID, {"title": "Intro call"})


@pytest.mark.asyncio
async def test_update_end_before_stored_start_is_rejected(fake_db):
    stored = make_call_event_row()
    window = {"start_at": stored["start_at"], "end_at": stored["end_at"]}
    fake_db.respond("FOR UPDATE", rows=[window])

    with pytest.raises(ValidationError, match="end_at"):
        await CallEventRepository.update(
            USER_ID, CALL_EVENT_ID, {"end_at": stored["start_at"] - timedelta(minutes=5)}
        )

    assert fake_db.executed("UPDATE call_events") == []
    assert fake_db.transactions == ["begin", "rollback"]


@pytest.mark.asyncio
async def test_update_start_only_checked_against_stored_end(fake_db):
    stored = make_call_event_row()
    new_start = stored["start_at"] + timedelta(minutes=10)
    window = {"start_at": stored["start_at"], "end_at": stored["end_at"]}
    fake_db.respond("FOR UPDATE", rows=[window])
    fake_db.respond("UPDATE call_events", rows=[make_call_event_row(start_at=new_start)])

    event = await CallEventRepository.update(USER_ID, CALL_EVENT_ID, {"start_at": new_start})

    assert event.start_at == new_start
    assert fake_db.transactions == ["begin", "commit"]


@pytest.mark.asyncio
async def test_update_window_of_missing_event_raises_not_found(fake_db):
    with pytest.raises(NotFoundError):
        await CallEventRepository.update(
            USER_ID, CALL_EVENT_ID, {"end_at": datetime.now(UTC) + timedelta(days=1)}
        )


@pytest.mark.asyncio
async def test_completing_call_moves_contact_to_call_done(fake_db):
    fake_db.respond("UPDATE call_events", rows=[make_call_event_row(status="completed")])

    event = await CallEventRepository.update_status(USER_ID, CALL_EVENT_ID, "completed")

    assert event.status == "completed"
    sql, params = fake_db.executed("UPDATE contacts")[0]
    assert "last_contacted_at = NOW()" in sql
    assert params == ("call_done", CONTACT_ID, USER_ID)
    assert fake_db.transactions == ["begin", "commit"]


@pytest.mark.asyncio
async def test_canceling_call_moves_contact_back_to_messaged(fake_db):
    fake_db.respond("UPDATE call_events", rows=[make_call_event_row(status="canceled")])

    await CallEventRepository.update_status(USER_ID, CALL_EVENT_ID, "canceled")

    sql, params = fake_db.executed("UPDATE contacts")[0]
    assert "last_contacted_at" not in sql
    assert params[0] == "messaged"


@pytest.mark.asyncio
async def test_status_change_without_stage_update(fake_db):
    fake_db.respond("UPDATE call_events", rows=[make_call_event_row(status="completed")])

    await CallEventRepository.update_status(
        USER_ID, CALL_EVENT_ID, "completed", update_contact_stage=False
    )

    assert fake_db.executed("UPDATE contacts") == []


@pytest.mark.asyncio
async def test_deleting_scheduled_call_resets_contact_to_researching(fake_db, published_events):
    fake_db.respond(
        "DELETE FROM call_events", rows=[{"contact_id": CONTACT_ID, "status": "scheduled"}]
    )

    await CallEventRepository.delete(USER_ID, CALL_EVENT_ID)

    assert fake_db.executed("UPDATE contacts")[0][1] == ("researching", CONTACT_ID, USER_ID)
    assert [e.action for e in published_events] == ["deleted"]


@pytest.mark.asyncio
async def test_deleting_completed_call_keeps_contact_stage(fake_db):
    fake_db.respond(
        "DELETE FROM call_events", rows=[{"contact_id": CONTACT_ID, "status": "completed"}]
    )

    await CallEventRepository.delete(USER_ID, CALL_EVENT_ID)

    assert fake_db.executed("UPDATE contacts") == []


@pytest.mark.asyncio
async def test_delete_missing_event_raises_not_found(fake_db, published_events):
    with pytest.raises(NotFoundError):
        await CallEventRepository.delete(USER_ID, CALL_EVENT_ID)
    assert published_events == []

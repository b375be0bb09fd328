import uuid

import pytest
from sqlalchemy import delete, func, select, update

from mehfil.errors import NotFoundError, ValidationError
from mehfil.models.database_models import Event, Registration, ScanEntry
from mehfil.services.cascade_service import CascadeService
from mehfil.services.checkin_service import CheckinService
from mehfil.services.event_service import EventService
from mehfil.services.registration_service import RegistrationService


async def seed(db, event_id, count, scanned=0):
    tickets = []
    for i in range(count):
        registration, _ = await RegistrationService.register(
            db,
            event_id=event_id,
            name=f"Guest {i}",
            phone=f"98{i:08d}",
            email=None,
            registration_type="audience",
        )
        tickets.append(registration.ticket_id)
    for ticket in tickets[:scanned]:
        await CheckinService.record_scan(db, event_id, ticket)
    return tickets


async def count_rows(db, model, event_id):
    result = await db.execute(
        select(func.count(model.id)).where(model.event_id == event_id)
    )
    return result.scalar_one()


async def test_delete_event_removes_children(make_event, db):
    event_id = (await make_event(event_name="Doomed")).id
    keep_id = (await make_event(event_name="Kept")).id
    await seed(db, event_id, 4, scanned=3)
    await seed(db, keep_id, 2, scanned=1)

    counts = await EventService.delete_event(db, event_id)

    assert counts == {"deleted_registrations": 4, "deleted_scan_entries": 3}
    assert await EventService.find_event(db, event_id) is None
    assert await count_rows(db, Registration, event_id) == 0
    assert await count_rows(db, ScanEntry, event_id) == 0

    assert await count_rows(db, Registration, keep_id) == 2
    assert await count_rows(db, ScanEntry, keep_id) == 1


async def test_delete_event_without_children(make_event, db):
    event_id = (await make_event()).id

    counts = await CascadeService.delete_event(db, event_id)

    assert counts == {"deleted_registrations": 0, "deleted_scan_entries": 0}


async def test_delete_malformed_id(db):
    with pytest.raises(ValidationError):
        await CascadeService.delete_event(db, "64b7f0c2e4b0a1a2b3c4d5e6")


async def test_delete_missing_event(db):
    with pytest.raises(NotFoundError):
        await CascadeService.delete_event(db, str(uuid.uuid4()))


async def test_sweep_orphans(make_event, db):
    event_id = (await make_event(event_name="Gone")).id
    keep_id = (await make_event(event_name="Kept")).id
    await seed(db, event_id, 3, scanned=2)
    await seed(db, keep_id, 1, scanned=1)

    # Simulate an interrupted delete that only removed the event row
    await db.execute(delete(Event).where(Event.id == event_id))
    await db.commit()

    counts = await CascadeService.sweep_orphans(db)

    assert counts == {"deleted_registrations": 3, "deleted_scan_entries": 2}
    assert await count_rows(db, Registration, keep_id) == 1
    assert await count_rows(db, ScanEntry, keep_id) == 1

    assert await CascadeService.sweep_orphans(db) == {
        "deleted_registrations": 0,
        "deleted_scan_entries": 0,
    }


async def test_reconcile_counters_repairs_drift(make_event, db):
    event_id = (await make_event()).id
    await seed(db, event_id, 3)

    await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(registered_audience=7, registered_total=7, ticket_sequence=1)
    )
    await db.commit()

    corrections = await CascadeService.reconcile_counters(db, event_id)

    assert len(corrections) == 1
    assert corrections[0]["before"]["audience"] == 7
    assert corrections[0]["after"] == {
        "audience": 3,
        "performers": 0,
        "total": 3,
        "ticketSequence": 3,
    }

    event = await EventService.get_event(db, event_id)
    assert event.registered == {"audience": 3, "performers": 0, "total": 3}
    assert event.ticket_sequence == 3


async def test_reconcile_never_lowers_ticket_sequence(make_event, db):
    event_id = (await make_event()).id
    await seed(db, event_id, 2)

    # Removing a registration must not make its ticket id reusable
    await db.execute(
        delete(Registration).where(Registration.event_id == event_id, Registration.ticket_id == "A0002")
    )
    await db.commit()

    corrections = await CascadeService.reconcile_counters(db)

    assert corrections[0]["after"]["total"] == 1
    assert corrections[0]["after"]["ticketSequence"] == 2

    registration, _ = await RegistrationService.register(
        db, event_id=event_id, name="New", phone="9111111111", email=None,
        registration_type="audience",
    )
    assert registration.ticket_id == "A0003"


async def test_reconcile_reports_nothing_when_consistent(make_event, db):
    event_id = (await make_event()).id
    await seed(db, event_id, 2)

    assert await CascadeService.reconcile_counters(db) == []

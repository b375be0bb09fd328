import asyncio

import pytest
from sqlalchemy import func, select

from mehfil.database import async_session_maker
from mehfil.errors import AlreadyScannedError, InvalidTicketError, ValidationError
from mehfil.models.database_models import ScanEntry
from mehfil.services.checkin_service import CheckinService
from mehfil.services.registration_service import RegistrationService


async def seed(db, event_id, count, performers=0):
    """Register `count` guests (the first `performers` as performers); returns ticket ids."""
    tickets = []
    for i in range(count):
        is_performer = i < performers
        registration, _ = await RegistrationService.register(
            db,
            event_id=event_id,
            name=f"Guest {i + 1}",
            phone=f"90000000{i + 1:02d}",
            email=None,
            registration_type="performer" if is_performer else "audience",
            performance_type="music" if is_performer else None,
        )
        tickets.append(registration.ticket_id)
    return tickets


async def count_entries(db, event_id):
    result = await db.execute(
        select(func.count(ScanEntry.id)).where(ScanEntry.event_id == event_id)
    )
    return result.scalar_one()


async def test_scan_records_entry_and_checks_in(make_event, db):
    event_id = (await make_event()).id
    [ticket] = await seed(db, event_id, 1)

    entry = await CheckinService.record_scan(db, event_id, ticket, operator="gate-1")

    assert entry.ticket_id == ticket
    assert entry.name == "Guest 1"
    assert entry.phone == "9000000001"
    assert entry.registration_type == "audience"

    registration, _ = await RegistrationService.find_registration(db, event_id=event_id, user_id=ticket)
    assert registration.checked_in is True
    assert registration.checked_in_by == "gate-1"
    assert registration.checked_in_at == entry.scanned_at


async def test_scan_defaults_operator(make_event, db):
    event_id = (await make_event()).id
    [ticket] = await seed(db, event_id, 1)

    await CheckinService.record_scan(db, event_id, ticket)

    registration, _ = await RegistrationService.find_registration(db, user_id=ticket)
    assert registration.checked_in_by == "admin-scanner"


async def test_second_scan_is_rejected_with_original_time(make_event, db):
    event_id = (await make_event()).id
    [ticket] = await seed(db, event_id, 1)

    entry = await CheckinService.record_scan(db, event_id, ticket)
    first_scanned_at = entry.scanned_at

    for _ in range(3):
        with pytest.raises(AlreadyScannedError) as exc:
            await CheckinService.record_scan(db, event_id, ticket)
        assert exc.value.scanned_at == first_scanned_at

    assert await count_entries(db, event_id) == 1


async def test_concurrent_duplicate_scan_loses_to_unique_index(make_event, db, monkeypatch):
    event_id = (await make_event()).id
    [ticket] = await seed(db, event_id, 1)
    entry = await CheckinService.record_scan(db, event_id, ticket)
    first_scanned_at = entry.scanned_at

    original = CheckinService.find_scan_entry
    calls = {"n": 0}

    async def misses_once(db, event_id, ticket_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await original(db, event_id, ticket_id)

    monkeypatch.setattr(CheckinService, "find_scan_entry", staticmethod(misses_once))

    with pytest.raises(AlreadyScannedError) as exc:
        await CheckinService.record_scan(db, event_id, ticket)

    assert exc.value.scanned_at == first_scanned_at
    assert await count_entries(db, event_id) == 1


async def test_unknown_ticket_is_invalid(make_event, db):
    event_id = (await make_event()).id
    await seed(db, event_id, 1)

    with pytest.raises(InvalidTicketError):
        await CheckinService.record_scan(db, event_id, "A9999")


async def test_ticket_from_other_event_is_invalid(make_event, db):
    first_id = (await make_event(event_name="One")).id
    second_id = (await make_event(event_name="Two")).id
    [ticket] = await seed(db, first_id, 1)
    assert ticket == "A0001"

    # A0001 exists only for the first event
    with pytest.raises(InvalidTicketError):
        await CheckinService.record_scan(db, second_id, ticket)


@pytest.mark.parametrize("event_id,ticket_id,field", [
    (None, "A0001", "eventId"),
    ("some-event", "", "userId"),
])
async def test_scan_requires_ids(db, event_id, ticket_id, field):
    with pytest.raises(ValidationError) as exc:
        await CheckinService.record_scan(db, event_id, ticket_id)
    assert exc.value.field == field


async def test_not_attended_is_set_difference(make_event, db):
    event_id = (await make_event()).id
    tickets = await seed(db, event_id, 5)

    await CheckinService.record_scan(db, event_id, tickets[0])
    await CheckinService.record_scan(db, event_id, tickets[2])

    not_attended = await CheckinService.list_not_attended(db, event_id)

    assert [r.ticket_id for r in not_attended] == [tickets[1], tickets[3], tickets[4]]


async def test_not_attended_for_other_event_is_unaffected(make_event, db):
    first_id = (await make_event(event_name="One")).id
    second_id = (await make_event(event_name="Two")).id
    first_tickets = await seed(db, first_id, 2)
    second_tickets = await seed(db, second_id, 2)

    await CheckinService.record_scan(db, first_id, first_tickets[0])

    remaining = await CheckinService.list_not_attended(db, second_id)
    assert [r.ticket_id for r in remaining] == second_tickets


async def test_list_entries_most_recent_first(make_event, db):
    event_id = (await make_event()).id
    tickets = await seed(db, event_id, 3)
    for ticket in tickets:
        await CheckinService.record_scan(db, event_id, ticket)

    entries, event = await CheckinService.list_entries(db, event_id)

    assert [e.ticket_id for e in entries] == list(reversed(tickets))
    assert event.id == event_id
    assert event.registered["total"] == 3


async def test_delete_entries_keeps_check_in_flags(make_event, db):
    event_id = (await make_event()).id
    tickets = await seed(db, event_id, 2)
    for ticket in tickets:
        await CheckinService.record_scan(db, event_id, ticket)

    deleted = await CheckinService.delete_entries(db, event_id)

    assert deleted == 2
    assert await count_entries(db, event_id) == 0
    registration, _ = await RegistrationService.find_registration(db, user_id=tickets[0])
    assert registration.checked_in is True


async def test_event_stats(make_event, db):
    event_id = (await make_event()).id
    tickets = await seed(db, event_id, 4, performers=1)
    await CheckinService.record_scan(db, event_id, tickets[0])
    await CheckinService.record_scan(db, event_id, tickets[1])

    stats = await CheckinService.event_stats(db, event_id)

    assert stats["registered"] == 4
    assert stats["attended"] == 2
    assert stats["not_attended"] == 2
    assert stats["by_type"]["performer"] == {"registered": 1, "attended": 1}
    assert stats["by_type"]["audience"] == {"registered": 3, "attended": 1}


async def test_concurrent_scans_record_one_entry(make_event, db):
    event_id = (await make_event()).id
    [ticket] = await seed(db, event_id, 1)

    async def attempt():
        async with async_session_maker() as session:
            entry = await CheckinService.record_scan(session, event_id, ticket)
            return entry.scanned_at

    results = await asyncio.gather(*(attempt() for _ in range(5)), return_exceptions=True)

    recorded = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, AlreadyScannedError)]
    assert len(recorded) == 1
    assert len(rejected) == 4
    assert all(e.scanned_at == recorded[0] for e in rejected)
    assert await count_entries(db, event_id) == 1

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from mehfil.config import settings
from mehfil.errors import NotFoundError, ValidationError
from mehfil.models.database_models import Event
from mehfil.schemas.schemas import Capacity, EventStatus, EventUpdate, Venue
from mehfil.services.event_service import EventService
from tests.conftest import event_payload


async def test_create_event_applies_defaults(db):
    event = await EventService.create_event(db, event_payload(is_active=True))

    assert event.is_active is True
    assert event.registration_open is True
    assert event.status == "upcoming"
    assert event.capacity == {"audience": 300, "performers": 20, "total": 320}
    assert event.registered == {"audience": 0, "performers": 0, "total": 0}
    assert event.ticket_sequence == 0
    assert event.venue["pincode"] == "411001"


async def test_registration_open_follows_is_active_unless_given(db):
    inactive = await EventService.create_event(db, event_payload(is_active=False))
    assert inactive.registration_open is False

    explicit = await EventService.create_event(
        db, event_payload(is_active=False, registration_open=True)
    )
    assert explicit.registration_open is True


@pytest.mark.parametrize("field,overrides", [
    ("eventName", {"event_name": "   "}),
    ("eventDate", {"event_date": None}),
    ("eventTime", {"event_time": None}),
    ("description", {"description": ""}),
    ("venue.pincode", {"venue": Venue(name="Hall", pincode="  ")}),
    ("venue.pincode", {"venue": None}),
])
async def test_create_event_requires_fields(db, field, overrides):
    with pytest.raises(ValidationError) as exc:
        await EventService.create_event(db, event_payload(**overrides))
    assert exc.value.field == field


async def test_create_event_trims_text(db):
    event = await EventService.create_event(
        db,
        event_payload(
            event_name="  Mehfil  ",
            venue=Venue(name=" Hall ", pincode=" 411001 "),
        ),
    )
    assert event.event_name == "Mehfil"
    assert event.venue_name == "Hall"
    assert event.venue_pincode == "411001"


async def test_timezone_aware_dates_are_stored_as_utc(db):
    event = await EventService.create_event(
        db, event_payload(event_date=datetime.fromisoformat("2026-12-01T19:00:00+05:30"))
    )
    assert event.event_date == datetime(2026, 12, 1, 13, 30)


async def test_get_active_event_returns_none_when_empty(db):
    assert await EventService.get_active_event(db) is None


async def test_get_active_event_falls_back_to_latest_upcoming(db):
    soon = datetime.utcnow() + timedelta(days=3)
    later = datetime.utcnow() + timedelta(days=30)
    await EventService.create_event(db, event_payload(event_name="Soon", event_date=soon, is_active=False))
    await EventService.create_event(db, event_payload(event_name="Later", event_date=later, is_active=False))
    await EventService.create_event(
        db,
        event_payload(
            event_name="Done",
            event_date=later + timedelta(days=1),
            is_active=False,
            status=EventStatus.completed,
        ),
    )

    event = await EventService.get_active_event(db)
    assert event.event_name == "Later"


async def test_active_event_wins_over_upcoming(db):
    await EventService.create_event(
        db, event_payload(event_name="Upcoming", is_active=False,
                          event_date=datetime.utcnow() + timedelta(days=60))
    )
    active = await EventService.create_event(db, event_payload(event_name="Live", is_active=True))

    event = await EventService.get_active_event(db)
    assert event.id == active.id


async def test_activating_new_event_deactivates_previous(db):
    first = await EventService.create_event(db, event_payload(event_name="A", is_active=True))
    second = await EventService.create_event(db, event_payload(event_name="B", is_active=True))

    active = await EventService.get_active_event(db)
    assert active.id == second.id

    first = await EventService.get_event(db, first.id)
    assert first.is_active is False

    result = await db.execute(select(Event).where(Event.is_active == True))
    assert len(result.scalars().all()) == 1


async def test_update_with_is_active_switches_active_event(db):
    a = await EventService.create_event(db, event_payload(event_name="A", is_active=True))
    b = await EventService.create_event(db, event_payload(event_name="B", is_active=False))

    await EventService.update_event(db, b.id, EventUpdate(is_active=True))

    assert (await EventService.get_active_event(db)).id == b.id
    assert (await EventService.get_event(db, a.id)).is_active is False


async def test_activate_event(db):
    a = await EventService.create_event(db, event_payload(event_name="A", is_active=True))
    b = await EventService.create_event(db, event_payload(event_name="B", is_active=False))

    activated = await EventService.activate_event(db, b.id)

    assert activated.is_active is True
    assert (await EventService.get_event(db, a.id)).is_active is False


async def test_update_merges_venue_key_by_key(db):
    event = await EventService.create_event(db, event_payload())

    updated = await EventService.update_event(
        db, event.id, EventUpdate(venue=Venue(city="Mumbai"))
    )

    assert updated.venue == {
        "name": "Town Hall",
        "address": "1 Main Road",
        "city": "Mumbai",
        "pincode": "411001",
    }


async def test_update_ignores_null_fields_and_trims(db):
    event = await EventService.create_event(db, event_payload())

    updated = await EventService.update_event(
        db, event.id, EventUpdate(event_name="  Renamed ", description=None)
    )

    assert updated.event_name == "Renamed"
    assert updated.description == "Poetry, stories and music"


async def test_update_capacity_recomputes_total(db):
    event = await EventService.create_event(db, event_payload())

    updated = await EventService.update_event(db, event.id, EventUpdate(capacity=Capacity(audience=100)))

    assert updated.capacity == {"audience": 100, "performers": 20, "total": 120}


async def test_update_cannot_write_registered_counters(db):
    event = await EventService.create_event(db, event_payload())

    data = EventUpdate.model_validate({"eventTime": "8:00 PM", "registered": {"audience": 99}})
    updated = await EventService.update_event(db, event.id, data)

    assert updated.event_time == "8:00 PM"
    assert updated.registered["audience"] == 0


async def test_update_rejects_blank_required_field(db):
    event = await EventService.create_event(db, event_payload())

    with pytest.raises(ValidationError) as exc:
        await EventService.update_event(db, event.id, EventUpdate(event_name="  "))
    assert exc.value.field == "eventName"


async def test_update_unknown_event(db):
    with pytest.raises(NotFoundError):
        await EventService.update_event(db, "7c1f0d3e-0000-4000-8000-000000000000", EventUpdate(event_time="9 PM"))


async def test_activation_retries_when_active_index_rejects_commit(db, monkeypatch):
    a_id = (await EventService.create_event(db, event_payload(event_name="A", is_active=True))).id
    b_id = (await EventService.create_event(db, event_payload(event_name="B", is_active=False))).id

    original = EventService._deactivate_others
    calls = {"n": 0}

    # First pass leaves A active, as if another activation won the race
    async def misses_once(db, event_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return 0
        return await original(db, event_id)

    monkeypatch.setattr(EventService, "_deactivate_others", staticmethod(misses_once))

    activated = await EventService.activate_event(db, b_id)

    assert calls["n"] == 2
    assert activated.id == b_id
    assert activated.is_active is True
    assert (await EventService.get_event(db, a_id)).is_active is False


async def test_activation_gives_up_after_max_retries(db, monkeypatch):
    a_id = (await EventService.create_event(db, event_payload(event_name="A", is_active=True))).id
    b_id = (await EventService.create_event(db, event_payload(event_name="B", is_active=False))).id

    calls = {"n": 0}

    async def never_deactivates(db, event_id):
        calls["n"] += 1
        return 0

    monkeypatch.setattr(EventService, "_deactivate_others", staticmethod(never_deactivates))

    with pytest.raises(IntegrityError):
        await EventService.activate_event(db, b_id)

    assert calls["n"] == settings.ACTIVATION_MAX_RETRIES
    assert (await EventService.get_event(db, a_id)).is_active is True
    assert (await EventService.get_event(db, b_id)).is_active is False

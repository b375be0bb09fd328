"""
Shared fixtures.

Settings are read once at import time, so the test database URL has to be
in the environment before anything from mehfil is imported.
"""
import os
import tempfile
from datetime import datetime, timedelta

_TEST_DIR = tempfile.mkdtemp(prefix="mehfil-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["ADMIN_API_KEY"] = ""
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASS"] = ""
os.environ["SEND_TICKET_ON_REGISTER"] = "false"

import httpx  # noqa: E402
import pytest  # noqa: E402

from mehfil.database import async_session_maker, init_db, drop_db  # noqa: E402
from mehfil.main import app  # noqa: E402
from mehfil.schemas.schemas import EventCreate, Venue, Capacity  # noqa: E402
from mehfil.services.event_service import EventService  # noqa: E402


@pytest.fixture(autouse=True)
async def fresh_database():
    await drop_db()
    await init_db()
    yield


@pytest.fixture
async def db():
    async with async_session_maker() as session:
        yield session


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def event_payload(**overrides) -> EventCreate:
    """A valid event request; keyword overrides replace individual fields."""
    data = dict(
        event_name="Mehfil Night",
        event_date=datetime.utcnow().replace(microsecond=0) + timedelta(days=7),
        event_time="7:00 PM",
        description="Poetry, stories and music",
        venue=Venue(name="Town Hall", address="1 Main Road", city="Pune", pincode="411001"),
        is_active=True,
    )
    data.update(overrides)
    return EventCreate(**data)


@pytest.fixture
def make_event(db):
    async def _make(audience=None, performers=None, **overrides):
        if audience is not None or performers is not None:
            overrides["capacity"] = Capacity(audience=audience, performers=performers)
        return await EventService.create_event(db, event_payload(**overrides))

    return _make

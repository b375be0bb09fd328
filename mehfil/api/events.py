"""
Event API endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from mehfil.database import get_db
from mehfil.dependencies import verify_admin_key
from mehfil.services.event_service import EventService
from mehfil.services.checkin_service import CheckinService
from mehfil.schemas.schemas import (
    EventCreate, EventUpdate, EventOut, EventEnvelope,
    EventDeleteResponse, EventStatsResponse
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.get(
    "",
    response_model=EventEnvelope,
    summary="Get Active Event",
    description="""
    Returns the active event. When no event is active, falls back to the
    most recent upcoming event by date. `event` is null when neither exists.
    """
)
async def get_active_event(
    db: AsyncSession = Depends(get_db)
):
    event = await EventService.get_active_event(db)
    return EventEnvelope(event=EventOut.model_validate(event) if event else None)


@router.post(
    "",
    response_model=EventEnvelope,
    status_code=201,
    dependencies=[Depends(verify_admin_key)],
    summary="Create Event",
    description="""
    Create an event (admin).

    Required: eventName, eventDate, eventTime, description, venue.pincode.
    registrationOpen defaults to isActive. Creating an active event
    deactivates all other events.
    """
)
async def create_event(
    request: EventCreate,
    db: AsyncSession = Depends(get_db)
):
    event = await EventService.create_event(db, request)
    return EventEnvelope(event=EventOut.model_validate(event))


@router.get(
    "/{event_id}",
    response_model=EventEnvelope,
    summary="Get Event"
)
async def get_event(
    event_id: str,
    db: AsyncSession = Depends(get_db)
):
    event = await EventService.get_event(db, event_id)
    return EventEnvelope(event=EventOut.model_validate(event))


@router.get(
    "/{event_id}/stats",
    response_model=EventStatsResponse,
    summary="Event Attendance Stats",
    description="Registered, attended and not-attended counts, overall and per category."
)
async def get_event_stats(
    event_id: str,
    db: AsyncSession = Depends(get_db)
):
    stats = await CheckinService.event_stats(db, event_id)
    return EventStatsResponse(**stats)


@router.patch(
    "/{event_id}",
    response_model=EventEnvelope,
    dependencies=[Depends(verify_admin_key)],
    summary="Update Event",
    description="""
    Partial update (admin). Null or missing fields are left unchanged;
    venue and capacity merge key-by-key. Registered counters cannot be set.
    """
)
async def update_event(
    event_id: str,
    request: EventUpdate,
    db: AsyncSession = Depends(get_db)
):
    event = await EventService.update_event(db, event_id, request)
    return EventEnvelope(event=EventOut.model_validate(event))


@router.delete(
    "/{event_id}",
    response_model=EventDeleteResponse,
    dependencies=[Depends(verify_admin_key)],
    summary="Delete Event",
    description="Delete an event together with its registrations and scan entries (admin)."
)
async def delete_event(
    event_id: str,
    db: AsyncSession = Depends(get_db)
):
    counts = await EventService.delete_event(db, event_id)
    return EventDeleteResponse(
        message="Event and related data deleted successfully",
        **counts
    )

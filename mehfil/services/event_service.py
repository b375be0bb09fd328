"""
Event Service - event store for the single active event.

Only one event may be active at a time. The partial unique index
uq_events_single_active enforces it in the database; activation runs
"unset all others, set this one" inside one transaction and retries when a
concurrent activation wins the index.
"""
from typing import Optional, Callable, Awaitable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, update, and_
from datetime import datetime, timezone
import logging
import uuid

from mehfil.models.database_models import Event
from mehfil.schemas.schemas import EventCreate, EventUpdate
from mehfil.services.cascade_service import CascadeService
from mehfil.errors import ValidationError, NotFoundError
from mehfil.config import settings

logger = logging.getLogger(__name__)


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store datetimes as naive UTC, matching datetime.utcnow() columns."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class EventService:
    """Service for creating, updating and activating events."""

    REQUIRED_TEXT_FIELDS = {
        "event_name": "eventName",
        "event_time": "eventTime",
        "description": "description",
    }

    OPTIONAL_TEXT_FIELDS = ("contact_email",)

    VENUE_FIELDS = ("name", "address", "city", "pincode")

    @staticmethod
    async def get_active_event(db: AsyncSession) -> Optional[Event]:
        """
        Return the active event, else the most recent upcoming event by date.

        Returns None when neither exists.
        """
        active_query = (
            select(Event)
            .where(Event.is_active == True)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(active_query)
        event = result.scalars().first()
        if event:
            return event

        fallback_query = (
            select(Event)
            .where(Event.status == "upcoming")
            .order_by(Event.event_date.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(fallback_query)
        return result.scalars().first()

    @staticmethod
    async def find_event(db: AsyncSession, event_id: str) -> Optional[Event]:
        query = (
            select(Event)
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_event(db: AsyncSession, event_id: str) -> Event:
        event = await EventService.find_event(db, event_id)
        if not event:
            raise NotFoundError("Event not found")
        return event

    @staticmethod
    async def create_event(db: AsyncSession, data: EventCreate) -> Event:
        """
        Create an event.

        registrationOpen defaults to isActive. Creating an active event
        deactivates every other event in the same transaction.
        """
        EventService._check_required(data)

        event_id = str(uuid.uuid4())
        activate = bool(data.is_active)

        async def stage() -> Event:
            event = Event(
                id=event_id,
                status="upcoming",
                is_active=activate,
                registration_open=activate,
                venue_name="",
                venue_address="",
                venue_city="",
                photos=[],
                sponsors=[],
                capacity_audience=settings.DEFAULT_CAPACITY_AUDIENCE,
                capacity_performers=settings.DEFAULT_CAPACITY_PERFORMERS,
                capacity_total=(
                    settings.DEFAULT_CAPACITY_AUDIENCE
                    + settings.DEFAULT_CAPACITY_PERFORMERS
                ),
                registered_audience=0,
                registered_performers=0,
                registered_total=0,
                ticket_sequence=0,
            )
            EventService._apply_fields(event, data)
            db.add(event)
            return event

        event = await EventService._commit_staged(db, stage, activate, event_id)
        logger.info(
            f"Created event {event.id} ({event.event_name}), active={event.is_active}"
        )
        return event

    @staticmethod
    async def update_event(db: AsyncSession, event_id: str, data: EventUpdate) -> Event:
        """
        Merge the provided, non-null fields into an event.

        venue and capacity merge key-by-key. Registered counters are never
        written from here.
        """
        activate = data.is_active is True

        async def stage() -> Event:
            event = await EventService.get_event(db, event_id)
            EventService._apply_fields(event, data)
            event.updated_at = datetime.utcnow()
            return event

        event = await EventService._commit_staged(db, stage, activate, event_id)
        logger.info(f"Updated event {event.id}, active={event.is_active}")
        return event

    @staticmethod
    async def activate_event(db: AsyncSession, event_id: str) -> Event:
        """Make event_id the single active event."""

        async def stage() -> Event:
            event = await EventService.get_event(db, event_id)
            event.is_active = True
            event.updated_at = datetime.utcnow()
            return event

        event = await EventService._commit_staged(db, stage, True, event_id)
        logger.info(f"Activated event {event.id}")
        return event

    @staticmethod
    async def delete_event(db: AsyncSession, event_id: str) -> dict:
        return await CascadeService.delete_event(db, event_id)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _deactivate_others(db: AsyncSession, event_id: str) -> int:
        result = await db.execute(
            update(Event)
            .where(and_(Event.is_active == True, Event.id != event_id))
            .values(is_active=False, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    @staticmethod
    async def _commit_staged(
        db: AsyncSession,
        stage: Callable[[], Awaitable[Event]],
        activate: bool,
        event_id: str,
    ) -> Event:
        """
        Run stage() and commit it, deactivating other events first when
        activate is set.

        The unique active index rejects a commit that races another
        activation; the whole staged change is then rolled back and retried.
        """
        retries = max(1, settings.ACTIVATION_MAX_RETRIES)

        for attempt in range(1, retries + 1):
            event = await stage()
            if activate:
                deactivated = await EventService._deactivate_others(db, event_id)
                if deactivated:
                    logger.info(f"Deactivated {deactivated} other event(s) for {event_id}")

            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                if not activate or attempt == retries:
                    logger.error(
                        f"Event {event_id} commit rejected after {attempt} attempt(s)",
                        exc_info=True
                    )
                    raise
                logger.warning(
                    f"Concurrent activation detected for event {event_id}, "
                    f"retrying ({attempt}/{retries})"
                )
                continue

            break

        await db.refresh(event)
        return event

    @staticmethod
    def _check_required(data: EventCreate) -> None:
        for attr, wire_name in EventService.REQUIRED_TEXT_FIELDS.items():
            value = getattr(data, attr)
            if value is None or not value.strip():
                raise ValidationError(f"{wire_name} is required", field=wire_name)

        if data.event_date is None:
            raise ValidationError("eventDate is required", field="eventDate")

        if data.venue is None or not (data.venue.pincode or "").strip():
            raise ValidationError("venue.pincode is required", field="venue.pincode")

    @staticmethod
    def _apply_fields(event: Event, data: EventCreate) -> None:
        for attr, wire_name in EventService.REQUIRED_TEXT_FIELDS.items():
            value = getattr(data, attr)
            if value is None:
                continue
            value = value.strip()
            if not value:
                raise ValidationError(f"{wire_name} cannot be empty", field=wire_name)
            setattr(event, attr, value)

        for attr in EventService.OPTIONAL_TEXT_FIELDS:
            value = getattr(data, attr)
            if value is not None:
                setattr(event, attr, value.strip() or None)

        if data.event_date is not None:
            event.event_date = _naive_utc(data.event_date)
        if data.published_at is not None:
            event.published_at = _naive_utc(data.published_at)
        if data.status is not None:
            event.status = data.status.value
        if data.is_active is not None:
            event.is_active = data.is_active
        if data.registration_open is not None:
            event.registration_open = data.registration_open
        if data.photos is not None:
            event.photos = [p.strip() for p in data.photos if p and p.strip()]
        if data.sponsors is not None:
            event.sponsors = [s.model_dump(exclude_none=True) for s in data.sponsors]

        if data.venue is not None:
            for key in EventService.VENUE_FIELDS:
                value = getattr(data.venue, key)
                if value is None:
                    continue
                value = value.strip()
                if key == "pincode" and not value:
                    raise ValidationError("venue.pincode cannot be empty", field="venue.pincode")
                setattr(event, f"venue_{key}", value)

        if data.capacity is not None:
            cap = data.capacity
            if cap.audience is not None:
                event.capacity_audience = cap.audience
            if cap.performers is not None:
                event.capacity_performers = cap.performers
            if cap.total is not None:
                event.capacity_total = cap.total
            elif cap.audience is not None or cap.performers is not None:
                event.capacity_total = event.capacity_audience + event.capacity_performers

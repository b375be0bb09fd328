"""
Check-in Service - records ticket scans at the venue.

A scan is an at-most-once transition per (event, ticket): the unique index on
scan_entries decides the winner when two scanners read the same ticket at
once, and every other attempt is reported as already scanned with the
winning timestamp.
"""
from typing import Optional, List, Tuple, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, delete, func, and_
from datetime import datetime
import logging
import uuid

from mehfil.models.database_models import Event, Registration, ScanEntry
from mehfil.services.event_service import EventService
from mehfil.errors import (
    ValidationError, InvalidTicketError, AlreadyScannedError
)
from mehfil.config import settings

logger = logging.getLogger(__name__)


class CheckinService:
    """Service for scan entries and attendance."""

    @staticmethod
    async def find_scan_entry(
        db: AsyncSession,
        event_id: str,
        ticket_id: str
    ) -> Optional[ScanEntry]:
        query = select(ScanEntry).where(
            and_(ScanEntry.event_id == event_id, ScanEntry.ticket_id == ticket_id)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def record_scan(
        db: AsyncSession,
        event_id: Optional[str],
        ticket_id: Optional[str],
        operator: Optional[str] = None
    ) -> ScanEntry:
        """
        Record a scan and mark the registration checked in.

        Raises InvalidTicketError for an unknown ticket and
        AlreadyScannedError when the ticket has been scanned before.
        """
        if not event_id:
            raise ValidationError("Missing eventId or userId", field="eventId")
        if not ticket_id:
            raise ValidationError("Missing eventId or userId", field="userId")

        reg_query = (
            select(Registration)
            .where(and_(
                Registration.event_id == event_id,
                Registration.ticket_id == ticket_id
            ))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(reg_query)
        registration = result.scalar_one_or_none()
        if not registration:
            logger.info(f"Scan rejected: unknown ticket {ticket_id} for event {event_id}")
            raise InvalidTicketError()

        existing = await CheckinService.find_scan_entry(db, event_id, ticket_id)
        if existing:
            logger.info(f"Scan rejected: ticket {ticket_id} already scanned at {existing.scanned_at}")
            raise AlreadyScannedError(existing.scanned_at)

        now = datetime.utcnow()
        entry = ScanEntry(
            id=str(uuid.uuid4()),
            event_id=event_id,
            ticket_id=ticket_id,
            name=registration.name,
            phone=registration.phone,
            registration_type=registration.registration_type,
            scanned_at=now,
        )
        db.add(entry)

        registration.checked_in = True
        registration.checked_in_at = now
        registration.checked_in_by = operator or settings.DEFAULT_OPERATOR

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            winner = await CheckinService.find_scan_entry(db, event_id, ticket_id)
            logger.warning(
                f"Concurrent scan of ticket {ticket_id} for event {event_id} rejected"
            )
            raise AlreadyScannedError(winner.scanned_at if winner else None)

        logger.info(f"Checked in {ticket_id} for event {event_id} by {registration.checked_in_by}")
        return entry

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        event_id: str
    ) -> Tuple[List[ScanEntry], Optional[Event]]:
        """Scan entries for an event, most recent first, plus the event (None if gone)."""
        if not event_id:
            raise ValidationError("Event ID is required", field="eventId")

        query = (
            select(ScanEntry)
            .where(ScanEntry.event_id == event_id)
            .order_by(ScanEntry.scanned_at.desc())
        )
        result = await db.execute(query)
        entries = list(result.scalars().all())

        event = await EventService.find_event(db, event_id)
        return entries, event

    @staticmethod
    async def delete_entries(db: AsyncSession, event_id: str) -> int:
        """Delete all scan entries of an event. Registration check-in flags are kept."""
        if not event_id:
            raise ValidationError("Event ID is required", field="eventId")

        result = await db.execute(
            delete(ScanEntry)
            .where(ScanEntry.event_id == event_id)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        deleted = result.rowcount or 0
        logger.info(f"Deleted {deleted} scan entries for event {event_id}")
        return deleted

    @staticmethod
    async def list_not_attended(db: AsyncSession, event_id: str) -> List[Registration]:
        """Registrations of the event with no scan entry, in registration order."""
        if not event_id:
            raise ValidationError("Event ID is required", field="eventId")

        scanned = select(ScanEntry.ticket_id).where(ScanEntry.event_id == event_id)
        query = (
            select(Registration)
            .where(and_(
                Registration.event_id == event_id,
                Registration.ticket_id.not_in(scanned)
            ))
            .order_by(Registration.registered_at.asc(), Registration.ticket_id.asc())
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def event_stats(db: AsyncSession, event_id: str) -> Dict:
        """Attendance summary for the admin dashboard."""
        await EventService.get_event(db, event_id)

        by_type: Dict[str, Dict[str, int]] = {
            "audience": {"registered": 0, "attended": 0},
            "performer": {"registered": 0, "attended": 0},
        }

        reg_query = (
            select(Registration.registration_type, func.count(Registration.id))
            .where(Registration.event_id == event_id)
            .group_by(Registration.registration_type)
        )
        for reg_type, count in (await db.execute(reg_query)).all():
            by_type.setdefault(reg_type, {"registered": 0, "attended": 0})["registered"] = count

        # Count only entries that still match a registration
        attended_query = (
            select(Registration.registration_type, func.count(ScanEntry.id))
            .select_from(ScanEntry)
            .join(
                Registration,
                and_(
                    Registration.event_id == ScanEntry.event_id,
                    Registration.ticket_id == ScanEntry.ticket_id
                )
            )
            .where(ScanEntry.event_id == event_id)
            .group_by(Registration.registration_type)
        )
        for reg_type, count in (await db.execute(attended_query)).all():
            by_type.setdefault(reg_type, {"registered": 0, "attended": 0})["attended"] = count

        registered = sum(v["registered"] for v in by_type.values())
        attended = sum(v["attended"] for v in by_type.values())

        return {
            "event_id": event_id,
            "registered": registered,
            "attended": attended,
            "not_attended": registered - attended,
            "by_type": by_type,
        }

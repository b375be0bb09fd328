"""
Cascade Service - keeps events, registrations and scan entries consistent.

Child rows point at their event by value only, so deleting an event must
remove its registrations and scan entries in the same transaction. The
orphan sweep and counter reconciliation repair anything that slipped
through (for example rows written by an older deployment).
"""
from typing import Optional, List, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, update, delete, func
from datetime import datetime
import logging
import uuid

from mehfil.models.database_models import Event, Registration, ScanEntry
from mehfil.errors import ValidationError, NotFoundError

logger = logging.getLogger(__name__)


class CascadeService:
    """Service for cascade deletes and consistency repair."""

    @staticmethod
    def validate_event_id(event_id: Optional[str]) -> str:
        try:
            return str(uuid.UUID(str(event_id)))
        except (ValueError, TypeError):
            raise ValidationError("Invalid event ID", field="id")

    @staticmethod
    async def delete_event(db: AsyncSession, event_id: str) -> Dict[str, int]:
        """
        Delete an event with all of its registrations and scan entries.

        The three deletes commit together; on failure nothing is removed.
        """
        event_id = CascadeService.validate_event_id(event_id)

        try:
            result = await db.execute(
                delete(Event)
                .where(Event.id == event_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                raise NotFoundError("Event not found")

            regs = await db.execute(
                delete(Registration)
                .where(Registration.event_id == event_id)
                .execution_options(synchronize_session=False)
            )
            scans = await db.execute(
                delete(ScanEntry)
                .where(ScanEntry.event_id == event_id)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.error(f"Cascade delete of event {event_id} failed, rolled back", exc_info=True)
            raise

        counts = {
            "deleted_registrations": regs.rowcount or 0,
            "deleted_scan_entries": scans.rowcount or 0,
        }
        logger.info(
            f"Deleted event {event_id} with {counts['deleted_registrations']} registrations "
            f"and {counts['deleted_scan_entries']} scan entries"
        )
        return counts

    @staticmethod
    async def sweep_orphans(db: AsyncSession) -> Dict[str, int]:
        """Delete registrations and scan entries whose event no longer exists."""
        event_ids = select(Event.id)

        regs = await db.execute(
            delete(Registration)
            .where(Registration.event_id.not_in(event_ids))
            .execution_options(synchronize_session=False)
        )
        scans = await db.execute(
            delete(ScanEntry)
            .where(ScanEntry.event_id.not_in(event_ids))
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        counts = {
            "deleted_registrations": regs.rowcount or 0,
            "deleted_scan_entries": scans.rowcount or 0,
        }
        if counts["deleted_registrations"] or counts["deleted_scan_entries"]:
            logger.warning(
                f"Orphan sweep removed {counts['deleted_registrations']} registrations "
                f"and {counts['deleted_scan_entries']} scan entries"
            )
        else:
            logger.info("Orphan sweep found nothing to remove")
        return counts

    @staticmethod
    def _ticket_ordinal(ticket_id: str) -> int:
        digits = ticket_id[1:]
        return int(digits) if digits.isdigit() else 0

    @staticmethod
    async def reconcile_counters(
        db: AsyncSession,
        event_id: Optional[str] = None
    ) -> List[Dict]:
        """
        Recompute registered counts from actual registrations.

        ticket_sequence is only ever raised, to at least the highest issued
        ordinal, so no ticket id can be handed out twice. Returns one
        correction per event that changed.
        """
        query = select(Event).execution_options(populate_existing=True)
        if event_id:
            query = query.where(Event.id == event_id)
        events = (await db.execute(query)).scalars().all()

        corrections = []
        for event in events:
            counts_query = (
                select(Registration.registration_type, func.count(Registration.id))
                .where(Registration.event_id == event.id)
                .group_by(Registration.registration_type)
            )
            counts = dict((await db.execute(counts_query)).all())

            tickets = await db.execute(
                select(Registration.ticket_id).where(Registration.event_id == event.id)
            )
            highest = max(
                (CascadeService._ticket_ordinal(t) for t in tickets.scalars().all()),
                default=0
            )

            before = {
                "audience": event.registered_audience,
                "performers": event.registered_performers,
                "total": event.registered_total,
                "ticketSequence": event.ticket_sequence,
            }
            after = {
                "audience": counts.get("audience", 0),
                "performers": counts.get("performer", 0),
                "total": counts.get("audience", 0) + counts.get("performer", 0),
                "ticketSequence": max(event.ticket_sequence, highest),
            }
            if before == after:
                continue

            await db.execute(
                update(Event)
                .where(Event.id == event.id)
                .values(
                    registered_audience=after["audience"],
                    registered_performers=after["performers"],
                    registered_total=after["total"],
                    ticket_sequence=after["ticketSequence"],
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            corrections.append({"event_id": event.id, "before": before, "after": after})
            logger.warning(f"Reconciled counters for event {event.id}: {before} -> {after}")

        await db.commit()
        logger.info(f"Counter reconciliation checked {len(events)} event(s), corrected {len(corrections)}")
        return corrections

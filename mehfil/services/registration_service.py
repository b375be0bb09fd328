"""
Registration Service - one ticket per phone per event, capacity bounded.

Slot reservation and ticket ordinal come from a single conditional UPDATE on
the event row, so concurrent registrations can neither overfill a category
nor share a ticket id. A registration that loses the unique (event, phone)
race gets the winner's ticket back.
"""
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, update, and_, or_
from datetime import datetime
import logging
import uuid

from mehfil.models.database_models import Event, Registration
from mehfil.services.event_service import EventService
from mehfil.services.qr_service import QRService
from mehfil.errors import (
    ValidationError, NotFoundError, RegistrationClosedError, CapacityExceededError
)

logger = logging.getLogger(__name__)


class RegistrationService:
    """Service for registering attendees and performers."""

    REGISTRATION_TYPES = ("audience", "performer")
    PERFORMANCE_TYPES = ("story", "poetry", "shayari", "music", "singing")

    # registration type -> (registered column, capacity column, ticket prefix)
    CATEGORY_COLUMNS = {
        "audience": ("registered_audience", "capacity_audience", "A"),
        "performer": ("registered_performers", "capacity_performers", "P"),
    }

    @staticmethod
    def format_ticket_id(registration_type: str, ordinal: int) -> str:
        prefix = RegistrationService.CATEGORY_COLUMNS[registration_type][2]
        return f"{prefix}{ordinal:04d}"

    @staticmethod
    async def find_by_phone(
        db: AsyncSession,
        event_id: str,
        phone: str
    ) -> Optional[Registration]:
        query = (
            select(Registration)
            .where(and_(Registration.event_id == event_id, Registration.phone == phone))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def register(
        db: AsyncSession,
        event_id: Optional[str],
        name: Optional[str],
        phone: Optional[str],
        email: Optional[str],
        registration_type: Optional[str],
        performance_type: Optional[str] = None
    ) -> Tuple[Registration, bool]:
        """
        Register for an event.

        Returns (registration, already_registered). An existing ticket for the
        same phone is returned unchanged and leaves the counters alone.
        """
        if not event_id:
            raise ValidationError("Event ID is required", field="eventId")

        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name:
            raise ValidationError("Name and phone number are required", field="name")
        if not phone:
            raise ValidationError("Name and phone number are required", field="phone")

        if registration_type not in RegistrationService.REGISTRATION_TYPES:
            raise ValidationError("Invalid registration type", field="registrationType")

        if registration_type == "performer":
            if not performance_type:
                raise ValidationError(
                    "Performance type is required for performers",
                    field="performanceType"
                )
            if performance_type not in RegistrationService.PERFORMANCE_TYPES:
                raise ValidationError("Invalid performance type", field="performanceType")
        else:
            performance_type = None

        event = await EventService.find_event(db, event_id)
        if not event:
            raise NotFoundError("Event not found")

        if not event.registration_open:
            raise RegistrationClosedError()

        existing = await RegistrationService.find_by_phone(db, event_id, phone)
        if existing:
            logger.info(
                f"Phone already registered for event {event_id}, "
                f"returning ticket {existing.ticket_id}"
            )
            return existing, True

        ordinal = await RegistrationService._reserve_slot(db, event_id, registration_type)
        ticket_id = RegistrationService.format_ticket_id(registration_type, ordinal)

        payload = QRService.encode_payload(ticket_id, event_id, name, phone, registration_type)
        registration = Registration(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            event_id=event_id,
            name=name,
            phone=phone,
            email=(email or "").strip() or None,
            registration_type=registration_type,
            performance_type=performance_type,
            qr_code=QRService.render_data_url(payload),
            registered_at=datetime.utcnow(),
            email_sent=False,
            email_sent_at=None,
            checked_in=False,
            checked_in_at=None,
            checked_in_by=None,
        )
        db.add(registration)

        try:
            await db.commit()
        except IntegrityError:
            # Rolling back also releases the slot reserved above
            await db.rollback()
            winner = await RegistrationService.find_by_phone(db, event_id, phone)
            if winner:
                logger.info(
                    f"Concurrent registration for event {event_id} lost the race, "
                    f"returning ticket {winner.ticket_id}"
                )
                return winner, True
            raise

        logger.info(f"New registration {ticket_id} for event {event_id} ({registration_type})")
        return registration, False

    @staticmethod
    async def _reserve_slot(db: AsyncSession, event_id: str, registration_type: str) -> int:
        """
        Increment the category counter and ticket sequence if below capacity.

        Returns the reserved ticket ordinal. The change is left uncommitted
        so it lands together with the registration insert.
        """
        registered_attr, capacity_attr, _ = RegistrationService.CATEGORY_COLUMNS[registration_type]
        registered_col = getattr(Event, registered_attr)
        capacity_col = getattr(Event, capacity_attr)

        result = await db.execute(
            update(Event)
            .where(and_(Event.id == event_id, registered_col < capacity_col))
            .values({
                registered_attr: registered_col + 1,
                "registered_total": Event.registered_total + 1,
                "ticket_sequence": Event.ticket_sequence + 1,
                "updated_at": datetime.utcnow(),
            })
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            logger.info(f"Capacity full for {registration_type} at event {event_id}")
            raise CapacityExceededError(registration_type)

        sequence = await db.execute(
            select(Event.ticket_sequence).where(Event.id == event_id)
        )
        return sequence.scalar_one()

    @staticmethod
    async def find_registration(
        db: AsyncSession,
        event_id: Optional[str] = None,
        user_id: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None
    ) -> Tuple[Registration, Event]:
        """
        Look up a ticket by ticket id (preferred) or phone and/or email.

        With both phone and email, either may match. Raises NotFoundError if
        nothing matches or the owning event no longer exists.
        """
        user_id = (user_id or "").strip()
        phone = (phone or "").strip()
        email = (email or "").strip()

        if not user_id and not phone and not email:
            raise ValidationError("Provide phone, email, or userId", field="userId")

        conditions = []
        if event_id:
            conditions.append(Registration.event_id == event_id)

        if user_id:
            conditions.append(Registration.ticket_id == user_id)
        elif phone and email:
            conditions.append(or_(Registration.phone == phone, Registration.email == email))
        elif phone:
            conditions.append(Registration.phone == phone)
        else:
            conditions.append(Registration.email == email)

        query = (
            select(Registration)
            .where(and_(*conditions))
            .order_by(Registration.registered_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        registration = result.scalars().first()
        if not registration:
            raise NotFoundError("No ticket found with the provided information")

        event = await EventService.find_event(db, registration.event_id)
        if not event:
            raise NotFoundError("Event not found for this ticket")

        return registration, event

    @staticmethod
    async def get_registration(db: AsyncSession, registration_id: str) -> Registration:
        query = (
            select(Registration)
            .where(Registration.id == registration_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        registration = result.scalar_one_or_none()
        if not registration:
            raise NotFoundError("Registration not found")
        return registration

    @staticmethod
    async def mark_email_sent(
        db: AsyncSession,
        registration: Registration,
        email: str
    ) -> Registration:
        registration.email = email.strip()
        registration.email_sent = True
        registration.email_sent_at = datetime.utcnow()
        await db.commit()
        logger.info(f"Ticket {registration.ticket_id} marked as emailed")
        return registration

"""
SQLAlchemy Database Models for the Mehfil registration & check-in service.

Three tables: events, registrations and scan_entries. Child rows reference
their event by event_id value only; the cascade service owns deletion and
the orphan sweep cleans up anything left behind.
"""
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Text, Boolean, DateTime, JSON,
    CheckConstraint, UniqueConstraint, Index, text
)
from mehfil.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


# ============================================
# EVENTS
# ============================================
class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_new_id)
    event_name = Column(Text, nullable=False)
    event_date = Column(DateTime, nullable=False)
    event_time = Column(Text, nullable=False)
    description = Column(Text, nullable=False)

    venue_name = Column(Text, default="")
    venue_address = Column(Text, default="")
    venue_city = Column(Text, default="")
    venue_pincode = Column(Text, nullable=False)

    photos = Column(JSON, default=list)
    sponsors = Column(JSON, default=list)
    contact_email = Column(Text)

    status = Column(Text, default="upcoming", nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    registration_open = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime)

    capacity_audience = Column(Integer, default=300, nullable=False)
    capacity_performers = Column(Integer, default=20, nullable=False)
    capacity_total = Column(Integer, default=320, nullable=False)

    # Written only by the registration service and counter reconciliation
    registered_audience = Column(Integer, default=0, nullable=False)
    registered_performers = Column(Integer, default=0, nullable=False)
    registered_total = Column(Integer, default=0, nullable=False)
    ticket_sequence = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('upcoming', 'ongoing', 'completed', 'cancelled')",
            name="ck_events_status",
        ),
        # At most one row may carry is_active = true
        Index(
            "uq_events_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("idx_events_status_date", "status", "event_date"),
    )

    @property
    def venue(self) -> dict:
        return {
            "name": self.venue_name or "",
            "address": self.venue_address or "",
            "city": self.venue_city or "",
            "pincode": self.venue_pincode or "",
        }

    @property
    def capacity(self) -> dict:
        return {
            "audience": self.capacity_audience,
            "performers": self.capacity_performers,
            "total": self.capacity_total,
        }

    @property
    def registered(self) -> dict:
        return {
            "audience": self.registered_audience,
            "performers": self.registered_performers,
            "total": self.registered_total,
        }


# ============================================
# REGISTRATIONS (one ticket per phone per event)
# ============================================
class Registration(Base):
    __tablename__ = "registrations"

    id = Column(String(36), primary_key=True, default=_new_id)
    ticket_id = Column(String(16), nullable=False)
    event_id = Column(String(36), nullable=False)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    email = Column(Text)
    registration_type = Column(Text, nullable=False)
    performance_type = Column(Text)
    qr_code = Column(Text)
    registered_at = Column(DateTime, default=datetime.utcnow)

    email_sent = Column(Boolean, default=False, nullable=False)
    email_sent_at = Column(DateTime)

    checked_in = Column(Boolean, default=False, nullable=False)
    checked_in_at = Column(DateTime)
    checked_in_by = Column(Text)

    __table_args__ = (
        CheckConstraint(
            "registration_type IN ('audience', 'performer')",
            name="ck_registrations_type",
        ),
        CheckConstraint(
            "performance_type IS NULL OR performance_type IN "
            "('story', 'poetry', 'shayari', 'music', 'singing')",
            name="ck_registrations_performance_type",
        ),
        UniqueConstraint("event_id", "phone", name="uq_registration_event_phone"),
        UniqueConstraint("event_id", "ticket_id", name="uq_registration_event_ticket"),
        Index("idx_registrations_event_checked_in", "event_id", "checked_in"),
        Index("idx_registrations_event_type", "event_id", "registration_type"),
    )


# ============================================
# SCAN ENTRIES (at most one per ticket per event)
# ============================================
class ScanEntry(Base):
    __tablename__ = "scan_entries"

    id = Column(String(36), primary_key=True, default=_new_id)
    event_id = Column(String(36), nullable=False)
    ticket_id = Column(String(16), nullable=False)
    # Snapshot of the registration at scan time
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    registration_type = Column(Text, nullable=False)
    scanned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("event_id", "ticket_id", name="uq_scan_entry_event_ticket"),
        Index("idx_scan_entries_scanned_at", "scanned_at"),
    )

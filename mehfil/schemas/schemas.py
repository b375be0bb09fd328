"""
Pydantic Schemas for the Mehfil registration & check-in APIs.
Request and Response models for all endpoints.

Wire format is camelCase; Python attributes stay snake_case. Request models
accept either spelling so services and tests can build them directly.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================
# ENUMS
# ============================================
class EventStatus(str, Enum):
    upcoming = "upcoming"
    ongoing = "ongoing"
    completed = "completed"
    cancelled = "cancelled"


class RegistrationType(str, Enum):
    audience = "audience"
    performer = "performer"


class PerformanceType(str, Enum):
    story = "story"
    poetry = "poetry"
    shayari = "shayari"
    music = "music"
    singing = "singing"


# ============================================
# EVENT SCHEMAS
# ============================================
class Venue(CamelModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = None


class Capacity(CamelModel):
    audience: Optional[int] = Field(None, ge=0)
    performers: Optional[int] = Field(None, ge=0)
    total: Optional[int] = Field(None, ge=0)


class Sponsor(CamelModel):
    name: str
    logo: str
    website: Optional[str] = None


class EventCreate(CamelModel):
    """Admin request to create an event. Required fields are checked by the service."""
    event_name: Optional[str] = None
    event_date: Optional[datetime] = None
    event_time: Optional[str] = None
    description: Optional[str] = None
    venue: Optional[Venue] = None
    photos: Optional[List[str]] = None
    sponsors: Optional[List[Sponsor]] = None
    contact_email: Optional[str] = None
    status: Optional[EventStatus] = None
    is_active: Optional[bool] = None
    registration_open: Optional[bool] = None
    published_at: Optional[datetime] = None
    capacity: Optional[Capacity] = None


class EventUpdate(EventCreate):
    """Partial update. Fields left out (or null) keep their stored value."""
    pass


class CountsOut(CamelModel):
    audience: int
    performers: int
    total: int


class VenueOut(CamelModel):
    name: str = ""
    address: str = ""
    city: str = ""
    pincode: str = ""


class EventOut(CamelModel):
    id: str = Field(alias="_id")
    event_name: str
    event_date: datetime
    event_time: str
    description: str
    venue: VenueOut
    photos: List[str] = []
    sponsors: List[Dict[str, Any]] = []
    contact_email: Optional[str] = None
    status: str
    is_active: bool
    registration_open: bool
    published_at: Optional[datetime] = None
    capacity: CountsOut
    registered: CountsOut
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EventEnvelope(CamelModel):
    event: Optional[EventOut] = None


class EventDeleteResponse(CamelModel):
    success: bool = True
    message: str
    deleted_registrations: int
    deleted_scan_entries: int


class EventStatsResponse(CamelModel):
    success: bool = True
    event_id: str
    registered: int
    attended: int
    not_attended: int
    by_type: Dict[str, Dict[str, int]]


# ============================================
# REGISTRATION SCHEMAS
# ============================================
class RegistrationCreate(CamelModel):
    """Request to register for an event. Field rules are enforced by the service."""
    event_id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    registration_type: Optional[str] = None
    performance_type: Optional[str] = None


class RegistrationOut(CamelModel):
    # Existing clients read the store id as _id and the ticket id as userId
    id: str = Field(alias="_id")
    ticket_id: str = Field(alias="userId")
    event_id: str
    name: str
    phone: str
    email: Optional[str] = None
    registration_type: str
    performance_type: Optional[str] = None
    qr_code: Optional[str] = None
    registered_at: Optional[datetime] = None
    email_sent: bool = False
    email_sent_at: Optional[datetime] = None
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None


class RegistrationResponse(CamelModel):
    registration: RegistrationOut
    already_registered: bool
    message: str


class RegistrationLookupOut(RegistrationOut):
    event_name: str
    event_date: datetime


class RegistrationLookupResponse(CamelModel):
    success: bool = True
    registration: RegistrationLookupOut


# ============================================
# CHECK-IN SCHEMAS
# ============================================
class ScanEntryCreate(CamelModel):
    """Scanner request: the ticket id travels as userId."""
    event_id: Optional[str] = None
    user_id: Optional[str] = None


class ScanEntryOut(CamelModel):
    id: str = Field(alias="_id")
    event_id: str
    ticket_id: str = Field(alias="userId")
    name: str
    phone: str
    registration_type: str
    scanned_at: datetime


class ScanEntryResponse(CamelModel):
    success: bool = True
    entry: ScanEntryOut


class EventSummary(CamelModel):
    id: str = Field(alias="_id")
    event_name: str
    registered: CountsOut


class ScanEntryListResponse(CamelModel):
    success: bool = True
    entries: List[ScanEntryOut]
    event: Optional[EventSummary] = None


class ScanEntryDeleteResponse(CamelModel):
    success: bool = True
    deleted_count: int


class NotAttendedResponse(CamelModel):
    success: bool = True
    not_attended: List[RegistrationOut]
    total: int


# ============================================
# TICKET EMAIL SCHEMAS
# ============================================
class SendTicketRequest(CamelModel):
    user_id: Optional[str] = None
    email: Optional[str] = None
    event_id: Optional[str] = None


class SendTicketResponse(CamelModel):
    success: bool = True
    message: str
    simulated: bool = False


# ============================================
# SYSTEM SCHEMAS
# ============================================
class HealthResponse(BaseModel):
    status: str
    database: str
    timestamp: datetime


class SweepOrphansResponse(CamelModel):
    success: bool = True
    deleted_registrations: int
    deleted_scan_entries: int


class CounterCorrection(CamelModel):
    event_id: str
    before: Dict[str, int]
    after: Dict[str, int]


class ReconcileCountersResponse(CamelModel):
    success: bool = True
    corrected: List[CounterCorrection]

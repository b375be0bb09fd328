"""
Check-in (scan entry) API endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from mehfil.database import get_db
from mehfil.dependencies import verify_admin_key, get_operator
from mehfil.services.checkin_service import CheckinService
from mehfil.schemas.schemas import (
    ScanEntryCreate, ScanEntryOut, ScanEntryResponse, ScanEntryListResponse,
    ScanEntryDeleteResponse, EventSummary, RegistrationOut, NotAttendedResponse
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/scan-entries", tags=["Check-in"])


@router.post(
    "",
    response_model=ScanEntryResponse,
    summary="Record Scan",
    description="""
    Record a ticket scan and check the registration in.

    - **200**: scan recorded
    - **400**: ticket already scanned (`alreadyScanned: true`, `scannedAt`)
    - **404**: no registration with this ticket id for the event

    The `X-Operator` header names the scanner operator (stored as checkedInBy).
    """
)
async def record_scan(
    request: ScanEntryCreate,
    operator: str = Depends(get_operator),
    db: AsyncSession = Depends(get_db)
):
    entry = await CheckinService.record_scan(
        db, event_id=request.event_id, ticket_id=request.user_id, operator=operator
    )
    return ScanEntryResponse(entry=ScanEntryOut.model_validate(entry))


@router.get(
    "",
    response_model=ScanEntryListResponse,
    summary="List Scan Entries",
    description="Scan entries for an event, most recent first, with an event summary."
)
async def list_scan_entries(
    event_id: Optional[str] = Query(None, alias="eventId"),
    db: AsyncSession = Depends(get_db)
):
    entries, event = await CheckinService.list_entries(db, event_id)
    return ScanEntryListResponse(
        entries=[ScanEntryOut.model_validate(e) for e in entries],
        event=EventSummary.model_validate(event) if event else None,
    )


@router.delete(
    "",
    response_model=ScanEntryDeleteResponse,
    dependencies=[Depends(verify_admin_key)],
    summary="Clear Scan Entries",
    description="Delete every scan entry of an event (admin). Check-in flags are kept."
)
async def delete_scan_entries(
    event_id: Optional[str] = Query(None, alias="eventId"),
    db: AsyncSession = Depends(get_db)
):
    deleted = await CheckinService.delete_entries(db, event_id)
    return ScanEntryDeleteResponse(deleted_count=deleted)


@router.get(
    "/not-attended",
    response_model=NotAttendedResponse,
    summary="Not Attended",
    description="Registrations of an event that have no scan entry."
)
async def list_not_attended(
    event_id: Optional[str] = Query(None, alias="eventId"),
    db: AsyncSession = Depends(get_db)
):
    registrations = await CheckinService.list_not_attended(db, event_id)
    return NotAttendedResponse(
        not_attended=[RegistrationOut.model_validate(r) for r in registrations],
        total=len(registrations),
    )

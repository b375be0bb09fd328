"""
Registration API endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from kombu.exceptions import OperationalError
import logging

from mehfil.config import settings
from mehfil.database import get_db
from mehfil.services.registration_service import RegistrationService
from mehfil.schemas.schemas import (
    RegistrationCreate, RegistrationOut, RegistrationResponse,
    RegistrationLookupOut, RegistrationLookupResponse
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/registrations", tags=["Registrations"])


def _queue_ticket_email(registration_id: str, email: str) -> None:
    from worker.celery_app import celery_app

    try:
        celery_app.send_task(
            "worker.tasks.email_tasks.send_ticket_email",
            args=[registration_id, email]
        )
    except OperationalError as e:
        # Registration is already committed; the ticket can be re-sent via /send-ticket
        logger.error(f"Could not queue ticket email for {registration_id}: {e}")


@router.post(
    "",
    response_model=RegistrationResponse,
    status_code=201,
    summary="Register for Event",
    description="""
    Register a phone number for an event.

    - **201**: new ticket issued
    - **200**: the phone is already registered; the existing ticket is returned
      with `alreadyRegistered: true`
    - **400**: validation failure, registration closed or capacity full
    - **404**: event not found
    """
)
async def create_registration(
    request: RegistrationCreate,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    registration, already_registered = await RegistrationService.register(
        db,
        event_id=request.event_id,
        name=request.name,
        phone=request.phone,
        email=request.email,
        registration_type=request.registration_type,
        performance_type=request.performance_type,
    )

    if already_registered:
        response.status_code = 200
        message = "This phone number is already registered for this event"
    else:
        message = "Registration successful"
        if settings.SEND_TICKET_ON_REGISTER and registration.email:
            _queue_ticket_email(registration.id, registration.email)

    return RegistrationResponse(
        registration=RegistrationOut.model_validate(registration),
        already_registered=already_registered,
        message=message,
    )


@router.get(
    "",
    response_model=RegistrationLookupResponse,
    summary="Retrieve Ticket",
    description="""
    Find a ticket by `userId` (preferred), or by `phone` and/or `email`.
    `eventId` optionally scopes the search.
    """
)
async def get_registration(
    event_id: Optional[str] = Query(None, alias="eventId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    phone: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    registration, event = await RegistrationService.find_registration(
        db, event_id=event_id, user_id=user_id, phone=phone, email=email
    )

    data = RegistrationOut.model_validate(registration).model_dump()
    return RegistrationLookupResponse(
        registration=RegistrationLookupOut(
            **data,
            event_name=event.event_name,
            event_date=event.event_date,
        )
    )

"""
Ticket delivery API endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from mehfil.database import get_db
from mehfil.errors import ValidationError
from mehfil.services.registration_service import RegistrationService
from mehfil.services.email_service import EmailService
from mehfil.schemas.schemas import SendTicketRequest, SendTicketResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Tickets"])


@router.post(
    "/send-ticket",
    response_model=SendTicketResponse,
    summary="Send Ticket by Email",
    description="""
    Email the ticket (with its QR code) for `userId` to `email` and record
    the delivery on the registration. `eventId` narrows the lookup when the
    same ticket id exists for several events.

    Returns 500 when the mail server rejects the message.
    """
)
async def send_ticket(
    request: SendTicketRequest,
    db: AsyncSession = Depends(get_db)
):
    email = (request.email or "").strip()
    if not request.user_id or not email:
        raise ValidationError("Missing userId or email", field="userId" if not request.user_id else "email")

    registration, event = await RegistrationService.find_registration(
        db, event_id=request.event_id, user_id=request.user_id
    )

    result = await EmailService().send_ticket_email(email, registration, event)
    await RegistrationService.mark_email_sent(db, registration, email)

    return SendTicketResponse(
        message="Ticket sent successfully",
        simulated=result.get("simulated", False),
    )

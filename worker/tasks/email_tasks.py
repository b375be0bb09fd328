"""
Email background tasks.
"""
from worker.celery_app import celery_app
import logging

logger = logging.getLogger(__name__)


async def deliver_ticket(registration_id: str, email: str) -> dict:
    """Send one ticket and record the delivery."""
    from mehfil.database import async_session_maker
    from mehfil.services.registration_service import RegistrationService
    from mehfil.services.event_service import EventService
    from mehfil.services.email_service import EmailService

    async with async_session_maker() as db:
        registration = await RegistrationService.get_registration(db, registration_id)
        event = await EventService.get_event(db, registration.event_id)

        result = await EmailService().send_ticket_email(email, registration, event)
        await RegistrationService.mark_email_sent(db, registration, email)

        return {
            "success": True,
            "ticket_id": registration.ticket_id,
            "simulated": result.get("simulated", False),
        }


@celery_app.task(bind=True, name="worker.tasks.email_tasks.send_ticket_email")
def send_ticket_email(self, registration_id: str, email: str):
    """
    Email a registration's ticket asynchronously.

    Transport failures are retried; a registration or event that no longer
    exists is not.
    """
    logger.info(f"Sending ticket for registration {registration_id} to {email}")

    import asyncio
    from mehfil.errors import NotFoundError, TransportError

    try:
        result = asyncio.run(deliver_ticket(registration_id, email))
        logger.info(f"Ticket {result['ticket_id']} delivered to {email}")
        return result

    except NotFoundError as e:
        logger.warning(f"Ticket email skipped for {registration_id}: {e.message}")
        return {"success": False, "error": e.message}

    except TransportError as e:
        logger.error(f"Ticket email error for {registration_id}: {e}")
        raise self.retry(exc=e, countdown=300, max_retries=3)

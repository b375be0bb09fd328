"""
Email Service - delivers tickets via SMTP.
"""
import html
import logging
import aiosmtplib
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, Any

from mehfil.config import settings
from mehfil.errors import TransportError
from mehfil.models.database_models import Event, Registration
from mehfil.services.qr_service import QRService

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending ticket emails via SMTP"""

    QR_CONTENT_ID = "ticket-qr"

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_pass = settings.SMTP_PASS
        self.from_email = settings.SMTP_FROM_EMAIL
        # Check if SMTP is properly configured
        self.smtp_configured = bool(
            self.smtp_host and
            self.smtp_host != "localhost" and
            self.smtp_user and
            self.smtp_pass
        )

    @staticmethod
    def ticket_context(registration: Registration, event: Event) -> Dict[str, str]:
        venue_address = ", ".join(
            part for part in (event.venue_address, event.venue_city) if part
        )
        return {
            "name": registration.name,
            "user_id": registration.ticket_id,
            "category": registration.registration_type.capitalize(),
            "event_name": event.event_name,
            "event_date": event.event_date.strftime("%B %d, %Y"),
            "event_time": event.event_time,
            "venue_name": event.venue_name or "",
            "venue_address": venue_address,
        }

    def build_ticket_message(
        self,
        to_email: str,
        registration: Registration,
        event: Event
    ) -> MIMEMultipart:
        ctx = self.ticket_context(registration, event)

        text_body = (
            f"Hi {ctx['name']},\n\n"
            f"Your ticket for {ctx['event_name']} is confirmed.\n\n"
            f"Ticket ID: {ctx['user_id']} ({ctx['category']})\n"
            f"Date: {ctx['event_date']}\n"
            f"Time: {ctx['event_time']}\n"
            f"Venue: {ctx['venue_name']}\n"
            f"{ctx['venue_address']}\n\n"
            f"Show the QR code in this email at the entrance.\n"
        )
        safe = {key: html.escape(value) for key, value in ctx.items()}
        html_body = f"""
<html>
  <body style="font-family: Arial, sans-serif; color: #222;">
    <h2>{safe['event_name']}</h2>
    <p>Hi {safe['name']}, your ticket is confirmed.</p>
    <table cellpadding="4">
      <tr><td><b>Ticket ID</b></td><td>{safe['user_id']} ({safe['category']})</td></tr>
      <tr><td><b>Date</b></td><td>{safe['event_date']}</td></tr>
      <tr><td><b>Time</b></td><td>{safe['event_time']}</td></tr>
      <tr><td><b>Venue</b></td><td>{safe['venue_name']}<br>{safe['venue_address']}</td></tr>
    </table>
    <p><img src="cid:{self.QR_CONTENT_ID}" alt="Ticket QR code" width="240" height="240"></p>
    <p>Show this QR code at the entrance.</p>
  </body>
</html>
"""

        message = MIMEMultipart("related")
        message["Subject"] = f"Your ticket for {ctx['event_name']} - {ctx['user_id']}"
        message["From"] = self.from_email
        message["To"] = to_email

        alternative = MIMEMultipart("alternative")
        alternative.attach(MIMEText(text_body, "plain"))
        alternative.attach(MIMEText(html_body, "html"))
        message.attach(alternative)

        png = QRService.data_url_to_png(registration.qr_code)
        if png:
            image = MIMEImage(png, _subtype="png")
            image.add_header("Content-ID", f"<{self.QR_CONTENT_ID}>")
            image.add_header("Content-Disposition", "inline", filename=f"{ctx['user_id']}.png")
            message.attach(image)

        return message

    async def send_ticket_email(
        self,
        to_email: str,
        registration: Registration,
        event: Event
    ) -> Dict[str, Any]:
        """
        Send the ticket for a registration.

        Simulates success when SMTP is not configured. Raises TransportError
        when the SMTP server rejects or cannot be reached.
        """
        if not self.smtp_configured:
            logger.warning(f"SMTP not configured - simulating ticket email to {to_email}")
            return {
                "success": True,
                "message": "Email simulated (SMTP not configured)",
                "simulated": True,
            }

        message = self.build_ticket_message(to_email, registration, event)

        try:
            async with aiosmtplib.SMTP(
                hostname=self.smtp_host,
                port=self.smtp_port,
                use_tls=settings.SMTP_USE_TLS,
                start_tls=None if settings.SMTP_USE_TLS else settings.SMTP_START_TLS,
                timeout=settings.SMTP_TIMEOUT
            ) as smtp:
                if self.smtp_user and self.smtp_pass:
                    await smtp.login(self.smtp_user, self.smtp_pass)

                await smtp.send_message(message)
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send ticket {registration.ticket_id} to {to_email}: {e}", exc_info=True)
            raise TransportError() from e

        logger.info(f"Ticket {registration.ticket_id} sent to {to_email}")
        return {
            "success": True,
            "message": "Ticket sent successfully",
            "simulated": False,
        }

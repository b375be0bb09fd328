"""
Services module initialization.
"""
from mehfil.services.cascade_service import CascadeService
from mehfil.services.event_service import EventService
from mehfil.services.qr_service import QRService
from mehfil.services.registration_service import RegistrationService
from mehfil.services.checkin_service import CheckinService
from mehfil.services.email_service import EmailService
from mehfil.services.system_service import SystemService

__all__ = [
    "CascadeService",
    "EventService",
    "QRService",
    "RegistrationService",
    "CheckinService",
    "EmailService",
    "SystemService",
]

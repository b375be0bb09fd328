"""
Domain errors raised by the services.

Each error carries the HTTP status it maps to and any extra fields that go
into the JSON error body. The exception handler in mehfil.main turns them
into responses; services never build HTTP responses themselves.
"""
from datetime import datetime
from typing import Any, Dict, Optional


class MehfilError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(MehfilError):
    """A required field is missing or a value is out of range."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        if self.field:
            body["field"] = self.field
        return body


class NotFoundError(MehfilError):
    status_code = 404


class RegistrationClosedError(MehfilError):
    status_code = 400

    def __init__(self, message: str = "Registration is closed for this event"):
        super().__init__(message)


class CapacityExceededError(MehfilError):
    status_code = 400

    def __init__(self, category: str):
        label = "Audience" if category == "audience" else "Performer"
        super().__init__(f"{label} capacity is full")
        self.category = category

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["category"] = self.category
        return body


class InvalidTicketError(MehfilError):
    status_code = 404

    def __init__(self, message: str = "Invalid QR code or registration not found"):
        super().__init__(message)


class AlreadyScannedError(MehfilError):
    """The ticket already has a scan entry for this event."""

    status_code = 400

    def __init__(self, scanned_at: Optional[datetime]):
        super().__init__("Already scanned")
        self.scanned_at = scanned_at

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["alreadyScanned"] = True
        body["scannedAt"] = self.scanned_at.isoformat() if self.scanned_at else None
        return body


class TransportError(MehfilError):
    """An external delivery channel failed. The cause is logged, not returned."""

    status_code = 500

    def __init__(self, message: str = "Failed to send ticket"):
        super().__init__(message)

"""
Venue scanner client.

Turns decoded QR text into check-in calls against the API. A camera or
barcode reader keeps decoding the same code while it stays in view, so the
debouncer drops repeats of the same text inside a short cooldown. That is
only for the operator's screen: the server decides whether a ticket has
already been used.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import logging
import time

import httpx

from mehfil.config import settings
from mehfil.errors import ValidationError
from mehfil.services.qr_service import QRService

logger = logging.getLogger(__name__)


class ScanDebouncer:
    """Ignore the same decoded text if it repeats within cooldown_seconds."""

    def __init__(
        self,
        cooldown_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        if cooldown_seconds is None:
            cooldown_seconds = settings.SCAN_COOLDOWN_SECONDS
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self._last_text: Optional[str] = None
        self._last_at = 0.0

    def should_process(self, text: str) -> bool:
        now = self.clock()
        if text == self._last_text and now - self._last_at < self.cooldown_seconds:
            return False
        self._last_text = text
        self._last_at = now
        return True


@dataclass
class ScanOutcome:
    # recorded | already_scanned | invalid_ticket | wrong_event | unreadable | ignored | error
    status: str
    message: str
    ticket_id: Optional[str] = None
    entry: Optional[Dict[str, Any]] = None
    scanned_at: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "recorded"


@dataclass
class ScannerClient:
    """
    Posts scans for one event to a running Mehfil API.

    Pass an httpx.Client to reuse a connection pool or to plug in a test
    transport.
    """
    base_url: str
    event_id: str
    operator: Optional[str] = None
    client: Optional[httpx.Client] = None
    debouncer: ScanDebouncer = field(default_factory=ScanDebouncer)
    entries: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        if self.client is None:
            self.client = httpx.Client(base_url=self.base_url, timeout=10.0)
        if self.operator is None:
            self.operator = settings.DEFAULT_OPERATOR

    def close(self) -> None:
        self.client.close()

    def handle(self, text: str) -> ScanOutcome:
        """Process one decoded QR text."""
        if not self.debouncer.should_process(text):
            return ScanOutcome(status="ignored", message="Duplicate read ignored")

        try:
            payload = QRService.decode_payload(text)
        except ValidationError as e:
            return ScanOutcome(status="unreadable", message=e.message)

        if payload.event_id != self.event_id:
            return ScanOutcome(
                status="wrong_event",
                message="Ticket is for a different event",
                ticket_id=payload.user_id,
            )

        try:
            response = self.client.post(
                "/scan-entries",
                json={"eventId": payload.event_id, "userId": payload.user_id},
                headers={"X-Operator": self.operator},
            )
        except httpx.HTTPError as e:
            logger.error(f"Scan request for {payload.user_id} failed: {e}")
            return ScanOutcome(
                status="error",
                message=f"Could not reach server: {e}",
                ticket_id=payload.user_id,
            )

        return self._to_outcome(payload.user_id, response)

    def _to_outcome(self, ticket_id: str, response: httpx.Response) -> ScanOutcome:
        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code == 200 and body.get("success"):
            entry = body.get("entry") or {}
            self.entries.insert(0, entry)
            return ScanOutcome(
                status="recorded",
                message=f"Scanned: {entry.get('name', ticket_id)}",
                ticket_id=ticket_id,
                entry=entry,
                scanned_at=entry.get("scannedAt"),
            )

        if body.get("alreadyScanned"):
            return ScanOutcome(
                status="already_scanned",
                message=f"Already scanned: {ticket_id}",
                ticket_id=ticket_id,
                scanned_at=body.get("scannedAt"),
            )

        if response.status_code == 404:
            return ScanOutcome(
                status="invalid_ticket",
                message=body.get("error", "Ticket not found"),
                ticket_id=ticket_id,
            )

        return ScanOutcome(
            status="error",
            message=body.get("error", f"Unexpected response {response.status_code}"),
            ticket_id=ticket_id,
        )

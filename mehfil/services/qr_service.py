"""
QR Service - ticket payload codec and PNG rendering.

The payload is the wire contract between a registration and the scanner:
a compact JSON object with keys userId, eventId, name, phone and type.
Older printed tickets carry "<eventId>|<userId>" instead; the decoder
accepts both.
"""
import base64
import io
import json
import logging
from typing import Optional

import qrcode
from pydantic import BaseModel

from mehfil.config import settings
from mehfil.errors import ValidationError

logger = logging.getLogger(__name__)


class QRPayload(BaseModel):
    user_id: str
    event_id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    type: Optional[str] = None


class QRService:
    """Encode, decode and render ticket QR codes."""

    @staticmethod
    def encode_payload(
        ticket_id: str,
        event_id: str,
        name: str,
        phone: str,
        registration_type: str
    ) -> str:
        payload = {
            "userId": ticket_id,
            "eventId": event_id,
            "name": name,
            "phone": phone,
            "type": registration_type,
        }
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)

    @staticmethod
    def decode_payload(text: str) -> QRPayload:
        """
        Parse decoded QR text.

        Raises ValidationError when the text is neither a JSON ticket payload
        nor the legacy pipe-separated form.
        """
        raw = (text or "").strip()
        if not raw:
            raise ValidationError("Empty QR code", field="qr")

        if raw.startswith("{"):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                raise ValidationError("Unreadable QR code", field="qr")

            user_id = data.get("userId") if isinstance(data, dict) else None
            event_id = data.get("eventId") if isinstance(data, dict) else None
            if not isinstance(user_id, str) or not isinstance(event_id, str) \
                    or not user_id or not event_id:
                raise ValidationError("QR code is missing userId or eventId", field="qr")

            for key in ("name", "phone", "type"):
                if data.get(key) is not None and not isinstance(data[key], str):
                    raise ValidationError(f"QR code has an invalid {key}", field="qr")

            return QRPayload(
                user_id=user_id,
                event_id=event_id,
                name=data.get("name"),
                phone=data.get("phone"),
                type=data.get("type"),
            )

        parts = raw.split("|")
        if len(parts) == 2 and parts[0].strip() and parts[1].strip():
            return QRPayload(event_id=parts[0].strip(), user_id=parts[1].strip())

        raise ValidationError("Unreadable QR code", field="qr")

    @staticmethod
    def render_png(data: str) -> bytes:
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=settings.QR_BOX_SIZE,
            border=settings.QR_BORDER,
        )
        qr.add_data(data)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()

    @staticmethod
    def render_data_url(data: str) -> str:
        """Render the payload as an embeddable data:image/png;base64 URL."""
        png = QRService.render_png(data)
        return "data:image/png;base64," + base64.b64encode(png).decode("utf-8")

    @staticmethod
    def data_url_to_png(data_url: str) -> Optional[bytes]:
        """Extract PNG bytes from a stored data URL (used for inline email images)."""
        prefix = "data:image/png;base64,"
        if not data_url or not data_url.startswith(prefix):
            return None
        return base64.b64decode(data_url[len(prefix):])

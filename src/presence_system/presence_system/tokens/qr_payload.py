from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass
from typing import Optional

import qrcode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QRPayload:
    session_id: str
    token: str


def encode_payload(session_id: str, token: str) -> str:
    return json.dumps({"sessionId": session_id, "token": token}, separators=(",", ":"))


def decode_payload(text: Optional[str]) -> Optional[QRPayload]:
    """Parse scanned QR text; None for anything that is not a session payload."""
    if not text or not isinstance(text, str):
        return None
    try:
        data = json.loads(text)
    except ValueError:
        logger.info("Scanned QR text is not JSON")
        return None
    if not isinstance(data, dict):
        return None

    session_id = data.get("sessionId")
    token = data.get("token")
    if not isinstance(session_id, str) or not isinstance(token, str) or not session_id or not token:
        return None
    return QRPayload(session_id=session_id, token=token)


def render_png(payload: str, *, box_size: int = 8, border: int = 2) -> bytes:
    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image()

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()

"""QR payload generation and validation service.

Wire format (ASCII, pipe-delimited, 5 fields)::

    VAULTPARK|<userId>|<issuedAtMillis>|<vehicleNumber>|<hash>

``hash`` is the first 8 hex characters of SHA-256 over the first four
fields joined with ``|``. It only detects corrupted or hand-edited
strings; anyone who knows the format can forge a valid code.
"""
import base64
import hashlib
import hmac
import io
from dataclasses import dataclass, asdict
from typing import Optional, Dict

import qrcode

from vaultpark.utils.errors import MalformedPayload, IntegrityMismatch

ISSUER = 'VAULTPARK'
DELIMITER = '|'
FIELD_COUNT = 5
HASH_LENGTH = 8
DEFAULT_VALIDITY_WINDOW_MS = 120000

@dataclass(frozen=True)
class QRPayload:
    """Decoded content of a driver's QR code."""
    issuer: str
    user_id: str
    issued_at: int
    vehicle_number: str
    integrity_hash: str

    def to_dict(self) -> Dict:
        return asdict(self)

class QRService:
    """Service for QR payload operations."""

    @staticmethod
    def compute_hash(user_id: str, issued_at: int, vehicle_number: str) -> str:
        data_string = DELIMITER.join([ISSUER, user_id, str(issued_at), vehicle_number])
        return hashlib.sha256(data_string.encode()).hexdigest()[:HASH_LENGTH]

    @staticmethod
    def encode(user_id: str, vehicle_number: str, issued_at: int) -> str:
        """Build the raw string carried by the QR code."""
        if not user_id or DELIMITER in user_id:
            raise ValueError("user_id must be non-empty and must not contain '|'")
        if not vehicle_number or DELIMITER in vehicle_number:
            raise ValueError("vehicle_number must be non-empty and must not contain '|'")

        integrity_hash = QRService.compute_hash(user_id, int(issued_at), vehicle_number)
        return DELIMITER.join([ISSUER, user_id, str(int(issued_at)), vehicle_number, integrity_hash])

    @staticmethod
    def decode(raw: str) -> QRPayload:
        """
        Parse and verify a scanned string.
        Raises MalformedPayload or IntegrityMismatch.
        """
        if not isinstance(raw, str):
            raise MalformedPayload("QR data must be a string")

        parts = raw.split(DELIMITER)

        if len(parts) != FIELD_COUNT:
            raise MalformedPayload(
                f"Invalid QR code format. Expected {FIELD_COUNT} parts, got {len(parts)}"
            )

        issuer, user_id, issued_at_raw, vehicle_number, provided_hash = parts

        if issuer != ISSUER:
            raise MalformedPayload(f"Invalid QR code prefix. Expected '{ISSUER}', got '{issuer}'")

        if not (issued_at_raw.isascii() and issued_at_raw.isdigit()):
            raise MalformedPayload(f"Invalid timestamp format: '{issued_at_raw}'")

        if not user_id.strip():
            raise MalformedPayload("User ID is empty")

        if not vehicle_number.strip():
            raise MalformedPayload("Vehicle number is empty")

        # Hash covers the timestamp exactly as transmitted
        expected_hash = hashlib.sha256(
            DELIMITER.join(parts[:4]).encode()
        ).hexdigest()[:HASH_LENGTH]

        if not hmac.compare_digest(provided_hash.encode(), expected_hash.encode()):
            raise IntegrityMismatch()

        return QRPayload(
            issuer=issuer,
            user_id=user_id,
            issued_at=int(issued_at_raw),
            vehicle_number=vehicle_number,
            integrity_hash=provided_hash
        )

    @staticmethod
    def is_expired(payload: QRPayload, now: int,
                   validity_window_ms: int = DEFAULT_VALIDITY_WINDOW_MS) -> bool:
        """True once more than ``validity_window_ms`` has passed since issuance."""
        return now - payload.issued_at > validity_window_ms

    @staticmethod
    def try_decode(raw: str) -> tuple[Optional[QRPayload], Optional[str]]:
        """
        Decode without raising.
        Returns: (payload, error_message)
        """
        try:
            return QRService.decode(raw), None
        except (MalformedPayload, IntegrityMismatch) as e:
            return None, e.message

    @staticmethod
    def render_png_base64(raw: str, box_size: int = 10, border: int = 4) -> str:
        """Render the payload as a PNG data URI."""
        qr = qrcode.QRCode(
            version=None,  # Auto-determine size
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=box_size,
            border=border,
        )
        qr.add_data(raw)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffered = io.BytesIO()
        img.save(buffered, format="PNG")
        img_str = base64.b64encode(buffered.getvalue()).decode()

        return f"data:image/png;base64,{img_str}"

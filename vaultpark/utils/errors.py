"""Scan error taxonomy.

Every failure of a scan attempt is terminal for that attempt and is
shown to the operator as ``message``. ``code`` is stable for clients.
"""

class ScanError(Exception):
    """Base class for scan pipeline failures."""

    code = 'scan_error'
    retryable = False
    default_message = 'Scan failed'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            'code': self.code,
            'message': self.message,
            'retryable': self.retryable
        }

class DecodeError(ScanError):
    """QR payload could not be decoded."""
    code = 'decode_error'

class MalformedPayload(DecodeError):
    code = 'malformed_payload'
    default_message = 'Invalid QR code format'

class IntegrityMismatch(DecodeError):
    code = 'integrity_mismatch'
    default_message = 'Invalid QR code hash. Possible tampering detected'

class Expired(ScanError):
    code = 'expired'
    default_message = 'QR code expired. Please request a new one'

class DriverNotFound(ScanError):
    code = 'driver_not_found'
    default_message = 'Driver not found in system'

class VehicleMismatch(ScanError):
    code = 'vehicle_mismatch'

    def __init__(self, expected: str, actual: str = None):
        self.expected = expected
        self.actual = actual
        super().__init__(f'vehicle mismatch, expected {expected}')

    def to_dict(self) -> dict:
        result = super().to_dict()
        result.update({'expected': self.expected, 'actual': self.actual})
        return result

class PersistenceError(ScanError):
    """Store backend failure. The caller may present the code again."""
    code = 'persistence_error'
    retryable = True
    default_message = 'Could not save parking session'

class SessionNotFound(ScanError):
    code = 'session_not_found'
    default_message = 'Parking session no longer exists'

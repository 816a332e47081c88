"""Validation utilities for the application."""
import re
from typing import Dict, Any, Optional, Tuple

class ValidationError(Exception):
    """Custom validation error."""
    pass

class Validator:
    """Validation helper class."""

    VEHICLE_NUMBER_PATTERN = r'^[A-Za-z0-9][A-Za-z0-9 -]{1,18}[A-Za-z0-9]$'

    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format."""
        if not email:
            return False
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return bool(re.match(pattern, email))

    @staticmethod
    def validate_password(password: str) -> Dict[str, Any]:
        """Validate password strength."""
        errors = []

        if not password:
            errors.append("Password is required")
        elif len(password) < 6:
            errors.append("Password must be at least 6 characters long")
        elif len(password) > 128:
            errors.append("Password is too long")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def validate_name(name: str) -> Dict[str, Any]:
        """Validate user name."""
        errors = []

        if not name or not name.strip():
            errors.append("Name is required")
        elif len(name.strip()) < 2:
            errors.append("Name must be at least 2 characters long")
        elif len(name.strip()) > 100:
            errors.append("Name is too long")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def validate_vehicle_number(vehicle_number: str) -> Dict[str, Any]:
        """Validate a licence plate. The pipe is reserved by the QR format."""
        errors = []

        if not vehicle_number or not vehicle_number.strip():
            errors.append("Vehicle number is required")
        elif '|' in vehicle_number:
            errors.append("Vehicle number must not contain '|'")
        elif not re.match(Validator.VEHICLE_NUMBER_PATTERN, vehicle_number.strip()):
            errors.append("Invalid vehicle number")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def parse_pagination(args, default_limit: int, max_limit: int) -> Tuple[int, int]:
        """Read ``limit``/``offset`` query args, clamped to sane bounds."""
        try:
            limit = int(args.get('limit', default_limit))
            offset = int(args.get('offset', 0))
        except (TypeError, ValueError):
            raise ValidationError("limit and offset must be integers")

        if limit < 1 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")

        return min(limit, max_limit), offset

    @staticmethod
    def parse_millis(value: Optional[str], field: str) -> Optional[int]:
        """Parse an optional epoch-milliseconds query value."""
        if value in (None, ''):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must be epoch milliseconds")

"""Models package with all models."""
from .base import BaseModel
from .user import User, UserRole
from .parking_session import ParkingSession, SessionStatus
from .pricing_tier import PricingTier
from .scanner_state import ScannerState

__all__ = [
    'BaseModel', 'User', 'UserRole',
    'ParkingSession', 'SessionStatus',
    'PricingTier', 'ScannerState'
]

"""User model for drivers and security operators."""
from enum import Enum
from werkzeug.security import generate_password_hash, check_password_hash
from vaultpark import db
from vaultpark.models.base import BaseModel

class UserRole(Enum):
    """User roles enumeration."""
    DRIVER = 'DRIVER'
    SECURITY = 'SECURITY'

class User(BaseModel):
    """User model for all system users."""

    __tablename__ = 'users'

    # Basic Information
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20), nullable=True)

    # Role
    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.DRIVER)

    # Driver details
    vehicle_number = db.Column(db.String(20), nullable=True)
    membership_type = db.Column(db.String(30), nullable=True)

    # Account state
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)
    failed_login_attempts = db.Column(db.Integer, default=0)

    def set_password(self, password: str) -> None:
        """Set user password with hashing."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Check if provided password matches user's password."""
        return check_password_hash(self.password_hash, password)

    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER

    def is_security(self) -> bool:
        return self.role == UserRole.SECURITY

    def to_dict(self, exclude: list = None) -> dict:
        """Convert to dictionary excluding sensitive data."""
        default_exclude = ['password_hash', 'failed_login_attempts']
        exclude = (exclude or []) + default_exclude

        result = super().to_dict(exclude=exclude)
        result['role'] = self.role.value if self.role else None

        return result

    def __repr__(self) -> str:
        return f'<User {self.email}>'

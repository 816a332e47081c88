"""Parking session recorded at the gate."""
from enum import Enum
from vaultpark import db
from vaultpark.models.base import BaseModel

class SessionStatus(Enum):
    """Parking session lifecycle. Only ACTIVE -> COMPLETED is allowed."""
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'

class ParkingSession(BaseModel):
    """A driver's stay between an entry scan and an exit scan."""

    __tablename__ = 'parking_sessions'

    # Denormalized driver info captured at entry
    driver_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=False, index=True)
    driver_name = db.Column(db.String(255), nullable=False)
    vehicle_number = db.Column(db.String(20), nullable=False)

    # Epoch milliseconds
    entry_time = db.Column(db.BigInteger, nullable=False, index=True)
    exit_time = db.Column(db.BigInteger, nullable=True)

    gate_location = db.Column(db.String(100), nullable=False)
    scanned_by_guard_id = db.Column(db.String(32), nullable=False)
    guard_name = db.Column(db.String(255), nullable=True)
    exit_guard_id = db.Column(db.String(32), nullable=True)

    status = db.Column(db.Enum(SessionStatus), nullable=False, default=SessionStatus.ACTIVE, index=True)

    __table_args__ = (
        db.CheckConstraint('exit_time IS NULL OR exit_time >= entry_time', name='ck_exit_after_entry'),
        # At most one ACTIVE session per driver
        db.Index(
            'uq_active_session_per_driver',
            'driver_id',
            unique=True,
            sqlite_where=db.text("status = 'ACTIVE'"),
            postgresql_where=db.text("status = 'ACTIVE'")
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE and self.exit_time is None

    def to_dict(self, exclude: list = None) -> dict:
        result = super().to_dict(exclude=exclude)
        result['status'] = self.status.value if self.status else None
        return result

    def __repr__(self) -> str:
        return f'<ParkingSession {self.id} {self.vehicle_number} {self.status.value if self.status else None}>'

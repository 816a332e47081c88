"""Persisted scan state for one security operator."""
from vaultpark import db
from vaultpark.models.base import BaseModel

class ScannerState(BaseModel):
    """Row backing an operator's scan state machine between requests."""

    __tablename__ = 'scanner_states'

    guard_id = db.Column(db.String(32), db.ForeignKey('users.id'), unique=True, nullable=False, index=True)
    selected_gate = db.Column(db.String(100), nullable=True)

    state = db.Column(db.String(20), nullable=False, default='IDLE')
    state_changed_at = db.Column(db.BigInteger, nullable=True)
    message = db.Column(db.String(255), nullable=True)
    error_code = db.Column(db.String(40), nullable=True)
    session_id = db.Column(db.String(32), nullable=True)
    scan_type = db.Column(db.String(10), nullable=True)
    reset_at = db.Column(db.BigInteger, nullable=True)
    detail = db.Column(db.JSON, nullable=True)

    # Debounce memory
    last_scanned_raw = db.Column(db.Text, nullable=True)
    last_scanned_at = db.Column(db.BigInteger, nullable=True)

    @classmethod
    def for_guard(cls, guard_id: str, default_gate: str = None) -> 'ScannerState':
        """Load the operator's row, creating it on first use."""
        row = cls.query.filter_by(guard_id=guard_id).first()
        if row is None:
            row = cls(guard_id=guard_id, selected_gate=default_gate, state='IDLE')
            db.session.add(row)
            db.session.commit()
        return row

    def __repr__(self) -> str:
        return f'<ScannerState {self.guard_id} {self.state}>'

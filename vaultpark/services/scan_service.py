"""Gate scan state machine.

One machine per security operator::

    IDLE --scan--> PROCESSING --> SUCCESS | ERROR --> IDLE

ERROR returns to IDLE by itself once ``error_reset_ms`` has elapsed;
SUCCESS stays until the operator acknowledges it with
``reset_scan_state()``. New input is admitted only in IDLE, and the
same raw string is ignored for ``debounce_ms`` after it was admitted.
Together these keep repeated camera frames of one code from opening
or closing a session twice.

Timers are deadlines checked against the injected clock, so the
machine never sleeps and can be restored from a stored snapshot.
"""
import logging
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from vaultpark.services.billing_service import BillingService
from vaultpark.services.qr_service import QRService, DEFAULT_VALIDITY_WINDOW_MS
from vaultpark.services.session_store import SessionStore, ParkingSessionDraft
from vaultpark.models.user import UserRole
from vaultpark.utils.errors import (
    ScanError, Expired, DriverNotFound, VehicleMismatch
)
from vaultpark.utils.helpers import now_ms

logger = logging.getLogger(__name__)

class ScanState(Enum):
    IDLE = 'IDLE'
    PROCESSING = 'PROCESSING'
    SUCCESS = 'SUCCESS'
    ERROR = 'ERROR'

class ScanType(Enum):
    ENTRY = 'ENTRY'
    EXIT = 'EXIT'

@dataclass(frozen=True)
class Operator:
    """The security operator performing scans."""
    guard_id: str
    guard_name: Optional[str] = None

@dataclass
class ScannerSettings:
    validity_window_ms: int = DEFAULT_VALIDITY_WINDOW_MS
    debounce_ms: int = 3000
    error_reset_ms: int = 2000
    processing_timeout_ms: int = 30000
    normalize_vehicle_numbers: bool = False
    default_hourly_rate: float = 5.0
    billing_timezone: str = 'UTC'

    @classmethod
    def from_config(cls, config) -> 'ScannerSettings':
        return cls(
            validity_window_ms=config.get('QR_VALIDITY_WINDOW_MS', DEFAULT_VALIDITY_WINDOW_MS),
            debounce_ms=config.get('SCAN_DEBOUNCE_MS', 3000),
            error_reset_ms=config.get('SCAN_ERROR_RESET_MS', 2000),
            processing_timeout_ms=config.get('SCAN_PROCESSING_TIMEOUT_MS', 30000),
            normalize_vehicle_numbers=config.get('VEHICLE_NUMBER_NORMALIZATION', False),
            default_hourly_rate=config.get('DEFAULT_HOURLY_RATE', 5.0),
            billing_timezone=config.get('BILLING_TIMEZONE', 'UTC')
        )

@dataclass
class ScanSnapshot:
    """Everything the machine needs to resume after a restart."""
    state: ScanState = ScanState.IDLE
    changed_at: Optional[int] = None
    message: Optional[str] = None
    error_code: Optional[str] = None
    session_id: Optional[str] = None
    scan_type: Optional[ScanType] = None
    reset_at: Optional[int] = None
    detail: Optional[Dict[str, Any]] = None
    last_scanned_raw: Optional[str] = None
    last_scanned_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['state'] = self.state.value
        data['scan_type'] = self.scan_type.value if self.scan_type else None
        data.pop('last_scanned_raw')
        return data

@dataclass
class ScanResult:
    """Outcome of one ``scan()`` call."""
    accepted: bool
    snapshot: ScanSnapshot
    ignored_reason: Optional[str] = None  # 'busy' or 'debounced'
    session: Any = None

SnapshotListener = Callable[[ScanSnapshot], None]

class ScanStateMachine:
    """Resolves scanned QR payloads into entry and exit session mutations."""

    def __init__(
        self,
        store: SessionStore,
        settings: ScannerSettings = None,
        clock: Callable[[], int] = now_ms,
        snapshot: ScanSnapshot = None
    ):
        self.store = store
        self.settings = settings or ScannerSettings()
        self.clock = clock
        self._snapshot = snapshot or ScanSnapshot()
        self._listeners: List[SnapshotListener] = []

    # =================== OBSERVATION ===================

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener`` with the new snapshot after every transition."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def snapshot(self) -> ScanSnapshot:
        self._expire_timers(self.clock())
        return self._snapshot

    @property
    def state(self) -> ScanState:
        return self.snapshot.state

    # =================== TRANSITIONS ===================

    def scan(self, raw: str, gate: str, operator: Operator) -> ScanResult:
        """Process one scanned string. Never raises for scan failures."""
        now = self.clock()
        self._expire_timers(now)

        if self._snapshot.state != ScanState.IDLE:
            logger.debug("Scan ignored, scanner is %s", self._snapshot.state.value)
            return ScanResult(accepted=False, snapshot=self._snapshot, ignored_reason='busy')

        if (raw == self._snapshot.last_scanned_raw
                and self._snapshot.last_scanned_at is not None
                and now - self._snapshot.last_scanned_at < self.settings.debounce_ms):
            logger.debug("Scan ignored, same code within debounce window")
            return ScanResult(accepted=False, snapshot=self._snapshot, ignored_reason='debounced')

        self._transition(
            ScanState.PROCESSING, now,
            last_scanned_raw=raw,
            last_scanned_at=now
        )
        logger.info("Scan admitted by operator %s at %s", operator.guard_id, gate)

        session = None
        try:
            session = self._resolve(raw, gate, operator, now)
        except ScanError as e:
            logger.warning("Scan rejected (%s): %s", e.code, e.message)
            self._fail(e.code, e.message, detail=e.to_dict())
        except Exception as e:
            logger.exception("Unexpected error while processing scan")
            self._fail('unexpected_error', f"Error: {str(e)}")

        return ScanResult(accepted=True, snapshot=self._snapshot, session=session)

    def reset_scan_state(self) -> ScanSnapshot:
        """Operator acknowledgement: back to IDLE and forget the last code."""
        self._transition(
            ScanState.IDLE, self.clock(),
            last_scanned_raw=None,
            last_scanned_at=None
        )
        return self._snapshot

    # =================== RESOLUTION ===================

    def _resolve(self, raw: str, gate: str, operator: Operator, now: int):
        payload = QRService.decode(raw)

        if QRService.is_expired(payload, now, self.settings.validity_window_ms):
            raise Expired()

        driver = self.store.find_user(payload.user_id)
        if driver is None or not getattr(driver, 'is_active', True):
            raise DriverNotFound()
        if driver.role != UserRole.DRIVER:
            raise DriverNotFound("QR code does not belong to a driver")

        active_session = self.store.find_active_session(payload.user_id)

        if active_session is None:
            return self._handle_entry(driver, payload, gate, operator)
        return self._handle_exit(driver, active_session, payload, operator)

    def _handle_entry(self, driver, payload, gate: str, operator: Operator):
        draft = ParkingSessionDraft(
            driver_id=driver.id,
            driver_name=driver.name,
            vehicle_number=payload.vehicle_number,
            entry_time=self.clock(),
            gate_location=gate,
            scanned_by_guard_id=operator.guard_id,
            guard_name=operator.guard_name
        )
        session = self.store.create_session(draft)

        self._succeed(ScanType.ENTRY, session, {
            'session': self._session_summary(session),
            'gate_location': gate
        })
        return session

    def _handle_exit(self, driver, active_session, payload, operator: Operator):
        if not self._same_vehicle(active_session.vehicle_number, payload.vehicle_number):
            raise VehicleMismatch(expected=active_session.vehicle_number, actual=payload.vehicle_number)

        # Nothing after close_session may raise
        tier = self.store.resolve_tier(driver, self.settings.default_hourly_rate)

        exit_time = self.clock()
        session = self.store.close_session(active_session.id, exit_time, guard_id=operator.guard_id)

        duration = BillingService.duration_ms(session.entry_time, session.exit_time)
        amount = BillingService.session_amount(
            session.entry_time, session.exit_time, tier, self.settings.billing_timezone
        )

        self._succeed(ScanType.EXIT, session, {
            'session': self._session_summary(session),
            'duration_ms': duration,
            'duration': BillingService.duration_breakdown(duration).to_dict(),
            'hourly_rate': tier.hourly_rate,
            'daily_cap': tier.daily_cap,
            'amount': amount
        })
        return session

    def _same_vehicle(self, expected: str, actual: str) -> bool:
        if self.settings.normalize_vehicle_numbers:
            return expected.strip().upper() == actual.strip().upper()
        return expected == actual

    # =================== STATE HELPERS ===================

    def _succeed(self, scan_type: ScanType, session, detail: Dict[str, Any]) -> None:
        logger.info("%s recorded for driver %s, session %s",
                    scan_type.value.lower(), session.driver_id, session.id)
        self._transition(
            ScanState.SUCCESS, self.clock(),
            message='Entry recorded' if scan_type == ScanType.ENTRY else 'Exit recorded',
            session_id=session.id,
            scan_type=scan_type,
            detail=detail
        )

    def _fail(self, code: str, message: str, detail: Dict[str, Any] = None) -> None:
        now = self.clock()
        self._transition(
            ScanState.ERROR, now,
            message=message,
            error_code=code,
            reset_at=now + self.settings.error_reset_ms,
            detail=detail
        )

    def _expire_timers(self, now: int) -> None:
        snap = self._snapshot

        if snap.state == ScanState.ERROR and snap.reset_at is not None and now >= snap.reset_at:
            self._transition(ScanState.IDLE, now)
        elif (snap.state == ScanState.PROCESSING and snap.changed_at is not None
                and now - snap.changed_at > self.settings.processing_timeout_ms):
            logger.warning("Abandoned scan found (processing since %s), releasing scanner",
                           snap.changed_at)
            self._transition(ScanState.IDLE, now)

    def _transition(self, state: ScanState, now: int, **changes) -> None:
        # Result fields never leak from one state into the next
        base = replace(
            self._snapshot,
            message=None,
            error_code=None,
            session_id=None,
            scan_type=None,
            reset_at=None,
            detail=None
        )
        self._snapshot = replace(base, state=state, changed_at=now, **changes)

        for listener in list(self._listeners):
            listener(self._snapshot)

    @staticmethod
    def _session_summary(session) -> Dict[str, Any]:
        status = getattr(session, 'status', None)
        return {
            'id': session.id,
            'driver_id': session.driver_id,
            'driver_name': session.driver_name,
            'vehicle_number': session.vehicle_number,
            'entry_time': session.entry_time,
            'exit_time': session.exit_time,
            'gate_location': session.gate_location,
            'status': status.value if isinstance(status, Enum) else status
        }

# =================== PERSISTENCE ===================

def snapshot_from_row(row) -> ScanSnapshot:
    """Rebuild a snapshot from a ``ScannerState`` row."""
    return ScanSnapshot(
        state=ScanState(row.state or ScanState.IDLE.value),
        changed_at=row.state_changed_at,
        message=row.message,
        error_code=row.error_code,
        session_id=row.session_id,
        scan_type=ScanType(row.scan_type) if row.scan_type else None,
        reset_at=row.reset_at,
        detail=row.detail,
        last_scanned_raw=row.last_scanned_raw,
        last_scanned_at=row.last_scanned_at
    )

def apply_snapshot(row, snapshot: ScanSnapshot) -> None:
    """Copy a snapshot onto a ``ScannerState`` row (caller commits)."""
    row.state = snapshot.state.value
    row.state_changed_at = snapshot.changed_at
    row.message = snapshot.message
    row.error_code = snapshot.error_code
    row.session_id = snapshot.session_id
    row.scan_type = snapshot.scan_type.value if snapshot.scan_type else None
    row.reset_at = snapshot.reset_at
    row.detail = snapshot.detail
    row.last_scanned_raw = snapshot.last_scanned_raw
    row.last_scanned_at = snapshot.last_scanned_at

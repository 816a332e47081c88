"""Tests for the gate scan state machine."""
from datetime import datetime, timezone

import pytest
from vaultpark import db
from vaultpark.models.parking_session import ParkingSession, SessionStatus
from vaultpark.models.scanner_state import ScannerState
from vaultpark.services.qr_service import QRService
from vaultpark.services.scan_service import (
    ScanStateMachine, ScannerSettings, ScanSnapshot, ScanState, ScanType, Operator,
    snapshot_from_row, apply_snapshot
)
from vaultpark.services.session_store import SQLAlchemySessionStore
from vaultpark.utils.errors import PersistenceError

T = 1_700_000_000_000
GATE = 'Main Entrance'
OPERATOR = Operator(guard_id='g1', guard_name='Gate Guard')

class SpyStore(SQLAlchemySessionStore):
    def __init__(self):
        super().__init__()
        self.calls = []

    def find_user(self, user_id):
        self.calls.append(('find_user', user_id))
        return super().find_user(user_id)

    def find_active_session(self, driver_id):
        self.calls.append(('find_active_session', driver_id))
        return super().find_active_session(driver_id)

class FailingStore(SQLAlchemySessionStore):
    def create_session(self, draft):
        raise PersistenceError("Failed to create parking session: backend unavailable")

class ExplodingStore(SQLAlchemySessionStore):
    def find_active_session(self, driver_id):
        raise RuntimeError("boom")

class TierDownStore(SQLAlchemySessionStore):
    def find_tier(self, user):
        raise PersistenceError("Failed to load pricing tier: backend unavailable")

@pytest.fixture
def store(app):
    return SpyStore()

@pytest.fixture
def settings():
    return ScannerSettings(default_hourly_rate=50.0)

@pytest.fixture
def machine(store, settings, clock):
    return ScanStateMachine(store, settings=settings, clock=clock)

def code(user_id='u1', vehicle='KA01AB1234', issued_at=T):
    return QRService.encode(user_id, vehicle, issued_at)

def active_sessions(driver_id='u1'):
    return ParkingSession.query.filter_by(driver_id=driver_id, status=SessionStatus.ACTIVE).all()

def test_entry_scan_creates_active_session(machine, driver, clock):
    clock.now = T + 1000

    result = machine.scan(code(), GATE, OPERATOR)

    assert result.accepted
    assert machine.state == ScanState.SUCCESS
    assert result.snapshot.scan_type == ScanType.ENTRY

    session = result.session
    assert session.driver_id == 'u1'
    assert session.driver_name == 'Test Driver'
    assert session.vehicle_number == 'KA01AB1234'
    assert session.status == SessionStatus.ACTIVE
    assert session.entry_time == T + 1000
    assert session.gate_location == GATE
    assert session.scanned_by_guard_id == 'g1'
    assert session.guard_name == 'Gate Guard'
    assert len(active_sessions()) == 1

def test_exit_scan_closes_session_and_bills(machine, driver, clock):
    clock.now = T + 1000
    entry = machine.scan(code(), GATE, OPERATOR).session
    machine.reset_scan_state()

    clock.now = T + 3_600_000 + 2000
    result = machine.scan(code(issued_at=T + 3_600_000), GATE, OPERATOR)

    assert machine.state == ScanState.SUCCESS
    assert result.snapshot.scan_type == ScanType.EXIT

    closed = result.session
    assert closed.id == entry.id
    assert closed.status == SessionStatus.COMPLETED
    assert closed.exit_time == T + 3_602_000
    assert closed.exit_guard_id == 'g1'
    assert active_sessions() == []

    detail = result.snapshot.detail
    assert detail['duration_ms'] == 3_601_000
    assert detail['duration'] == {'hours': 1, 'minutes': 0, 'seconds': 1}
    assert detail['amount'] == pytest.approx(50.0, rel=1e-3)

def test_exit_uses_driver_pricing_tier(machine, driver, gold_tier, clock):
    driver.update(membership_type='Gold')
    morning = int(datetime(2024, 3, 5, 8, 0, tzinfo=timezone.utc).timestamp() * 1000)

    clock.now = morning
    machine.scan(code(issued_at=morning), GATE, OPERATOR)
    machine.reset_scan_state()

    # 10 hours at 5.0 on one calendar day hits the 40.0 daily cap
    clock.now = morning + 10 * 3_600_000
    result = machine.scan(code(issued_at=clock.now), GATE, OPERATOR)

    assert result.snapshot.detail['hourly_rate'] == 5.0
    assert result.snapshot.detail['daily_cap'] == 40.0
    assert result.snapshot.detail['amount'] == 40.0

def test_expired_code_is_rejected_without_mutation(machine, driver, clock):
    clock.now = T + 121_000

    result = machine.scan(code(), GATE, OPERATOR)

    assert result.accepted
    assert machine.state == ScanState.ERROR
    assert result.snapshot.error_code == 'expired'
    assert ParkingSession.query.count() == 0

def test_malformed_code_never_reaches_the_store(machine, store, driver):
    result = machine.scan('NOTVAULTPARK|x', GATE, OPERATOR)

    assert machine.state == ScanState.ERROR
    assert result.snapshot.error_code == 'malformed_payload'
    assert store.calls == []

def test_tampered_code(machine, store, driver):
    tampered = code().replace('KA01AB1234', 'KA01AB9999')

    result = machine.scan(tampered, GATE, OPERATOR)

    assert result.snapshot.error_code == 'integrity_mismatch'
    assert store.calls == []

def test_unknown_driver(machine):
    result = machine.scan(code(user_id='ghost'), GATE, OPERATOR)

    assert result.snapshot.error_code == 'driver_not_found'
    assert result.snapshot.message == 'Driver not found in system'

def test_security_user_code_is_not_a_driver(machine, guard):
    result = machine.scan(code(user_id='g1'), GATE, OPERATOR)
    assert result.snapshot.error_code == 'driver_not_found'

def test_vehicle_mismatch_keeps_session_open(machine, driver, clock):
    machine.scan(code(), GATE, OPERATOR)
    machine.reset_scan_state()

    clock.advance(60_000)
    result = machine.scan(code(vehicle='KA99ZZ0000', issued_at=clock.now), GATE, OPERATOR)

    assert machine.state == ScanState.ERROR
    assert result.snapshot.error_code == 'vehicle_mismatch'
    assert result.snapshot.message == 'vehicle mismatch, expected KA01AB1234'
    assert result.snapshot.detail['expected'] == 'KA01AB1234'
    assert result.snapshot.detail['actual'] == 'KA99ZZ0000'
    assert len(active_sessions()) == 1

def test_vehicle_comparison_is_exact_by_default(machine, driver, clock):
    machine.scan(code(), GATE, OPERATOR)
    machine.reset_scan_state()

    clock.advance(60_000)
    result = machine.scan(code(vehicle='ka01ab1234', issued_at=clock.now), GATE, OPERATOR)
    assert result.snapshot.error_code == 'vehicle_mismatch'

def test_vehicle_normalization_flag(store, driver, clock):
    machine = ScanStateMachine(
        store, settings=ScannerSettings(normalize_vehicle_numbers=True), clock=clock
    )
    machine.scan(code(), GATE, OPERATOR)
    machine.reset_scan_state()

    clock.advance(60_000)
    result = machine.scan(code(vehicle=' ka01ab1234', issued_at=clock.now), GATE, OPERATOR)

    assert machine.state == ScanState.SUCCESS
    assert result.snapshot.scan_type == ScanType.EXIT

def test_repeated_frames_create_one_session(machine, driver, clock):
    raw = code()

    first = machine.scan(raw, GATE, OPERATOR)
    clock.advance(500)
    second = machine.scan(raw, GATE, OPERATOR)

    assert first.accepted
    assert not second.accepted
    assert second.ignored_reason == 'busy'
    assert ParkingSession.query.count() == 1

def test_same_code_debounced_after_error_reset(machine, clock):
    raw = code(user_id='ghost')

    machine.scan(raw, GATE, OPERATOR)
    assert machine.state == ScanState.ERROR

    clock.advance(2500)
    assert machine.state == ScanState.IDLE

    ignored = machine.scan(raw, GATE, OPERATOR)
    assert not ignored.accepted
    assert ignored.ignored_reason == 'debounced'

    clock.advance(600)
    retried = machine.scan(raw, GATE, OPERATOR)
    assert retried.accepted
    assert machine.state == ScanState.ERROR

def test_different_code_is_not_debounced(machine, driver, clock):
    machine.scan(code(user_id='ghost'), GATE, OPERATOR)
    clock.advance(2000)

    result = machine.scan(code(), GATE, OPERATOR)
    assert result.accepted
    assert machine.state == ScanState.SUCCESS

def test_error_resets_after_delay(machine, clock):
    machine.scan('garbage', GATE, OPERATOR)

    clock.advance(1999)
    assert machine.state == ScanState.ERROR
    clock.advance(1)
    assert machine.state == ScanState.IDLE
    assert machine.snapshot.message is None

def test_success_waits_for_acknowledgement(machine, driver, clock):
    machine.scan(code(), GATE, OPERATOR)

    clock.advance(60_000)
    assert machine.state == ScanState.SUCCESS

    snapshot = machine.reset_scan_state()
    assert snapshot.state == ScanState.IDLE
    assert snapshot.last_scanned_raw is None

def test_persistence_failure_surfaces_as_error(driver, clock, settings):
    machine = ScanStateMachine(FailingStore(), settings=settings, clock=clock)

    result = machine.scan(code(), GATE, OPERATOR)

    assert machine.state == ScanState.ERROR
    assert result.snapshot.error_code == 'persistence_error'
    assert 'backend unavailable' in result.snapshot.message

    clock.advance(2000)
    assert machine.state == ScanState.IDLE

def test_pricing_failure_leaves_session_open(driver, clock, settings):
    machine = ScanStateMachine(TierDownStore(), settings=settings, clock=clock)
    entry = machine.scan(code(), GATE, OPERATOR).session
    machine.reset_scan_state()

    clock.advance(3_600_000)
    result = machine.scan(code(issued_at=clock.now), GATE, OPERATOR)

    assert machine.state == ScanState.ERROR
    assert result.snapshot.error_code == 'persistence_error'
    assert [s.id for s in active_sessions()] == [entry.id]

def test_unexpected_failure_does_not_wedge_scanner(driver, clock, settings):
    machine = ScanStateMachine(ExplodingStore(), settings=settings, clock=clock)

    result = machine.scan(code(), GATE, OPERATOR)

    assert result.snapshot.error_code == 'unexpected_error'
    assert result.snapshot.message == 'Error: boom'

def test_abandoned_processing_state_is_released(store, driver, clock):
    stale = ScanSnapshot(state=ScanState.PROCESSING, changed_at=T - 60_000)
    machine = ScanStateMachine(
        store, settings=ScannerSettings(processing_timeout_ms=30_000), clock=clock, snapshot=stale
    )

    result = machine.scan(code(), GATE, OPERATOR)
    assert result.accepted
    assert machine.state == ScanState.SUCCESS

def test_fresh_processing_state_blocks_scans(store, driver, clock):
    busy = ScanSnapshot(state=ScanState.PROCESSING, changed_at=T - 1000)
    machine = ScanStateMachine(store, clock=clock, snapshot=busy)

    result = machine.scan(code(), GATE, OPERATOR)
    assert not result.accepted
    assert result.ignored_reason == 'busy'

def test_listeners_see_every_transition(machine, driver, clock):
    seen = []
    unsubscribe = machine.subscribe(lambda snapshot: seen.append(snapshot.state))

    machine.scan(code(), GATE, OPERATOR)
    machine.reset_scan_state()
    unsubscribe()
    machine.scan('garbage', GATE, OPERATOR)

    assert seen == [ScanState.PROCESSING, ScanState.SUCCESS, ScanState.IDLE]

def test_snapshot_survives_storage(machine, driver, guard, clock):
    row = ScannerState.for_guard('g1', GATE)
    machine.subscribe(lambda snapshot: apply_snapshot(row, snapshot))

    machine.scan(code(), GATE, OPERATOR)
    db.session.commit()

    restored = ScanStateMachine(
        SQLAlchemySessionStore(), clock=clock,
        snapshot=snapshot_from_row(db.session.get(ScannerState, row.id))
    )
    assert restored.state == ScanState.SUCCESS
    assert restored.snapshot.scan_type == ScanType.ENTRY
    assert restored.snapshot.last_scanned_raw == code()
    assert not restored.scan(code(), GATE, OPERATOR).accepted

"""Gate scanner API for security operators."""
from flask import Blueprint, request, current_app, g
from flask_jwt_extended import jwt_required
from vaultpark import db
from vaultpark.models.scanner_state import ScannerState
from vaultpark.services.scan_service import (
    ScanStateMachine, ScannerSettings, Operator,
    snapshot_from_row, apply_snapshot
)
from vaultpark.services.session_store import SQLAlchemySessionStore
from vaultpark.utils.decorators import security_required
from vaultpark.utils.errors import PersistenceError
from vaultpark.utils.helpers import success_response, error_response, now_ms

scanner_bp = Blueprint('scanner', __name__)

def _load_machine(guard):
    """Restore the operator's state machine and persist every transition."""
    row = ScannerState.for_guard(guard.id, current_app.config['DEFAULT_GATE'])
    machine = ScanStateMachine(
        store=SQLAlchemySessionStore(),
        settings=ScannerSettings.from_config(current_app.config),
        clock=current_app.config.get('CLOCK', now_ms),
        snapshot=snapshot_from_row(row)
    )

    def persist(snapshot):
        apply_snapshot(row, snapshot)
        db.session.commit()

    machine.subscribe(persist)
    return row, machine

def _scanner_payload(row, snapshot) -> dict:
    data = snapshot.to_dict()
    data['selected_gate'] = row.selected_gate
    return data

@scanner_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Scanner service is running')

@scanner_bp.route('/scan', methods=['POST'])
@jwt_required()
@security_required
def scan():
    """Submit a scanned QR string."""
    data = request.get_json(silent=True) or {}
    raw = data.get('raw') or data.get('qr_data')

    if not raw or not isinstance(raw, str):
        return error_response("Scanned QR data is required", 400)

    gate = data.get('gate')
    if gate is not None and gate not in current_app.config['GATE_LOCATIONS']:
        return error_response(f"Unknown gate: {gate}", 400)

    guard = g.current_user
    row, machine = _load_machine(guard)
    gate = gate or row.selected_gate or current_app.config['DEFAULT_GATE']

    result = machine.scan(raw, gate, Operator(guard_id=guard.id, guard_name=guard.name))
    snapshot = result.snapshot

    if not result.accepted:
        message = 'Scanner busy' if result.ignored_reason == 'busy' else 'Duplicate scan ignored'
    else:
        message = snapshot.message

    return success_response(
        data={
            'accepted': result.accepted,
            'ignored_reason': result.ignored_reason,
            'scanner': _scanner_payload(row, snapshot)
        },
        message=message
    )

@scanner_bp.route('/state', methods=['GET'])
@jwt_required()
@security_required
def get_state():
    """Current scanner state (errors fall back to IDLE once their delay passes)."""
    row, machine = _load_machine(g.current_user)
    return success_response(data=_scanner_payload(row, machine.snapshot))

@scanner_bp.route('/reset', methods=['POST'])
@jwt_required()
@security_required
def reset():
    """Acknowledge the last result and return to IDLE."""
    row, machine = _load_machine(g.current_user)
    snapshot = machine.reset_scan_state()
    return success_response(data=_scanner_payload(row, snapshot), message="Scanner ready")

@scanner_bp.route('/gate', methods=['PUT'])
@jwt_required()
@security_required
def select_gate():
    """Select the gate recorded on subsequent entry scans."""
    data = request.get_json(silent=True) or {}
    gate = data.get('gate')

    if gate not in current_app.config['GATE_LOCATIONS']:
        return error_response(
            f"Gate must be one of: {', '.join(current_app.config['GATE_LOCATIONS'])}", 400
        )

    row = ScannerState.for_guard(g.current_user.id, current_app.config['DEFAULT_GATE'])
    row.selected_gate = gate
    db.session.commit()

    return success_response(data={'selected_gate': gate}, message="Gate selected")

@scanner_bp.route('/gates', methods=['GET'])
@jwt_required()
@security_required
def list_gates():
    return success_response(data={
        'gates': current_app.config['GATE_LOCATIONS'],
        'default_gate': current_app.config['DEFAULT_GATE']
    })

@scanner_bp.route('/recent', methods=['GET'])
@jwt_required()
@security_required
def recent_scans():
    """Latest sessions across all gates."""
    try:
        sessions = SQLAlchemySessionStore().list_recent(limit=10)
    except PersistenceError as e:
        return error_response(e.message, 503)

    return success_response(data=[s.to_dict() for s in sessions])

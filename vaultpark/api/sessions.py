"""Parking session API: active sessions, history and details."""
from flask import Blueprint, request, current_app, g
from flask_jwt_extended import jwt_required
from vaultpark import db
from vaultpark.models.parking_session import ParkingSession, SessionStatus
from vaultpark.services.billing_service import BillingService
from vaultpark.services.session_store import SQLAlchemySessionStore, SessionFilter
from vaultpark.utils.decorators import current_user_required
from vaultpark.utils.errors import PersistenceError
from vaultpark.utils.helpers import success_response, error_response, now_ms
from vaultpark.utils.validators import Validator, ValidationError

sessions_bp = Blueprint('sessions', __name__)

def _session_with_billing(session: ParkingSession, now: int) -> dict:
    """Session dict plus elapsed time and amount (running total while active)."""
    tz_name = current_app.config['BILLING_TIMEZONE']
    end = session.exit_time if session.exit_time is not None else now

    store = SQLAlchemySessionStore()
    tier = store.resolve_tier(
        store.find_user(session.driver_id), current_app.config['DEFAULT_HOURLY_RATE']
    )

    duration = BillingService.duration_ms(session.entry_time, end)
    amount = BillingService.session_amount(session.entry_time, end, tier, tz_name)

    result = session.to_dict()
    result.update({
        'duration_ms': duration,
        'duration': BillingService.duration_breakdown(duration).to_dict(),
        'duration_text': BillingService.format_duration(duration),
        'amount': amount,
        'amount_text': BillingService.format_currency(amount),
        'hourly_rate': tier.hourly_rate
    })
    return result

@sessions_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Sessions service is running')

@sessions_bp.route('/active', methods=['GET'])
@jwt_required()
@current_user_required
def active_sessions():
    """Driver: own open session or null. Security: every open session."""
    user = g.current_user
    store = SQLAlchemySessionStore()
    now = current_app.config.get('CLOCK', now_ms)()

    try:
        if user.is_driver():
            session = store.find_active_session(user.id)
            return success_response(data=_session_with_billing(session, now) if session else None)

        limit, offset = Validator.parse_pagination(
            request.args, current_app.config['DEFAULT_PAGE_SIZE'], current_app.config['MAX_PAGE_SIZE']
        )
        sessions = store.list_recent(
            SessionFilter(status=SessionStatus.ACTIVE,
                          gate_location=request.args.get('gate')),
            limit=limit,
            offset=offset
        )
        data = [_session_with_billing(s, now) for s in sessions]
    except ValidationError as e:
        return error_response(str(e), 400)
    except PersistenceError as e:
        return error_response(e.message, 503)

    return success_response(data=data)

@sessions_bp.route('/recent', methods=['GET'])
@jwt_required()
@current_user_required
def recent_sessions():
    """Session history, newest first. Drivers only ever see their own."""
    user = g.current_user

    try:
        limit, offset = Validator.parse_pagination(
            request.args, current_app.config['DEFAULT_PAGE_SIZE'], current_app.config['MAX_PAGE_SIZE']
        )
        start = Validator.parse_millis(request.args.get('from'), 'from')
        end = Validator.parse_millis(request.args.get('to'), 'to')

        status = request.args.get('status')
        if status:
            try:
                status = SessionStatus(status.upper())
            except ValueError:
                raise ValidationError("status must be ACTIVE or COMPLETED")

        filter_by = SessionFilter(
            driver_id=user.id if user.is_driver() else request.args.get('driver_id'),
            status=status,
            gate_location=request.args.get('gate'),
            guard_id=request.args.get('guard_id') if user.is_security() else None
        )

        sessions = SQLAlchemySessionStore().list_recent(
            filter_by, limit=limit, offset=offset, time_range=(start, end)
        )
    except ValidationError as e:
        return error_response(str(e), 400)
    except PersistenceError as e:
        return error_response(e.message, 503)

    return success_response(data={
        'sessions': [s.to_dict() for s in sessions],
        'limit': limit,
        'offset': offset
    })

@sessions_bp.route('/<session_id>', methods=['GET'])
@jwt_required()
@current_user_required
def get_session(session_id):
    """Single session with duration and amount."""
    user = g.current_user
    session = db.session.get(ParkingSession, session_id)

    if not session or (user.is_driver() and session.driver_id != user.id):
        return error_response("Parking session not found", 404)

    now = current_app.config.get('CLOCK', now_ms)()
    try:
        data = _session_with_billing(session, now)
    except PersistenceError as e:
        return error_response(e.message, 503)

    return success_response(data=data)

"""Billing API: pricing tiers and monthly statements."""
from datetime import datetime, timezone
from flask import Blueprint, request, current_app, g
from flask_jwt_extended import jwt_required
from vaultpark.models.parking_session import ParkingSession, SessionStatus
from vaultpark.models.pricing_tier import PricingTier
from vaultpark.services.billing_service import BillingService
from vaultpark.services.session_store import SQLAlchemySessionStore
from vaultpark.utils.decorators import driver_required
from vaultpark.utils.errors import PersistenceError
from vaultpark.utils.helpers import success_response, error_response

billing_bp = Blueprint('billing', __name__)

@billing_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Billing service is running')

@billing_bp.route('/tiers', methods=['GET'])
def list_tiers():
    tiers = PricingTier.query.order_by(PricingTier.hourly_rate.desc()).all()
    return success_response(data=[t.to_dict() for t in tiers])

@billing_bp.route('/monthly', methods=['GET'])
@jwt_required()
@driver_required
def monthly_statement():
    """Monthly bill for the current driver (completed sessions only)."""
    driver = g.current_user
    tz_name = current_app.config['BILLING_TIMEZONE']
    today = datetime.now(timezone.utc)

    year = request.args.get('year', today.year, type=int)
    month = request.args.get('month', today.month, type=int)

    try:
        start, end = BillingService.month_range(year, month, tz_name)
    except ValueError as e:
        return error_response(str(e), 400)

    sessions = ParkingSession.query.filter(
        ParkingSession.driver_id == driver.id,
        ParkingSession.status == SessionStatus.COMPLETED,
        ParkingSession.entry_time >= start,
        ParkingSession.entry_time < end
    ).order_by(ParkingSession.entry_time.asc()).all()

    try:
        tier = SQLAlchemySessionStore().resolve_tier(driver, current_app.config['DEFAULT_HOURLY_RATE'])
    except PersistenceError as e:
        return error_response(e.message, 503)

    total = BillingService.monthly_bill(sessions, tier, tz_name)

    return success_response(data={
        'year': year,
        'month': month,
        'membership_type': tier.membership_type,
        'hourly_rate': tier.hourly_rate,
        'daily_cap': tier.daily_cap,
        'monthly_unlimited': tier.monthly_unlimited,
        'total_sessions': len(sessions),
        'total_hours': BillingService.total_hours(sessions),
        'total_amount': total,
        'total_amount_text': BillingService.format_currency(total),
        'sessions': [
            dict(s.to_dict(), cost=BillingService.session_cost(s, tier))
            for s in sessions
        ]
    })

"""QR code API endpoints."""
from flask import Blueprint, request, current_app, g
from flask_jwt_extended import jwt_required
from vaultpark import limiter
from vaultpark.services.qr_service import QRService
from vaultpark.utils.decorators import driver_required
from vaultpark.utils.helpers import success_response, error_response, now_ms, ms_to_iso
from vaultpark.utils.validators import Validator

qr_bp = Blueprint('qr', __name__)

def _clock() -> int:
    return current_app.config.get('CLOCK', now_ms)()

@qr_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='QR service is running')

@qr_bp.route('/generate', methods=['POST'])
@jwt_required()
@driver_required
@limiter.limit("60 per hour")
def generate_qr():
    """Generate the driver's entry/exit QR code."""
    driver = g.current_user
    data = request.get_json(silent=True) or {}

    vehicle_number = (data.get('vehicle_number') or driver.vehicle_number or '').strip()
    vehicle_check = Validator.validate_vehicle_number(vehicle_number)
    if not vehicle_check['is_valid']:
        return error_response(vehicle_check['errors'][0], 400)

    issued_at = _clock()
    validity_ms = current_app.config['QR_VALIDITY_WINDOW_MS']
    raw = QRService.encode(driver.id, vehicle_number, issued_at)

    response_data = {
        'qr_data': raw,
        'issued_at': issued_at,
        'expires_at': issued_at + validity_ms,
        'expires_at_iso': ms_to_iso(issued_at + validity_ms),
        'validity_window_ms': validity_ms,
        'vehicle_number': vehicle_number
    }

    if data.get('include_image', True):
        response_data['qr_image'] = QRService.render_png_base64(raw)

    return success_response(data=response_data, message="QR code generated successfully")

@qr_bp.route('/validate', methods=['POST'])
@jwt_required()
def validate_qr():
    """Check a QR string without recording anything."""
    data = request.get_json(silent=True) or {}

    if 'qr_data' not in data:
        return error_response("QR data is required", 400)

    payload, error_message = QRService.try_decode(data['qr_data'])
    if payload is None:
        return error_response(error_message, 400)

    now = _clock()
    validity_ms = current_app.config['QR_VALIDITY_WINDOW_MS']
    expired = QRService.is_expired(payload, now, validity_ms)

    return success_response(
        data={
            'valid': not expired,
            'expired': expired,
            'payload': payload.to_dict(),
            'age_ms': now - payload.issued_at
        },
        message="QR code expired. Please request a new one" if expired else "QR code is valid"
    )

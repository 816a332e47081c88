"""Base configuration shared by every environment."""
import os
from datetime import timedelta

class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # JWT Configuration
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=12)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=30)
    JWT_ALGORITHM = 'HS256'

    # CORS
    CORS_ORIGINS = ["http://localhost:*", "http://127.0.0.1:*"]

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or 'memory://'
    RATELIMIT_DEFAULT = "500 per day, 100 per hour"

    # QR payload
    QR_VALIDITY_WINDOW_MS = 2 * 60 * 1000

    # Scanner
    SCAN_DEBOUNCE_MS = 3000
    SCAN_ERROR_RESET_MS = 2000
    SCAN_PROCESSING_TIMEOUT_MS = 30 * 1000
    VEHICLE_NUMBER_NORMALIZATION = os.environ.get('VEHICLE_NUMBER_NORMALIZATION', 'false').lower() == 'true'

    # Gates
    DEFAULT_GATE = 'Main Entrance'
    GATE_LOCATIONS = ['Main Entrance', 'North Gate', 'South Gate', 'Basement Ramp']

    # Billing
    DEFAULT_HOURLY_RATE = float(os.environ.get('DEFAULT_HOURLY_RATE', '5.0'))
    BILLING_TIMEZONE = os.environ.get('BILLING_TIMEZONE', 'UTC')

    # Pagination
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

    # Logging
    LOG_LEVEL = 'INFO'
    LOG_FILE = 'logs/app.log'

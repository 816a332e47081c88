"""Testing configuration."""
from datetime import timedelta
from .base import Config

class TestingConfig(Config):
    """Testing configuration class."""

    # Basic Flask config
    DEBUG = False
    TESTING = True
    SECRET_KEY = 'test-secret-key'

    # Database (in-memory SQLite for testing)
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    # JWT Configuration
    JWT_SECRET_KEY = 'test-jwt-secret-with-enough-length-for-hs256'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=5)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(hours=1)

    # Rate Limiting (disabled for testing)
    RATELIMIT_ENABLED = False

    # Exact-match vehicle comparison and fixed billing defaults
    VEHICLE_NUMBER_NORMALIZATION = False
    DEFAULT_HOURLY_RATE = 50.0
    BILLING_TIMEZONE = 'UTC'

    # Logging
    LOG_LEVEL = 'WARNING'

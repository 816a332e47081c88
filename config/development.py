"""Development configuration."""
import os
from .base import Config

class DevelopmentConfig(Config):
    """Development configuration class."""

    DEBUG = True
    TESTING = False

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv('DEV_DATABASE_URL') or \
        'sqlite:///vaultpark_dev.db'
    SQLALCHEMY_ECHO = False

    # Everything goes through in development
    CORS_ORIGINS = ["*"]
    RATELIMIT_ENABLED = False

    LOG_LEVEL = 'DEBUG'

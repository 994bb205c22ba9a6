"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
logging level and the status polling hint. It uses environment variables for sensitive information and defaults for
development. In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'orderflow.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for mutating requests (clients send X-CSRFToken)
    WTF_CSRF_ENABLED = os.environ.get("WTF_CSRF_ENABLED", "1") != "0"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Advertised to dashboard clients polling the status endpoints
    STATUS_POLL_SECONDS = int(os.environ.get("STATUS_POLL_SECONDS", "5"))

    APP_NAME = "Orderflow"


class TestingConfig(Config):
    """In-memory database, no CSRF."""

    TESTING = True
    SECRET_KEY = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "DEBUG"

"""
ART CRM configuration.

Config reads secrets and the database URL from the environment and falls back to
a local SQLite file for development. TestConfig is what the pytest fixtures load:
in-memory SQLite, CSRF off, DEBUG logging. Set SECRET_KEY and DATABASE_URL in
production.
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
        f"sqlite:///{BASE_DIR / 'artcrm.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF on every POST; clients fetch a token from GET /auth/csrf
    WTF_CSRF_ENABLED = True

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    APP_NAME = "ART CRM"


class TestConfig(Config):
    """In-memory database, no CSRF. Used by the pytest fixtures."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "DEBUG"

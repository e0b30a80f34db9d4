"""
Users blueprint package.

Exposes users_bp for registration in the app factory.
"""

from .routes import users_bp  # noqa: F401

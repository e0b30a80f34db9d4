"""
artcrm/blueprints/proposals/__init__.py

Blueprint package export.

IMPORTANT:
- Must expose proposals_bp for app factory registration.
- Keep import minimal to avoid side effects.
"""

from __future__ import annotations

from .routes import proposals_bp  # noqa: F401

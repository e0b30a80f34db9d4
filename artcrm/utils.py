"""
Utility functions shared across the app. This includes:
- parse_decimal / parse_optional_int / parse_date / parse_bool: tolerant parsing of
  JSON or form input. Invalid input becomes None; validation decides what None means.
- request_payload: JSON body or form data as a plain dict.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from flask import request


def parse_decimal(value: Any) -> Decimal | None:
    """Parse decimal from user input (accepts comma or dot)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    raw = str(value).strip().replace(",", ".")
    if raw == "":
        return None
    try:
        result = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def parse_optional_int(value: Any) -> int | None:
    """Parse optional int. Rejects fractions ("1.5") rather than truncating them."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_date(value: Any) -> date | None:
    """Parse an ISO date (YYYY-MM-DD)."""
    if value is None:
        return None
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def request_payload() -> dict:
    """JSON body if present, else form data."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()

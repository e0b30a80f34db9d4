"""
artcrm/audit.py

Audit logging helper utilities.

Goals:
- Capture WHO did WHAT to WHICH entity, with BEFORE/AFTER snapshots.
- Store the role snapshot so the decision context survives role changes.
- Store IP address for traceability (when called inside a request).

IMPORTANT:
- This helper ADDS AuditLog entries to the current SQLAlchemy session.
  The caller controls transaction boundaries (commit/rollback), so the audit
  row is committed together with the change it describes, or not at all.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request

from .extensions import db
from .models import AuditLog


def _safe_str(value: Any) -> Optional[str]:
    """
    Convert a value to a stable string representation suitable for JSON and DB storage.

    - For Decimal/datetime/etc: str(value) is typically safe.
    - For None: return None.
    """
    if value is None:
        return None
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """
    Convert a SQLAlchemy model instance to a dict snapshot based on table columns.

    Captures only scalar column values (not relationships). Password hashes are never captured.
    """
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        if column.name == "password_hash":
            continue
        data[column.name] = _safe_str(getattr(instance, column.name))
    return data


def log_action(
    actor: Any,
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the current db session.

    Parameters:
        actor: resolved Actor (or None for system actions such as CLI seeding)
        entity: SQLAlchemy model instance with .id (flush first)
        action: CREATE / UPDATE / STATUS / DELETE
        before / after: dict snapshots (optional)
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    entry = AuditLog(
        user_id=actor.id if actor is not None else None,
        role_snapshot=actor.role.value if actor is not None else None,
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry

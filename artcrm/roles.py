"""
artcrm/roles.py

Closed role vocabulary and per-role capability tables.

Every capability is a table keyed by Role. Tables are checked for totality at
import time, so adding a Role without deciding each capability fails loudly
instead of silently falling through a string comparison.

Wire values (stored in users.role):
- admin
- manager
- regional_manager
- field_user
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    REGIONAL_MANAGER = "regional_manager"
    FIELD_USER = "field_user"

    @classmethod
    def parse(cls, value: Any) -> "Role | None":
        """Return the Role for a wire value, or None if unknown/empty."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip())
        except ValueError:
            return None


def _total(table: Mapping[Role, Any], name: str) -> Mapping[Role, Any]:
    missing = set(Role) - set(table)
    if missing:
        raise RuntimeError(
            f"capability table {name!r} has no entry for: "
            + ", ".join(sorted(r.value for r in missing))
        )
    return table


# Unrestricted read/write over all proposals (including reject/expire and backward moves).
FULL_AUTHORITY = _total(
    {
        Role.ADMIN: True,
        Role.MANAGER: True,
        Role.REGIONAL_MANAGER: False,
        Role.FIELD_USER: False,
    },
    "FULL_AUTHORITY",
)

# Visibility and authority depend on the actor's region assignment.
REGION_SCOPED = _total(
    {
        Role.ADMIN: False,
        Role.MANAGER: False,
        Role.REGIONAL_MANAGER: True,
        Role.FIELD_USER: True,
    },
    "REGION_SCOPED",
)

# May move a proposal out of pending (approval).
CAN_APPROVE = _total(
    {
        Role.ADMIN: True,
        Role.MANAGER: True,
        Role.REGIONAL_MANAGER: True,
        Role.FIELD_USER: False,
    },
    "CAN_APPROVE",
)

# May close a proposal (rejected / expired).
CAN_CLOSE = _total(
    {
        Role.ADMIN: True,
        Role.MANAGER: True,
        Role.REGIONAL_MANAGER: False,
        Role.FIELD_USER: False,
    },
    "CAN_CLOSE",
)

ROLE_LABELS = _total(
    {
        Role.ADMIN: "Administrator",
        Role.MANAGER: "Manager",
        Role.REGIONAL_MANAGER: "Regional Manager",
        Role.FIELD_USER: "Field User",
    },
    "ROLE_LABELS",
)


def has_full_authority(role: Role) -> bool:
    return FULL_AUTHORITY[role]


def is_region_scoped(role: Role) -> bool:
    return REGION_SCOPED[role]


def can_approve(role: Role) -> bool:
    return CAN_APPROVE[role]


def can_close(role: Role) -> bool:
    return CAN_CLOSE[role]

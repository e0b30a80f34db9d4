"""
artcrm/actors.py

Actor resolution and region membership.

- resolve_actor(): session identity -> Actor (or None = unauthenticated).
- users_in_region(): region -> ids of its members (visibility scoping only,
  never used to authorize a specific mutation).

The Actor is resolved once per request and passed explicitly into every
decision function. Nothing in the decision core reads flask_login.current_user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, FrozenSet, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .roles import Role, has_full_authority, is_region_scoped

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """The acting identity. Read-only."""

    id: int
    role: Role
    region_id: Optional[int] = None

    @property
    def has_full_authority(self) -> bool:
        return has_full_authority(self.role)

    @property
    def is_region_scoped(self) -> bool:
        return is_region_scoped(self.role)

    def to_dict(self) -> dict:
        return {"id": self.id, "role": self.role.value, "region_id": self.region_id}


def resolve_actor(user: Any) -> Optional[Actor]:
    """
    Build the Actor for a session identity (Flask-Login current_user or a User).

    Fails soft: anonymous, inactive, unknown-role users and lookup errors all
    return None. Callers treat None as unauthenticated.
    """
    if user is None:
        return None

    try:
        if not getattr(user, "is_authenticated", False):
            return None
        if not getattr(user, "is_active", False):
            return None

        role = Role.parse(getattr(user, "role", None))
        if role is None:
            logger.warning("User %s has unknown role %r; treating as unauthenticated.",
                           getattr(user, "id", None), getattr(user, "role", None))
            return None

        return Actor(id=int(user.id), role=role, region_id=getattr(user, "region_id", None))
    except SQLAlchemyError:
        logger.warning("Identity lookup failed; treating request as unauthenticated.", exc_info=True)
        return None


def users_in_region(region_id: Optional[int]) -> FrozenSet[int]:
    """
    Ids of users assigned to region_id.

    Empty set when region_id is None or the region has no members. An empty
    result means "no visibility expansion", never "deny everything": region-scoped
    actors still see their own records.
    """
    from .models import User

    if region_id is None:
        return frozenset()

    rows = db.session.execute(select(User.id).where(User.region_id == region_id)).scalars()
    return frozenset(rows)

"""
artcrm/visibility.py

Which proposals an actor may list / view.

- admin, manager: everything.
- regional_manager: proposals owned by members of the actor's region.
- field_user: own proposals, proposals they approved or rejected, and region
  peers' proposals once they are past the approval gate.
Every actor also sees their own proposals, with or without a region.

The same rule is provided twice:
- visibility_clause(): SQL predicate pushed into the list query, so hidden
  records never leave the database (no leaking of counts/existence).
- is_visible(): Python predicate for a single already-loaded proposal.

This is a READ filter only. Writes are authorized by authorization.py.
"""

from __future__ import annotations

from typing import AbstractSet, Callable, Dict

from sqlalchemy import and_, or_, true

from .actors import Actor
from .authorization import ProposalFacts
from .lifecycle import PAST_APPROVAL
from .roles import Role

_PAST_APPROVAL_VALUES = tuple(s.value for s in PAST_APPROVAL)


# ---------------------------------------------------------------------
# SQL predicate
# ---------------------------------------------------------------------
def _unrestricted_clause(actor: Actor, members: AbstractSet[int]):
    return true()


def _regional_manager_clause(actor: Actor, members: AbstractSet[int]):
    from .models import Proposal

    own = Proposal.owner_id == actor.id
    if actor.region_id is None or not members:
        return own
    return or_(own, Proposal.owner_id.in_(sorted(members)))


def _field_user_clause(actor: Actor, members: AbstractSet[int]):
    from .models import Proposal

    clause = or_(
        Proposal.owner_id == actor.id,
        Proposal.approved_by == actor.id,
        Proposal.rejected_by == actor.id,
    )
    if actor.region_id is not None and members:
        clause = or_(
            clause,
            and_(
                Proposal.owner_id.in_(sorted(members)),
                Proposal.status.in_(_PAST_APPROVAL_VALUES),
            ),
        )
    return clause


_CLAUSES: Dict[Role, Callable] = {
    Role.ADMIN: _unrestricted_clause,
    Role.MANAGER: _unrestricted_clause,
    Role.REGIONAL_MANAGER: _regional_manager_clause,
    Role.FIELD_USER: _field_user_clause,
}


def visibility_clause(actor: Actor, region_members: AbstractSet[int] = frozenset()):
    """SQLAlchemy boolean expression selecting the proposals `actor` may see."""
    return _CLAUSES[actor.role](actor, frozenset(region_members))


# ---------------------------------------------------------------------
# Python predicate
# ---------------------------------------------------------------------
def is_visible(actor: Actor, facts: ProposalFacts, region_members: AbstractSet[int] = frozenset()) -> bool:
    if actor.has_full_authority or facts.owner_id == actor.id:
        return True

    in_region = actor.region_id is not None and facts.owner_id in region_members

    if actor.role == Role.REGIONAL_MANAGER:
        return in_region

    if actor.role == Role.FIELD_USER:
        if actor.id in (facts.approved_by, facts.rejected_by):
            return True
        return in_region and facts.status in PAST_APPROVAL

    raise RuntimeError(f"no visibility rule for role {actor.role!r}")

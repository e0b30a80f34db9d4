"""
artcrm/authorization.py

Proposal authorization engine.

Three decisions, each returning a Decision (allow, or deny with a reason):
- can_create(actor)
- can_edit_content(actor, facts)
- can_change_status(actor, facts, requested)

Rules:
- admin / manager: full authority over every proposal.
- regional_manager: full breadth, but only on proposals whose owner is in
  the actor's region; never reject/expire.
- field_user: edit content only on own pending proposals; advance own
  proposals forward once a privileged actor has approved them.

Deny reasons are part of the contract: presentation code renders a different
message for role, scope, lifecycle, and integrity problems.

This module is pure: no database access, no request context. Callers build
ProposalFacts from a fresh read and pass the resolved Actor explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .actors import Actor
from .lifecycle import ProposalStatus, is_terminal, reachable_statuses
from .roles import Role, can_approve, can_close, has_full_authority


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN_ROLE = "forbidden_role"
    FORBIDDEN_SCOPE = "forbidden_scope"
    INVALID_TRANSITION = "invalid_transition"
    INTEGRITY_VIOLATION = "integrity_violation"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: DenyReason, message: str) -> "Decision":
        return cls(False, reason, message)

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }


@dataclass(frozen=True)
class ProposalFacts:
    """Snapshot of the proposal fields authorization depends on."""

    id: Optional[int]
    owner_id: int
    owner_region_id: Optional[int]
    status: ProposalStatus
    version: Optional[int] = None
    approved_by: Optional[int] = None
    rejected_by: Optional[int] = None

    @classmethod
    def from_model(cls, proposal: Any) -> "ProposalFacts":
        owner = getattr(proposal, "owner", None)
        status = ProposalStatus.parse(proposal.status)
        if status is None:
            raise ValueError(f"Proposal #{proposal.id} has unknown status {proposal.status!r}")
        return cls(
            id=proposal.id,
            owner_id=proposal.owner_id,
            owner_region_id=owner.region_id if owner is not None else None,
            status=status,
            version=getattr(proposal, "version", None),
            approved_by=getattr(proposal, "approved_by", None),
            rejected_by=getattr(proposal, "rejected_by", None),
        )


_UNAUTHENTICATED = Decision.deny(DenyReason.UNAUTHENTICATED, "You must be signed in.")


def region_match(actor: Actor, facts: ProposalFacts) -> bool:
    """True if the proposal owner belongs to the actor's (assigned) region."""
    return actor.region_id is not None and facts.owner_region_id == actor.region_id


def reachable_for(actor: Optional[Actor], facts: ProposalFacts) -> Tuple[ProposalStatus, ...]:
    if actor is None:
        return ()
    return reachable_statuses(facts.status, actor.role, region_match(actor, facts))


# ---------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------
def can_create(actor: Optional[Actor]) -> Decision:
    """Any resolved actor may create. The new proposal always starts pending."""
    if actor is None:
        return _UNAUTHENTICATED
    return Decision.allow()


def can_edit_content(actor: Optional[Actor], facts: ProposalFacts) -> Decision:
    """Clinic, currency, discount, items, installment plan."""
    if actor is None:
        return _UNAUTHENTICATED

    if has_full_authority(actor.role):
        return Decision.allow()

    if actor.role == Role.REGIONAL_MANAGER:
        if not region_match(actor, facts):
            return Decision.deny(
                DenyReason.FORBIDDEN_SCOPE,
                "You can only edit proposals from your own region.",
            )
        return Decision.allow()

    if actor.role == Role.FIELD_USER:
        if facts.owner_id != actor.id:
            return Decision.deny(
                DenyReason.FORBIDDEN_SCOPE,
                "You can only edit your own proposals.",
            )
        if facts.status != ProposalStatus.PENDING:
            return Decision.deny(
                DenyReason.FORBIDDEN_ROLE,
                "Field users cannot edit a proposal once it has left pending.",
            )
        return Decision.allow()

    raise RuntimeError(f"no content-edit rule for role {actor.role!r}")


def can_change_status(actor: Optional[Actor], facts: ProposalFacts, requested: Any) -> Decision:
    if actor is None:
        return _UNAUTHENTICATED

    # Scope first: out-of-region is refused whatever status was asked for.
    if actor.role == Role.REGIONAL_MANAGER and not region_match(actor, facts):
        return Decision.deny(
            DenyReason.FORBIDDEN_SCOPE,
            "You can only change the status of proposals from your own region.",
        )

    target = ProposalStatus.parse(requested)
    if target is None:
        return Decision.deny(
            DenyReason.INVALID_TRANSITION,
            f"Unknown status {requested!r}.",
        )

    if is_terminal(target) and not can_close(actor.role):
        return Decision.deny(
            DenyReason.FORBIDDEN_ROLE,
            "Only admins and managers can reject or expire a proposal.",
        )

    if actor.role == Role.FIELD_USER and facts.owner_id != actor.id:
        return Decision.deny(
            DenyReason.FORBIDDEN_SCOPE,
            "You can only change the status of your own proposals.",
        )

    if facts.status == ProposalStatus.PENDING and target != ProposalStatus.PENDING and not can_approve(actor.role):
        return Decision.deny(
            DenyReason.FORBIDDEN_ROLE,
            "Only admins, managers and regional managers can approve proposals.",
        )

    if target not in reachable_for(actor, facts):
        return Decision.deny(
            DenyReason.INVALID_TRANSITION,
            f"Cannot move a proposal from {facts.status.value} to {target.value}.",
        )

    return Decision.allow()


# ---------------------------------------------------------------------
# Side effects of an allowed status change
# ---------------------------------------------------------------------
def status_stamps(
    actor: Actor,
    current: ProposalStatus,
    requested: ProposalStatus,
    now: datetime,
) -> Dict[str, Any]:
    """
    Audit-field updates to write together with the status.

    - approved: stamp approver, clear rejecter
    - rejected: stamp rejecter, clear approver
    - reset to pending: clear both
    Re-setting the current status stamps nothing.
    """
    if requested == current:
        return {}

    if requested == ProposalStatus.APPROVED:
        return {"approved_by": actor.id, "approved_at": now, "rejected_by": None, "rejected_at": None}

    if requested == ProposalStatus.REJECTED:
        return {"rejected_by": actor.id, "rejected_at": now, "approved_by": None, "approved_at": None}

    if requested == ProposalStatus.PENDING:
        return {"approved_by": None, "approved_at": None, "rejected_by": None, "rejected_at": None}

    return {}

"""
artcrm/lifecycle.py

Proposal lifecycle state machine.

Forward order:
    pending -> approved -> contract_received -> in_transfer -> delivered

Side states (terminal, no transition defined out of them except by admin/manager):
    rejected, expired

The legal moves are held in TRANSITIONS, keyed by
(from_status, role, region_match) -> ordered tuple of reachable statuses.
The table is built once at import and never mutated; reachable_statuses() is a lookup.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Tuple

from .roles import Role, has_full_authority


class ProposalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    CONTRACT_RECEIVED = "contract_received"
    IN_TRANSFER = "in_transfer"
    DELIVERED = "delivered"
    REJECTED = "rejected"
    EXPIRED = "expired"

    @classmethod
    def parse(cls, value: Any) -> "ProposalStatus | None":
        """Return the status for a wire value, or None if unknown/empty."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip())
        except ValueError:
            return None


FORWARD_ORDER: Tuple[ProposalStatus, ...] = (
    ProposalStatus.PENDING,
    ProposalStatus.APPROVED,
    ProposalStatus.CONTRACT_RECEIVED,
    ProposalStatus.IN_TRANSFER,
    ProposalStatus.DELIVERED,
)

SIDE_STATES: Tuple[ProposalStatus, ...] = (
    ProposalStatus.REJECTED,
    ProposalStatus.EXPIRED,
)

ALL_STATUSES: Tuple[ProposalStatus, ...] = FORWARD_ORDER + SIDE_STATES

# Statuses past the approval gate (visible to region peers).
PAST_APPROVAL: Tuple[ProposalStatus, ...] = FORWARD_ORDER[1:]

STATUS_LABELS: Dict[ProposalStatus, str] = {
    ProposalStatus.PENDING: "Pending",
    ProposalStatus.APPROVED: "Approved",
    ProposalStatus.CONTRACT_RECEIVED: "Contract received",
    ProposalStatus.IN_TRANSFER: "In transfer",
    ProposalStatus.DELIVERED: "Delivered",
    ProposalStatus.REJECTED: "Rejected",
    ProposalStatus.EXPIRED: "Expired",
}


def is_terminal(status: ProposalStatus) -> bool:
    return status in SIDE_STATES


def forward_index(status: ProposalStatus) -> int:
    """Position in FORWARD_ORDER, or -1 for side states."""
    try:
        return FORWARD_ORDER.index(status)
    except ValueError:
        return -1


def _field_user_targets(current: ProposalStatus) -> Tuple[ProposalStatus, ...]:
    # No self-approval: nothing while pending, and approved is never offered.
    if current == ProposalStatus.PENDING or is_terminal(current):
        return ()
    idx = forward_index(current)
    return tuple(
        s for s in FORWARD_ORDER[idx:]
        if s not in (ProposalStatus.PENDING, ProposalStatus.APPROVED)
    )


def _targets(current: ProposalStatus, role: Role, region_match: bool) -> Tuple[ProposalStatus, ...]:
    if has_full_authority(role):
        return ALL_STATUSES

    if role == Role.REGIONAL_MANAGER:
        if not region_match or is_terminal(current):
            return ()
        return ALL_STATUSES

    if role == Role.FIELD_USER:
        return _field_user_targets(current)

    raise RuntimeError(f"no lifecycle rule for role {role!r}")


def _build_transitions() -> Dict[Tuple[ProposalStatus, Role, bool], Tuple[ProposalStatus, ...]]:
    table = {}
    for current in ALL_STATUSES:
        for role in Role:
            for region_match in (True, False):
                table[(current, role, region_match)] = _targets(current, role, region_match)
    return table


TRANSITIONS = _build_transitions()


def reachable_statuses(
    current: ProposalStatus | str,
    role: Role | str,
    region_match: bool = False,
) -> Tuple[ProposalStatus, ...]:
    """
    Ordered statuses an actor may set on a proposal currently in `current`.

    Pure: depends only on (status, role, whether the proposal owner is in the actor's region).
    Unknown status or role yields an empty tuple.
    """
    status = ProposalStatus.parse(current)
    parsed_role = Role.parse(role)
    if status is None or parsed_role is None:
        return ()
    return TRANSITIONS[(status, parsed_role, bool(region_match))]

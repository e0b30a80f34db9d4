"""Proposal lifecycle transition table."""

from itertools import product

import pytest

from artcrm.lifecycle import (
    ALL_STATUSES,
    FORWARD_ORDER,
    SIDE_STATES,
    TRANSITIONS,
    ProposalStatus,
    forward_index,
    reachable_statuses,
)
from artcrm.roles import Role

S = ProposalStatus


def test_transition_table_is_total():
    for key in product(ALL_STATUSES, Role, (True, False)):
        assert key in TRANSITIONS


@pytest.mark.parametrize("role", [Role.ADMIN, Role.MANAGER])
@pytest.mark.parametrize("current", ALL_STATUSES)
def test_full_authority_reaches_every_status(role, current):
    assert reachable_statuses(current, role, region_match=False) == ALL_STATUSES
    assert reachable_statuses(current, role, region_match=True) == ALL_STATUSES


def test_field_user_cannot_self_advance_from_pending():
    assert reachable_statuses(S.PENDING, Role.FIELD_USER, True) == ()
    assert reachable_statuses(S.PENDING, Role.FIELD_USER, False) == ()


def test_field_user_forward_only_after_contract():
    reachable = reachable_statuses(S.CONTRACT_RECEIVED, Role.FIELD_USER, True)

    assert reachable == (S.CONTRACT_RECEIVED, S.IN_TRANSFER, S.DELIVERED)
    assert S.PENDING not in reachable
    assert S.APPROVED not in reachable


def test_field_user_after_approval():
    assert reachable_statuses(S.APPROVED, Role.FIELD_USER, True) == (
        S.CONTRACT_RECEIVED,
        S.IN_TRANSFER,
        S.DELIVERED,
    )


@pytest.mark.parametrize("current", FORWARD_ORDER[2:])
def test_field_user_never_moves_backwards(current):
    for target in reachable_statuses(current, Role.FIELD_USER, True):
        assert forward_index(target) >= forward_index(current)


@pytest.mark.parametrize("current", ALL_STATUSES)
def test_field_user_never_offered_side_states(current):
    reachable = reachable_statuses(current, Role.FIELD_USER, True)
    assert not set(reachable) & set(SIDE_STATES)


def test_regional_manager_in_region_has_full_breadth():
    assert reachable_statuses(S.PENDING, Role.REGIONAL_MANAGER, True) == ALL_STATUSES
    assert reachable_statuses(S.DELIVERED, Role.REGIONAL_MANAGER, True) == ALL_STATUSES


@pytest.mark.parametrize("current", ALL_STATUSES)
def test_regional_manager_out_of_region_gets_nothing(current):
    assert reachable_statuses(current, Role.REGIONAL_MANAGER, False) == ()


@pytest.mark.parametrize("terminal", SIDE_STATES)
@pytest.mark.parametrize("role", [Role.REGIONAL_MANAGER, Role.FIELD_USER])
def test_terminal_states_absorb_non_privileged_roles(terminal, role):
    assert reachable_statuses(terminal, role, True) == ()
    assert reachable_statuses(terminal, role, False) == ()


def test_wire_strings_are_accepted():
    assert reachable_statuses("approved", "field_user", True) == (
        S.CONTRACT_RECEIVED,
        S.IN_TRANSFER,
        S.DELIVERED,
    )


def test_unknown_status_or_role_yields_nothing():
    assert reachable_statuses("archived", Role.ADMIN) == ()
    assert reachable_statuses(S.PENDING, "superuser") == ()
    assert reachable_statuses(None, None) == ()


def test_forward_index():
    assert forward_index(S.PENDING) == 0
    assert forward_index(S.DELIVERED) == 4
    assert forward_index(S.REJECTED) == -1

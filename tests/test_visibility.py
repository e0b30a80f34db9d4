"""
Visibility: the SQL clause pushed into list queries and the single-record
predicate must select the same proposals.
"""

import pytest

from artcrm.actors import resolve_actor, users_in_region
from artcrm.authorization import ProposalFacts
from artcrm.errors import ProposalNotFound
from artcrm.lifecycle import ProposalStatus
from artcrm.repository import ProposalRepository
from artcrm.roles import Role
from artcrm.services import ProposalService
from artcrm.visibility import is_visible, visibility_clause

S = ProposalStatus


@pytest.fixture
def world(make_region, make_user, make_proposal):
    north = make_region("North")
    south = make_region("South")

    users = {
        "admin": make_user(Role.ADMIN),
        "manager": make_user(Role.MANAGER),
        "rm_north": make_user(Role.REGIONAL_MANAGER, north),
        "rm_none": make_user(Role.REGIONAL_MANAGER),
        "fu_north_1": make_user(Role.FIELD_USER, north),
        "fu_north_2": make_user(Role.FIELD_USER, north),
        "fu_south": make_user(Role.FIELD_USER, south),
    }

    proposals = {
        "north_1_pending": make_proposal(users["fu_north_1"]),
        "north_2_pending": make_proposal(users["fu_north_2"]),
        "north_2_approved": make_proposal(
            users["fu_north_2"], S.APPROVED, approved_by=users["rm_north"].id
        ),
        "south_delivered": make_proposal(users["fu_south"], S.DELIVERED),
        "south_rejected_by_north_1": make_proposal(
            users["fu_south"], S.REJECTED, rejected_by=users["fu_north_1"].id
        ),
        "rm_none_own": make_proposal(users["rm_none"]),
    }
    return users, proposals


EXPECTED = {
    "admin": "all",
    "manager": "all",
    "rm_north": {"north_1_pending", "north_2_pending", "north_2_approved"},
    "rm_none": {"rm_none_own"},
    "fu_north_1": {"north_1_pending", "north_2_approved", "south_rejected_by_north_1"},
    "fu_north_2": {"north_2_pending", "north_2_approved"},
    "fu_south": {"south_delivered", "south_rejected_by_north_1"},
}


def _names(proposals, rows):
    ids = {p.id for p in rows}
    return {name for name, p in proposals.items() if p.id in ids}


@pytest.mark.parametrize("who", sorted(EXPECTED))
def test_list_pushes_visibility_into_query(world, who):
    users, proposals = world
    actor = resolve_actor(users[who])

    listed = ProposalService().list_for(actor).value

    expected = set(proposals) if EXPECTED[who] == "all" else EXPECTED[who]
    assert _names(proposals, listed) == expected


@pytest.mark.parametrize("who", sorted(EXPECTED))
def test_single_record_predicate_agrees_with_clause(world, who):
    users, proposals = world
    actor = resolve_actor(users[who])
    members = users_in_region(actor.region_id) if actor.is_region_scoped else frozenset()

    listed_ids = {p.id for p in ProposalRepository().list(visibility_clause(actor, members))}

    for proposal in proposals.values():
        assert is_visible(actor, ProposalFacts.from_model(proposal), members) == (proposal.id in listed_ids)


def test_pending_peer_work_stays_hidden(world):
    users, proposals = world
    service = ProposalService()

    with pytest.raises(ProposalNotFound):
        service.get_for(resolve_actor(users["fu_north_1"]), proposals["north_2_pending"].id)


def test_peer_work_becomes_visible_after_approval(world):
    users, proposals = world

    result = ProposalService().get_for(resolve_actor(users["fu_north_1"]), proposals["north_2_approved"].id)

    assert result.allowed
    assert result.value.id == proposals["north_2_approved"].id


def test_unknown_proposal_is_not_found(world):
    users, _ = world

    with pytest.raises(ProposalNotFound):
        ProposalService().get_for(resolve_actor(users["admin"]), 999999)


def test_users_in_region(world, make_region):
    users, _ = world
    north_id = users["rm_north"].region_id

    assert users_in_region(north_id) == {
        users["rm_north"].id,
        users["fu_north_1"].id,
        users["fu_north_2"].id,
    }
    assert users_in_region(None) == frozenset()
    assert users_in_region(make_region("Empty").id) == frozenset()


def test_unauthenticated_list_is_denied(world):
    result = ProposalService().list_for(None)

    assert not result.allowed
    assert result.value == []

"""Repository: optimistic concurrency and atomic item replacement."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import text, true

from artcrm.errors import ProposalNotFound, RepositoryError, StaleProposalError
from artcrm.models import Proposal
from artcrm.pricing import LineItem
from artcrm.repository import ProposalRepository
from artcrm.roles import Role


@pytest.fixture
def owner(make_user):
    return make_user(Role.FIELD_USER)


def test_update_bumps_version(db, owner, make_proposal):
    proposal = make_proposal(owner)
    repo = ProposalRepository()
    assert proposal.version == 1

    with repo.unit_of_work(proposal.id):
        repo.update_fields(proposal.id, {"notes": "call back"}, expected_version=1)

    db.session.expire_all()
    assert db.session.get(Proposal, proposal.id).version == 2


def test_expected_version_mismatch_is_rejected(db, owner, make_proposal):
    proposal = make_proposal(owner)
    repo = ProposalRepository()

    with pytest.raises(StaleProposalError) as excinfo:
        with repo.unit_of_work(proposal.id):
            repo.update_fields(proposal.id, {"notes": "late"}, expected_version=0)

    assert excinfo.value.proposal_id == proposal.id
    assert excinfo.value.actual_version == 1
    db.session.expire_all()
    assert db.session.get(Proposal, proposal.id).notes is None


def test_concurrent_write_is_rejected_at_flush(db, owner, make_proposal):
    proposal = make_proposal(owner, status="approved")
    repo = ProposalRepository()
    assert repo.require(proposal.id).version == 1

    # Another writer bumps the row behind this session's back.
    db.session.execute(
        text("UPDATE proposals SET version = version + 1 WHERE id = :id"), {"id": proposal.id}
    )

    with pytest.raises(StaleProposalError):
        with repo.unit_of_work(proposal.id):
            repo.update_fields(proposal.id, {"status": "in_transfer"})

    db.session.expire_all()
    assert db.session.get(Proposal, proposal.id).status == "approved"


def test_replace_items_swaps_the_whole_set(db, owner, make_proposal, products):
    implant, _ = products
    proposal = make_proposal(owner)
    repo = ProposalRepository()

    with repo.unit_of_work(proposal.id):
        repo.replace_items(proposal.id, [LineItem(product_id=implant.id, quantity=5, unit_price=Decimal("90"))])

    db.session.expire_all()
    items = db.session.get(Proposal, proposal.id).items
    assert [(i.product_id, i.quantity) for i in items] == [(implant.id, 5)]


def test_failed_item_replacement_keeps_original_items(db, owner, make_proposal, products):
    implant, abutment = products
    proposal = make_proposal(owner)
    before = [(i.product_id, i.quantity) for i in proposal.items]
    repo = ProposalRepository()

    # Second line violates the quantity check constraint at the datastore.
    bad = [
        LineItem(product_id=implant.id, quantity=1, unit_price=Decimal("1")),
        LineItem(product_id=abutment.id, quantity=0, unit_price=Decimal("1")),
    ]
    with pytest.raises(RepositoryError):
        with repo.unit_of_work(proposal.id):
            repo.replace_items(proposal.id, bad)

    db.session.expire_all()
    after = [(i.product_id, i.quantity) for i in db.session.get(Proposal, proposal.id).items]
    assert after == before


def test_update_fields_refuses_unknown_columns(db, owner, make_proposal):
    proposal = make_proposal(owner)
    repo = ProposalRepository()

    with pytest.raises(ValueError, match="owner_id"):
        with repo.unit_of_work(proposal.id):
            repo.update_fields(proposal.id, {"owner_id": 123})


def test_get_by_id_and_require(owner, make_proposal):
    repo = ProposalRepository()
    proposal = make_proposal(owner)

    assert repo.get_by_id(proposal.id) is proposal
    assert repo.get_by_id(0) is None
    with pytest.raises(ProposalNotFound):
        repo.require(424242)


def test_list_is_newest_first(owner, make_proposal):
    older = make_proposal(owner, created_at=datetime(2026, 1, 1))
    newer = make_proposal(owner, created_at=datetime(2026, 2, 1))

    listed = ProposalRepository().list(true())

    assert [p.id for p in listed] == [newer.id, older.id]

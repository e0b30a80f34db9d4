"""
Pytest fixtures for the ART CRM test suite.

Provides:
- app / client on an in-memory SQLite database (TestConfig)
- factories for regions, users, clinics, products and proposals
- login helper for HTTP tests

Pure decision tests (lifecycle, authorization, pricing) need none of these.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from artcrm import create_app
from artcrm.extensions import db as _db
from artcrm.lifecycle import ProposalStatus
from artcrm.models import Clinic, Product, Proposal, ProposalItem, Region, User
from artcrm.pricing import LineItem, compute_totals
from artcrm.roles import Role

DEFAULT_PASSWORD = "secret-pass"


@pytest.fixture
def app():
    app = create_app("config.TestConfig")
    ctx = app.app_context()
    ctx.push()
    _db.create_all()
    yield app
    _db.session.remove()
    _db.drop_all()
    ctx.pop()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_region(db):
    def _make(name: str) -> Region:
        region = Region(name=name)
        db.session.add(region)
        db.session.commit()
        return region

    return _make


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: Role, region: Region | None = None, email: str | None = None,
              is_active: bool = True) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"{role.value}{counter['n']}@example.com",
            name=f"{role.value} {counter['n']}",
            role=role.value,
            region_id=region.id if region is not None else None,
            is_active=is_active,
        )
        user.set_password(DEFAULT_PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def clinic(db, make_region):
    clinic = Clinic(name="Test Clinic", region_id=make_region("Clinic Region").id)
    db.session.add(clinic)
    db.session.commit()
    return clinic


@pytest.fixture
def products(db):
    implant = Product(name="Implant", category="implant", price=Decimal("100.00"), currency="TRY")
    abutment = Product(name="Abutment", category="accessory", price=Decimal("50.00"), currency="TRY")
    db.session.add_all([implant, abutment])
    db.session.commit()
    return implant, abutment


@pytest.fixture
def make_proposal(db, clinic, products):
    """
    Insert a proposal directly (no authorization), for arranging test state.

    Default content: 2 x 100 + 1 x 50, discount 10% -> total 225.00.
    """
    implant, abutment = products

    def _make(owner: User, status: ProposalStatus = ProposalStatus.PENDING,
              discount: Decimal = Decimal("10"), installment_count: int = 1, **fields) -> Proposal:
        lines = [
            LineItem(product_id=implant.id, quantity=2, unit_price=Decimal("100.00")),
            LineItem(product_id=abutment.id, quantity=1, unit_price=Decimal("50.00")),
        ]
        totals = compute_totals(lines, discount, installment_count)
        proposal = Proposal(
            owner_id=owner.id,
            clinic_id=clinic.id,
            currency="TRY",
            discount=discount,
            total_amount=totals.total_amount,
            installment_count=installment_count,
            installment_amount=totals.installment_amount,
            status=ProposalStatus(status).value,
            items=[
                ProposalItem(product_id=line.product_id, quantity=line.quantity, unit_price=line.unit_price)
                for line in lines
            ],
            **fields,
        )
        db.session.add(proposal)
        db.session.commit()
        return proposal

    return _make


@pytest.fixture
def login(client):
    def _login(user: User, password: str = DEFAULT_PASSWORD):
        return client.post("/auth/login", json={"email": user.email, "password": password})

    return _login


@pytest.fixture
def payload(clinic, products):
    """A valid create payload: 2 x 100 + 1 x 50, discount 10%."""
    implant, abutment = products
    return {
        "clinic_id": clinic.id,
        "currency": "TRY",
        "discount": "10",
        "installment_count": 3,
        "first_payment_date": "2026-01-31",
        "items": [
            {"product_id": implant.id, "quantity": 2, "unit_price": "100"},
            {"product_id": abutment.id, "quantity": 1, "unit_price": "50"},
        ],
    }

"""
artcrm/seed.py

Seed default reference data and the first admin.

Rules:
- Safe to run multiple times (idempotent): rows are matched by name/email.
- Products keep their configured price; re-seeding does not overwrite edits.
"""

from __future__ import annotations

from decimal import Decimal

from .extensions import db
from .models import Clinic, Product, Region, User
from .roles import Role


DEFAULT_REGIONS = ["Istanbul", "Ankara", "Izmir"]

DEFAULT_PRODUCTS = [
    # name, category, price, currency
    ("Standard Implant", "implant", Decimal("250.00"), "TRY"),
    ("Premium Implant", "implant", Decimal("420.00"), "TRY"),
    ("Healing Abutment", "accessory", Decimal("35.00"), "TRY"),
    ("Surgical Kit", "tool", Decimal("1800.00"), "TRY"),
]

DEFAULT_CLINICS = [
    # name, region name
    ("Bosphorus Dental Clinic", "Istanbul"),
    ("Capital Oral Surgery", "Ankara"),
    ("Aegean Dental Center", "Izmir"),
]


def seed_catalog() -> None:
    """Create default regions, products and clinics if they don't exist."""
    regions = {}
    for name in DEFAULT_REGIONS:
        region = Region.query.filter_by(name=name).first()
        if not region:
            region = Region(name=name, is_active=True)
            db.session.add(region)
            db.session.flush()
        regions[name] = region

    for name, category, price, currency in DEFAULT_PRODUCTS:
        if Product.query.filter_by(name=name).first():
            continue
        db.session.add(Product(name=name, category=category, price=price, currency=currency, is_active=True))

    for name, region_name in DEFAULT_CLINICS:
        if Clinic.query.filter_by(name=name).first():
            continue
        db.session.add(Clinic(name=name, region_id=regions[region_name].id, is_active=True))

    db.session.commit()


def ensure_admin(email: str, password: str) -> User:
    """Create the admin, or promote and reactivate an existing user with that email."""
    email = email.strip().lower()
    user = User.query.filter_by(email=email).first()
    if user is None:
        user = User(email=email, name="System Administrator")
        db.session.add(user)

    user.role = Role.ADMIN.value
    user.is_active = True
    user.set_password(password)
    db.session.commit()
    return user

"""
ART CRM – Domain Models

- Region: organizational scoping unit (users and clinics belong to one).
- User: login identity with role + optional region (Flask-Login).
- Clinic / Product: reference data the proposal form selects from.
- Proposal / ProposalItem: sales quotation and its product lines.
- AuditLog: WHO did WHAT to WHICH entity, with before/after snapshots.

IMPORTANT:
- UI is never trusted. Totals and status stamps are computed server-side.
- Proposal.version is the optimistic concurrency counter (SQLAlchemy version_id_col).
  A write against a stale snapshot raises StaleDataError at flush.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db
from .lifecycle import STATUS_LABELS, ProposalStatus
from .pricing import effective_quantity, line_total
from .roles import ROLE_LABELS, Role


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _dec(value) -> str | None:
    return str(value) if value is not None else None


def _display_name(user) -> str | None:
    if user is None:
        return None
    return user.name or user.email


# ---------------------------------------------------------------------
# Organization & users
# ---------------------------------------------------------------------
class Region(db.Model):
    __tablename__ = "regions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    users = db.relationship("User", back_populates="region", lazy=True)
    clinics = db.relationship("Clinic", back_populates="region", lazy=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "is_active": self.is_active}

    def __repr__(self):
        return f"<Region {self.name}>"


class User(UserMixin, db.Model):
    """System login user. Role drives every authorization decision."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(30), nullable=False, default=Role.FIELD_USER.value, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    region_id = db.Column(
        db.Integer,
        db.ForeignKey("regions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    region = db.relationship("Region", back_populates="users")

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "role_label": ROLE_LABELS.get(Role.parse(self.role), self.role),
            "region_id": self.region_id,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


# ---------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------
class Clinic(db.Model):
    __tablename__ = "clinics"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    address = db.Column(db.String(255))
    contact_person = db.Column(db.String(255))

    region_id = db.Column(
        db.Integer,
        db.ForeignKey("regions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    region = db.relationship("Region", back_populates="clinics")

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "region_id": self.region_id}


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True, index=True)
    category = db.Column(db.String(30), nullable=False, default="other")
    price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    currency = db.Column(db.String(3), nullable=False, default="TRY")
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": _dec(self.price),
            "currency": self.currency,
        }


# ---------------------------------------------------------------------
# Proposal domain
# ---------------------------------------------------------------------
class Proposal(db.Model):
    __tablename__ = "proposals"

    id = db.Column(db.Integer, primary_key=True)

    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    clinic_id = db.Column(
        db.Integer,
        db.ForeignKey("clinics.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    currency = db.Column(db.String(3), nullable=False, default="TRY")
    discount = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    status = db.Column(db.String(30), nullable=False, default=ProposalStatus.PENDING.value, index=True)

    # Audit stamps. At most one of approved_by / rejected_by is set.
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    rejected_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    rejected_at = db.Column(db.DateTime, nullable=True)

    notes = db.Column(db.Text, nullable=True)

    installment_count = db.Column(db.Integer, nullable=False, default=1)
    first_payment_date = db.Column(db.Date, nullable=True)
    installment_amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = db.relationship("User", foreign_keys=[owner_id])
    approver = db.relationship("User", foreign_keys=[approved_by])
    rejecter = db.relationship("User", foreign_keys=[rejected_by])
    clinic = db.relationship("Clinic")

    items = db.relationship(
        "ProposalItem",
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="ProposalItem.id",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def status_enum(self) -> ProposalStatus | None:
        return ProposalStatus.parse(self.status)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "clinic_id": self.clinic_id,
            "clinic": self.clinic.to_dict() if self.clinic else None,
            "currency": self.currency,
            "discount": _dec(self.discount),
            "total_amount": _dec(self.total_amount),
            "status": self.status,
            "status_label": STATUS_LABELS.get(self.status_enum, self.status),
            "approved_by": self.approved_by,
            "approver_name": _display_name(self.approver),
            "approved_at": _iso(self.approved_at),
            "rejected_by": self.rejected_by,
            "rejecter_name": _display_name(self.rejecter),
            "rejected_at": _iso(self.rejected_at),
            "notes": self.notes,
            "installment_count": self.installment_count,
            "first_payment_date": _iso(self.first_payment_date),
            "installment_amount": _dec(self.installment_amount),
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f"<Proposal #{self.id} {self.status}>"


class ProposalItem(db.Model):
    __tablename__ = "proposal_items"

    id = db.Column(db.Integer, primary_key=True)

    proposal_id = db.Column(
        db.Integer,
        db.ForeignKey("proposals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)

    # Bonus quantity: shown to the clinic, never billed.
    excess = db.Column(db.Boolean, default=False, nullable=False)
    excess_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0.00"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    proposal = db.relationship("Proposal", back_populates="items")
    product = db.relationship("Product")

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_proposal_item_quantity_positive"),
    )

    @property
    def total_price(self) -> Decimal:
        return line_total(self)

    @property
    def effective_quantity(self) -> Decimal:
        return effective_quantity(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "quantity": self.quantity,
            "unit_price": _dec(self.unit_price),
            "excess": self.excess,
            "excess_percentage": _dec(self.excess_percentage),
            "effective_quantity": _dec(self.effective_quantity),
            "total_price": _dec(self.total_price),
        }


class AuditLog(db.Model):
    """Audit trail for every proposal/user mutation."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    role_snapshot = db.Column(db.String(30), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))

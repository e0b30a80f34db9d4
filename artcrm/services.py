"""
artcrm/services.py

Proposal service: one method per user action.

Every method follows the same sequence:
    resolve (actor passed in) -> fresh read -> decide -> write -> audit
and returns a ServiceResult. Expected refusals (role, scope, lifecycle,
integrity) come back as a denying Decision; only datastore failures raise
(RepositoryError / StaleProposalError), and an unknown or invisible proposal
raises ProposalNotFound.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select

from .actors import Actor, users_in_region
from .audit import log_action, serialize_model
from .authorization import (
    Decision,
    DenyReason,
    ProposalFacts,
    can_change_status,
    can_create,
    can_edit_content,
    reachable_for,
    status_stamps,
)
from .errors import ProposalNotFound
from .extensions import db
from .lifecycle import ALL_STATUSES, ProposalStatus
from .models import Clinic, Product, Proposal
from .pricing import LineItem, compute_totals, installment_schedule, validate_proposal_input
from .repository import ProposalRepository
from .utils import parse_bool, parse_date, parse_decimal, parse_optional_int
from .visibility import is_visible, visibility_clause

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    decision: Decision
    value: Any = None

    @property
    def allowed(self) -> bool:
        return self.decision.allowed


@dataclass(frozen=True)
class ProposalDraft:
    clinic_id: Optional[int]
    currency: Optional[str]
    discount: Optional[Decimal]
    notes: Optional[str]
    installment_count: Optional[int]
    first_payment_date: Optional[date]
    items: Tuple[LineItem, ...]


_UNAUTHENTICATED = Decision.deny(DenyReason.UNAUTHENTICATED, "You must be signed in.")


def _integrity(problems: List[str]) -> Decision:
    return Decision.deny(DenyReason.INTEGRITY_VIOLATION, " ".join(problems))


class ProposalService:
    def __init__(self, repository: Optional[ProposalRepository] = None):
        self.repository = repository or ProposalRepository()

    # -----------------------------
    # Reads
    # -----------------------------
    def list_for(self, actor: Optional[Actor]) -> ServiceResult:
        if actor is None:
            return ServiceResult(_UNAUTHENTICATED, [])
        clause = visibility_clause(actor, self._members(actor))
        return ServiceResult(Decision.allow(), self.repository.list(clause))

    def get_for(self, actor: Optional[Actor], proposal_id: int) -> ServiceResult:
        if actor is None:
            return ServiceResult(_UNAUTHENTICATED)
        return ServiceResult(Decision.allow(), self._load_visible(actor, proposal_id))

    def permissions_for(self, actor: Optional[Actor], proposal_id: int) -> ServiceResult:
        """What the actor may do with one proposal, with a reason for every refusal."""
        if actor is None:
            return ServiceResult(_UNAUTHENTICATED)

        proposal = self._load_visible(actor, proposal_id)
        facts = ProposalFacts.from_model(proposal)

        return ServiceResult(
            Decision.allow(),
            {
                "proposal_id": proposal.id,
                "status": facts.status.value,
                "version": facts.version,
                "can_edit_content": can_edit_content(actor, facts).to_dict(),
                "reachable_statuses": [s.value for s in reachable_for(actor, facts)],
                "status_changes": {
                    s.value: can_change_status(actor, facts, s).to_dict() for s in ALL_STATUSES
                },
            },
        )

    def schedule_for(self, actor: Optional[Actor], proposal_id: int) -> ServiceResult:
        """Installment plan of a visible proposal (due date, amount)."""
        if actor is None:
            return ServiceResult(_UNAUTHENTICATED)

        proposal = self._load_visible(actor, proposal_id)
        first_due = proposal.first_payment_date or (proposal.created_at or datetime.utcnow()).date()
        plan = installment_schedule(proposal.total_amount, proposal.installment_count or 1, first_due)
        return ServiceResult(Decision.allow(), plan)

    # -----------------------------
    # Writes
    # -----------------------------
    def create(self, actor: Optional[Actor], payload: Dict[str, Any]) -> ServiceResult:
        decision = can_create(actor)
        if not decision:
            return self._denied(actor, "create", None, decision)

        draft, _, problems = self._read_draft(payload, base=None)
        if problems:
            return self._denied(actor, "create", None, _integrity(problems))

        totals = compute_totals(draft.items, draft.discount, draft.installment_count)

        # Status is never taken from the client: new proposals are always pending.
        proposal = Proposal(
            owner_id=actor.id,
            clinic_id=draft.clinic_id,
            currency=draft.currency,
            discount=draft.discount,
            total_amount=totals.total_amount,
            status=ProposalStatus.PENDING.value,
            notes=draft.notes,
            installment_count=draft.installment_count,
            first_payment_date=draft.first_payment_date,
            installment_amount=totals.installment_amount,
        )

        with self.repository.unit_of_work():
            self.repository.insert(proposal, draft.items)
            log_action(actor, proposal, "CREATE", before=None, after=serialize_model(proposal))

        logger.info("User %s created proposal #%s (total %s %s).",
                    actor.id, proposal.id, proposal.total_amount, proposal.currency)
        return ServiceResult(decision, proposal)

    def edit_content(
        self,
        actor: Optional[Actor],
        proposal_id: int,
        payload: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> ServiceResult:
        if actor is None:
            return ServiceResult(_UNAUTHENTICATED)

        proposal = self._load_visible(actor, proposal_id)
        facts = ProposalFacts.from_model(proposal)

        decision = can_edit_content(actor, facts)
        if not decision:
            return self._denied(actor, "edit", proposal_id, decision)

        problems: List[str] = []
        if "status" in payload and ProposalStatus.parse(payload.get("status")) != facts.status:
            problems.append("Status cannot be changed with a content edit; use the status action.")

        draft, replace_items, draft_problems = self._read_draft(payload, base=proposal)
        problems.extend(draft_problems)
        if problems:
            return self._denied(actor, "edit", proposal_id, _integrity(problems))

        totals = compute_totals(draft.items, draft.discount, draft.installment_count)
        before = serialize_model(proposal)

        fields = {
            "clinic_id": draft.clinic_id,
            "currency": draft.currency,
            "discount": draft.discount,
            "notes": draft.notes,
            "installment_count": draft.installment_count,
            "first_payment_date": draft.first_payment_date,
            "total_amount": totals.total_amount,
            "installment_amount": totals.installment_amount,
        }

        with self.repository.unit_of_work(proposal.id):
            self.repository.update_fields(proposal.id, fields, expected_version)
            if replace_items:
                self.repository.replace_items(proposal.id, draft.items)
            log_action(actor, proposal, "UPDATE", before=before, after=serialize_model(proposal))

        logger.info("User %s edited proposal #%s.", actor.id, proposal.id)
        return ServiceResult(decision, proposal)

    def change_status(
        self,
        actor: Optional[Actor],
        proposal_id: int,
        requested: Any,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ServiceResult:
        if actor is None:
            return ServiceResult(_UNAUTHENTICATED)

        proposal = self._load_visible(actor, proposal_id)
        facts = ProposalFacts.from_model(proposal)

        decision = can_change_status(actor, facts, requested)
        if not decision:
            return self._denied(actor, "status", proposal_id, decision)

        target = ProposalStatus.parse(requested)
        notes = (str(notes).strip() or None) if notes is not None else None

        if target == facts.status and notes is None:
            return ServiceResult(decision, proposal)

        fields: Dict[str, Any] = {"status": target.value}
        fields.update(status_stamps(actor, facts.status, target, datetime.utcnow()))
        if notes is not None:
            fields["notes"] = notes

        before = {"status": facts.status.value, "approved_by": facts.approved_by, "rejected_by": facts.rejected_by}

        # Status and audit stamps are written in one UPDATE, in one transaction.
        with self.repository.unit_of_work(proposal.id):
            self.repository.update_fields(proposal.id, fields, expected_version)
            log_action(actor, proposal, "STATUS", before=before, after=serialize_model(proposal))

        logger.info("User %s moved proposal #%s from %s to %s.",
                    actor.id, proposal.id, facts.status.value, target.value)
        return ServiceResult(decision, proposal)

    # -----------------------------
    # Helpers
    # -----------------------------
    def _members(self, actor: Actor):
        if not actor.is_region_scoped or actor.region_id is None:
            return frozenset()
        return users_in_region(actor.region_id)

    def _load_visible(self, actor: Actor, proposal_id: int) -> Proposal:
        """Fresh read; invisible proposals are reported as missing."""
        proposal = self.repository.require(proposal_id)
        facts = ProposalFacts.from_model(proposal)
        if not is_visible(actor, facts, self._members(actor)):
            logger.info("User %s asked for invisible proposal #%s.", actor.id, proposal_id)
            raise ProposalNotFound(proposal_id)
        return proposal

    def _denied(self, actor: Optional[Actor], operation: str, proposal_id, decision: Decision) -> ServiceResult:
        logger.info(
            "Denied %s on proposal %s for user %s: %s (%s)",
            operation,
            proposal_id if proposal_id is not None else "-",
            actor.id if actor is not None else "-",
            decision.reason.value if decision.reason else "-",
            decision.message,
        )
        return ServiceResult(decision)

    def _read_draft(
        self,
        payload: Dict[str, Any],
        base: Optional[Proposal],
    ) -> Tuple[ProposalDraft, bool, List[str]]:
        """
        Parse a create/edit payload. On edit, absent keys keep the stored value.

        Returns (draft, items_given, problems).
        """
        problems: List[str] = []

        def pick(key, parser, default):
            if key in payload:
                return parser(payload.get(key))
            return default

        clinic_id = pick("clinic_id", parse_optional_int, base.clinic_id if base else None)
        currency = pick(
            "currency",
            lambda v: (str(v).strip().upper() if v is not None else None),
            base.currency if base else "TRY",
        )
        discount = pick("discount", parse_decimal, base.discount if base else Decimal("0"))
        notes = pick("notes", lambda v: (str(v).strip() or None) if v is not None else None,
                     base.notes if base else None)
        installment_count = pick("installment_count", parse_optional_int, base.installment_count if base else 1)
        first_payment_date = pick("first_payment_date", parse_date, base.first_payment_date if base else None)

        if "first_payment_date" in payload and payload.get("first_payment_date") not in (None, "") \
                and first_payment_date is None:
            problems.append("First payment date must be a date (YYYY-MM-DD).")

        if clinic_id is None:
            problems.append("Clinic is required.")
        elif "clinic_id" in payload or base is None:
            clinic = db.session.get(Clinic, clinic_id)
            if clinic is None or not clinic.is_active:
                problems.append("Unknown or inactive clinic.")

        items_given = "items" in payload
        if items_given:
            items, item_problems = self._read_items(payload.get("items"))
            problems.extend(item_problems)
        elif base is not None:
            items = tuple(
                LineItem(
                    product_id=i.product_id,
                    quantity=i.quantity,
                    unit_price=Decimal(str(i.unit_price)),
                    excess=bool(i.excess),
                    excess_percentage=Decimal(str(i.excess_percentage or 0)),
                )
                for i in base.items
            )
        else:
            items = ()

        problems.extend(validate_proposal_input(items, discount, installment_count, currency))

        draft = ProposalDraft(
            clinic_id=clinic_id,
            currency=currency,
            discount=discount,
            notes=notes,
            installment_count=installment_count,
            first_payment_date=first_payment_date,
            items=items,
        )
        return draft, items_given, problems

    def _read_items(self, raw_items: Any) -> Tuple[Tuple[LineItem, ...], List[str]]:
        """Line items from the payload. Missing unit prices default to the product price."""
        if not isinstance(raw_items, list):
            return (), ["Items must be a list."]

        product_ids = {parse_optional_int(r.get("product_id")) for r in raw_items if isinstance(r, dict)}
        product_ids.discard(None)
        products = {
            p.id: p
            for p in db.session.execute(select(Product).where(Product.id.in_(product_ids))).scalars()
        } if product_ids else {}

        problems: List[str] = []
        items: List[LineItem] = []
        for idx, raw in enumerate(raw_items, start=1):
            if not isinstance(raw, dict):
                problems.append(f"Line {idx}: malformed item.")
                continue

            product_id = parse_optional_int(raw.get("product_id"))
            product = products.get(product_id)
            if product_id is not None and (product is None or not product.is_active):
                problems.append(f"Line {idx}: unknown or inactive product.")

            unit_price = parse_decimal(raw.get("unit_price"))
            if raw.get("unit_price") in (None, "") and product is not None:
                unit_price = Decimal(str(product.price))

            excess = parse_bool(raw.get("excess"))
            excess_percentage = Decimal("0")
            if excess:
                excess_percentage = parse_decimal(raw.get("excess_percentage"))
                if excess_percentage is None:
                    problems.append(f"Line {idx}: excess percentage must be a number.")
                    excess_percentage = Decimal("0")

            items.append(
                LineItem(
                    product_id=product_id,
                    quantity=parse_optional_int(raw.get("quantity")),
                    unit_price=unit_price,
                    excess=excess,
                    excess_percentage=excess_percentage,
                )
            )

        return tuple(items), problems

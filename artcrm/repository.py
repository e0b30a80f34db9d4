"""
artcrm/repository.py

Proposal persistence facade over the SQLAlchemy session.

Transaction pattern (same as every mutating route):
    with repo.unit_of_work():
        repo.update_fields(...)
        repo.replace_items(...)
        log_action(...)
All statements commit together or roll back together. Item replacement
(delete all, insert all) therefore never leaves a partial item set.

Concurrency:
- Proposal.version is a version_id_col: every UPDATE carries
  "WHERE version = <read version>" and bumps it.
- update_fields() also checks an explicit expected_version from the client.
Both paths raise StaleProposalError.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload
from sqlalchemy.orm.exc import StaleDataError

from .errors import ProposalNotFound, RepositoryError, StaleProposalError
from .extensions import db
from .models import Proposal, ProposalItem
from .pricing import LineItem

logger = logging.getLogger(__name__)

# Columns update_fields() may write. Everything else is owned by the repository.
UPDATABLE_FIELDS = frozenset(
    {
        "clinic_id",
        "currency",
        "discount",
        "total_amount",
        "status",
        "notes",
        "approved_by",
        "approved_at",
        "rejected_by",
        "rejected_at",
        "installment_count",
        "first_payment_date",
        "installment_amount",
    }
)


class ProposalRepository:
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    # -----------------------------
    # Transactions
    # -----------------------------
    @contextmanager
    def unit_of_work(self, proposal_id: Optional[int] = None) -> Iterator[None]:
        """Commit on success; roll back and translate datastore failures otherwise."""
        try:
            yield
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            logger.warning("Stale proposal write rejected: %s", exc)
            raise StaleProposalError(proposal_id or 0) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Proposal write failed.", exc_info=True)
            raise RepositoryError("The proposal could not be saved. Please try again.") from exc
        except Exception:
            self.session.rollback()
            raise

    # -----------------------------
    # Reads
    # -----------------------------
    def list(self, clause) -> List[Proposal]:
        """Proposals matching a visibility clause, newest first."""
        stmt = (
            select(Proposal)
            .where(clause)
            .options(
                joinedload(Proposal.clinic),
                joinedload(Proposal.owner),
                joinedload(Proposal.approver),
                joinedload(Proposal.rejecter),
                selectinload(Proposal.items).joinedload(ProposalItem.product),
            )
            .order_by(Proposal.created_at.desc(), Proposal.id.desc())
        )
        return list(self.session.execute(stmt).unique().scalars())

    def get_by_id(self, proposal_id: int) -> Optional[Proposal]:
        if proposal_id is None or proposal_id <= 0:
            return None
        return self.session.get(Proposal, proposal_id)

    def require(self, proposal_id: int) -> Proposal:
        proposal = self.get_by_id(proposal_id)
        if proposal is None:
            raise ProposalNotFound(proposal_id)
        return proposal

    # -----------------------------
    # Writes (flush only; commit happens in unit_of_work)
    # -----------------------------
    def insert(self, proposal: Proposal, items: Iterable[LineItem]) -> Proposal:
        proposal.items = [_build_item(i) for i in items]
        self.session.add(proposal)
        self.session.flush()
        return proposal

    def replace_items(self, proposal_id: int, items: Iterable[LineItem]) -> List[ProposalItem]:
        """Delete every line of the proposal and insert the new set."""
        proposal = self.require(proposal_id)
        proposal.items = [_build_item(i) for i in items]
        self.session.flush()
        return proposal.items

    def update_fields(
        self,
        proposal_id: int,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Proposal:
        proposal = self.require(proposal_id)

        if expected_version is not None and proposal.version != expected_version:
            raise StaleProposalError(proposal_id, expected_version, proposal.version)

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Not updatable: {', '.join(sorted(unknown))}")

        for key, value in fields.items():
            setattr(proposal, key, value)

        # Always touch the row so the version check runs even for item-only edits.
        proposal.updated_at = datetime.utcnow()
        self.session.flush()
        return proposal


def _build_item(item: LineItem) -> ProposalItem:
    return ProposalItem(
        product_id=item.product_id,
        quantity=item.quantity,
        unit_price=item.unit_price,
        excess=bool(item.excess),
        excess_percentage=item.excess_percentage if item.excess else 0,
    )

"""
Exceptions for true failures.

Expected outcomes of normal use (denied by role, scope, lifecycle or integrity)
are returned as authorization.Decision values and never raised.
"""

from __future__ import annotations


class ArtCrmError(Exception):
    """Base class for application failures."""


class ProposalNotFound(ArtCrmError):
    """Proposal does not exist or is not visible to the actor."""

    def __init__(self, proposal_id: int):
        super().__init__(f"Proposal #{proposal_id} not found.")
        self.proposal_id = proposal_id


class RepositoryError(ArtCrmError):
    """Datastore failure (connectivity, constraint violation). Retryable."""


class StaleProposalError(RepositoryError):
    """The proposal changed after it was read; the write was rejected."""

    def __init__(self, proposal_id: int, expected_version: int | None = None, actual_version: int | None = None):
        msg = f"Proposal #{proposal_id} was modified by someone else. Reload and try again."
        super().__init__(msg)
        self.proposal_id = proposal_id
        self.expected_version = expected_version
        self.actual_version = actual_version

"""
artcrm/blueprints/proposals/routes.py

Proposal routes (JSON).

Includes:
- list / detail / permissions / installment schedule
- create
- content edit (clinic, currency, discount, items, installment plan)
- status change

IMPORTANT:
- UI is never trusted. Every decision is taken server-side by the service layer
  against a fresh read of the proposal.
- Clients send the `version` they read; a stale version is refused with 409.
- Visibility is checked before any decision. A proposal the actor cannot see
  answers 404 on every route, so a regional manager acting outside their region
  gets 404 here, not the 403 forbidden_scope the decision would give. Hidden
  records never reveal that they exist.
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from ...actors import Actor
from ...security import actor_required, deny_response
from ...services import ProposalService
from ...utils import parse_optional_int, request_payload

proposals_bp = Blueprint("proposals", __name__, url_prefix="/proposals")


def _service() -> ProposalService:
    return ProposalService()


def _expected_version(payload: dict) -> int | None:
    return parse_optional_int(payload.get("version"))


# ---------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------
@proposals_bp.route("/", methods=["GET"])
@actor_required
def list_proposals(actor: Actor):
    result = _service().list_for(actor)
    if not result.allowed:
        return deny_response(result.decision)
    return jsonify({"proposals": [p.to_dict(include_items=False) for p in result.value]})


@proposals_bp.route("/<int:proposal_id>", methods=["GET"])
@actor_required
def get_proposal(proposal_id: int, actor: Actor):
    result = _service().get_for(actor, proposal_id)
    if not result.allowed:
        return deny_response(result.decision)
    return jsonify({"proposal": result.value.to_dict()})


@proposals_bp.route("/<int:proposal_id>/permissions", methods=["GET"])
@actor_required
def proposal_permissions(proposal_id: int, actor: Actor):
    result = _service().permissions_for(actor, proposal_id)
    if not result.allowed:
        return deny_response(result.decision)
    return jsonify(result.value)


@proposals_bp.route("/<int:proposal_id>/schedule", methods=["GET"])
@actor_required
def proposal_schedule(proposal_id: int, actor: Actor):
    result = _service().schedule_for(actor, proposal_id)
    if not result.allowed:
        return deny_response(result.decision)
    return jsonify(
        {
            "proposal_id": proposal_id,
            "installments": [
                {"due_date": due.isoformat(), "amount": str(amount)} for due, amount in result.value
            ],
        }
    )


# ---------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------
@proposals_bp.route("/", methods=["POST"])
@actor_required
def create_proposal(actor: Actor):
    result = _service().create(actor, request_payload())
    if not result.allowed:
        return deny_response(result.decision)
    return jsonify({"proposal": result.value.to_dict()}), 201


# ---------------------------------------------------------------------
# Edit content
# ---------------------------------------------------------------------
@proposals_bp.route("/<int:proposal_id>/edit", methods=["POST"])
@actor_required
def edit_proposal(proposal_id: int, actor: Actor):
    payload = request_payload()
    result = _service().edit_content(actor, proposal_id, payload, _expected_version(payload))
    if not result.allowed:
        return deny_response(result.decision)
    return jsonify({"proposal": result.value.to_dict()})


# ---------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------
@proposals_bp.route("/<int:proposal_id>/status", methods=["POST"])
@actor_required
def change_proposal_status(proposal_id: int, actor: Actor):
    payload = request_payload()
    result = _service().change_status(
        actor,
        proposal_id,
        payload.get("status"),
        notes=payload.get("notes"),
        expected_version=_expected_version(payload),
    )
    if not result.allowed:
        return deny_response(result.decision)
    return jsonify({"proposal": result.value.to_dict()})

"""
User Management (Admin Only).

Rules enforced:
- Role must be one of the closed role vocabulary.
- Region, when given, must exist.
- regional_manager / field_user without a region are allowed but only ever see
  their own proposals; the response carries a warning so the admin notices.
- UI never trusted: we validate server-side.

Audit:
- CREATE / UPDATE logged in the same transaction as the change.
"""

from flask import Blueprint, jsonify

from ...actors import Actor
from ...audit import log_action, serialize_model
from ...extensions import db
from ...models import Region, User
from ...roles import Role, is_region_scoped
from ...security import admin_required
from ...utils import parse_bool, parse_optional_int, request_payload


users_bp = Blueprint(
    "users",
    __name__,
    url_prefix="/users",
)


def _validate_region_id(region_id):
    """True if region_id is None or exists in DB."""
    if region_id is None:
        return True
    return db.session.get(Region, region_id) is not None


def _warnings_for(user: User) -> list:
    role = Role.parse(user.role)
    if role is not None and is_region_scoped(role) and user.region_id is None:
        return ["User has no region: they will only see their own proposals."]
    return []


# ---------------------------------------------------------------------
# LIST USERS
# ---------------------------------------------------------------------

@users_bp.route("/", methods=["GET"])
@admin_required
def list_users(actor: Actor):
    users = User.query.order_by(User.email.asc()).all()
    return jsonify({"users": [u.to_dict() for u in users]})


# ---------------------------------------------------------------------
# CREATE USER
# ---------------------------------------------------------------------

@users_bp.route("/", methods=["POST"])
@admin_required
def create_user(actor: Actor):
    """
    Create a new system user.

    Required: email, password, role. Optional: name, region_id.
    """
    payload = request_payload()
    email = (payload.get("email") or "").strip().lower()
    password = (payload.get("password") or "").strip()
    role = Role.parse(payload.get("role"))
    region_id = parse_optional_int(payload.get("region_id"))

    if not email or not password:
        return jsonify({"message": "Email and password are required."}), 422

    if role is None:
        return jsonify({"message": "Unknown role."}), 422

    if User.query.filter_by(email=email).first():
        return jsonify({"message": "Email already in use."}), 409

    if not _validate_region_id(region_id):
        return jsonify({"message": "Unknown region."}), 422

    user = User(
        email=email,
        name=(payload.get("name") or "").strip() or None,
        role=role.value,
        region_id=region_id,
        is_active=True,
    )
    user.set_password(password)

    db.session.add(user)
    db.session.flush()
    log_action(actor, user, "CREATE", before=None, after=serialize_model(user))
    db.session.commit()

    return jsonify({"user": user.to_dict(), "warnings": _warnings_for(user)}), 201


# ---------------------------------------------------------------------
# EDIT USER
# ---------------------------------------------------------------------

@users_bp.route("/<int:user_id>", methods=["POST"])
@admin_required
def edit_user(user_id: int, actor: Actor):
    """
    Edit an existing user.

    Admin can change role, region, name, active flag and reset the password.
    Absent keys keep their current value.
    """
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({"message": "User not found."}), 404

    payload = request_payload()
    before_snapshot = serialize_model(user)

    if "role" in payload:
        role = Role.parse(payload.get("role"))
        if role is None:
            return jsonify({"message": "Unknown role."}), 422
        user.role = role.value

    if "region_id" in payload:
        region_id = parse_optional_int(payload.get("region_id"))
        if not _validate_region_id(region_id):
            return jsonify({"message": "Unknown region."}), 422
        user.region_id = region_id

    if "name" in payload:
        user.name = (payload.get("name") or "").strip() or None

    if "is_active" in payload:
        if user.id == actor.id and not parse_bool(payload.get("is_active")):
            return jsonify({"message": "You cannot deactivate your own account."}), 422
        user.is_active = parse_bool(payload.get("is_active"))

    new_password = (payload.get("password") or "").strip()
    if new_password:
        user.set_password(new_password)

    db.session.flush()
    log_action(actor, user, "UPDATE", before=before_snapshot, after=serialize_model(user))
    db.session.commit()

    return jsonify({"user": user.to_dict(), "warnings": _warnings_for(user)})

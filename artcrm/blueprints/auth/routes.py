"""
Authentication Routes

Provides:
- POST /auth/login
- POST /auth/logout
- GET  /auth/me
- GET  /auth/csrf          (token for clients that post with CSRF enabled)
- POST /auth/seed-admin    (first system bootstrap)

Rules:
- Only active users may log in.
- Credentials validated via password hash.
- seed-admin works only while the users table is empty.
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...actors import resolve_actor
from ...audit import log_action, serialize_model
from ...extensions import db
from ...models import User
from ...roles import Role
from ...utils import request_payload


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    payload = request_payload()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        return jsonify({"message": "Invalid email or password."}), 401

    if not user.is_active:
        return jsonify({"message": "This account is inactive."}), 403

    login_user(user)
    return jsonify({"user": user.to_dict()})


# ============================================================
# LOGOUT / WHOAMI
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"message": "Signed out."})


@auth_bp.route("/me", methods=["GET"])
def me():
    actor = resolve_actor(current_user)
    if actor is None:
        return jsonify({"actor": None}), 401
    return jsonify({"actor": actor.to_dict(), "user": current_user.to_dict()})


@auth_bp.route("/csrf", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


# ============================================================
# SEED FIRST ADMIN (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-admin", methods=["POST"])
def seed_admin():
    """
    Bootstrap the FIRST admin of the system.

    Safety rule: if ANY user already exists -> refuse.
    """
    if User.query.count() > 0:
        return jsonify({"message": "A user already exists."}), 409

    payload = request_payload()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return jsonify({"message": "Email and password are required."}), 422

    user = User(
        email=email,
        name=(payload.get("name") or "").strip() or "System Administrator",
        role=Role.ADMIN.value,
        is_active=True,
        region_id=None,
    )
    user.set_password(password)

    db.session.add(user)
    db.session.flush()
    log_action(None, user, "CREATE", before=None, after=serialize_model(user))
    db.session.commit()

    return jsonify({"user": user.to_dict()}), 201

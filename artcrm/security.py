"""
artcrm/security.py

Request-level access control helpers.

Key rules:
- UI is never trusted; all permission checks are server-side.
- The actor is resolved ONCE per request from the Flask-Login session and
  handed to the view as the `actor` keyword argument. Views pass it on
  explicitly to the service layer; nothing below the views reads current_user.
- Deny decisions become JSON responses whose HTTP status depends on the reason:
    unauthenticated      -> 401
    forbidden_role/scope -> 403
    invalid_transition   -> 409
    integrity_violation  -> 422

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Dict, Tuple

from flask import jsonify
from flask_login import current_user

from .actors import resolve_actor
from .authorization import Decision, DenyReason
from .roles import Role

DENY_STATUS: Dict[DenyReason, int] = {
    DenyReason.UNAUTHENTICATED: 401,
    DenyReason.FORBIDDEN_ROLE: 403,
    DenyReason.FORBIDDEN_SCOPE: 403,
    DenyReason.INVALID_TRANSITION: 409,
    DenyReason.INTEGRITY_VIOLATION: 422,
}


def deny_response(decision: Decision) -> Tuple[Any, int]:
    """Render a denying Decision as JSON with the matching HTTP status."""
    return jsonify(decision.to_dict()), DENY_STATUS[decision.reason]


def _unauthenticated() -> Tuple[Any, int]:
    return deny_response(Decision.deny(DenyReason.UNAUTHENTICATED, "You must be signed in."))


def actor_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: resolve the Actor and pass it to the view; 401 if there is none."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        actor = resolve_actor(current_user)
        if actor is None:
            return _unauthenticated()
        return view_func(*args, actor=actor, **kwargs)

    return wrapper


def roles_required(*roles: Role) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator factory: actor must hold one of `roles`.

    Usage:
        @roles_required(Role.ADMIN)
        def list_users(actor): ...
    """
    allowed = frozenset(roles)

    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            actor = resolve_actor(current_user)
            if actor is None:
                return _unauthenticated()
            if actor.role not in allowed:
                return deny_response(
                    Decision.deny(DenyReason.FORBIDDEN_ROLE, "You do not have access to this page.")
                )
            return view_func(*args, actor=actor, **kwargs)

        return wrapper

    return decorator


admin_required = roles_required(Role.ADMIN)

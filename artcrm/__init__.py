"""
artcrm/__init__.py

Flask application factory for ART CRM (proposal authorization and lifecycle core).

Requirements:
- Clear architecture, stable imports, server-side access control.
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev.
- UI is never trusted; every decision is taken by the service layer.

Error contract (JSON):
- Denied decisions          -> 401 / 403 / 409 / 422 (see security.DENY_STATUS)
- Unknown/invisible proposal -> 404
- Stale version             -> 409 "conflict", client should reload
- Datastore failure         -> 503, retryable
"""

from __future__ import annotations

import logging

import click
from flask import Flask, jsonify
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from .errors import ProposalNotFound, RepositoryError, StaleProposalError
from .extensions import csrf, db, login_manager, migrate
from .logging_config import configure_logging
from .models import User

logger = logging.getLogger(__name__)


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login. Unreadable ids and DB errors mean 'no session'."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        except SQLAlchemyError:
            logger.warning("Could not load session user %s.", user_id, exc_info=True)
            return None

    @login_manager.unauthorized_handler
    def _unauthorized():
        return jsonify({"allowed": False, "reason": "unauthenticated", "message": "You must be signed in."}), 401

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.proposals import proposals_bp
    from .blueprints.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(proposals_bp)
    app.register_blueprint(users_bp)

    # ----------------------------------------------------------------------
    # Error handlers
    # ----------------------------------------------------------------------
    @app.errorhandler(ProposalNotFound)
    def _not_found(exc: ProposalNotFound):
        return jsonify({"message": "Proposal not found.", "proposal_id": exc.proposal_id}), 404

    @app.errorhandler(StaleProposalError)
    def _stale(exc: StaleProposalError):
        return jsonify(
            {
                "allowed": False,
                "reason": "conflict",
                "message": "The proposal was changed by someone else. Reload and try again.",
                "proposal_id": exc.proposal_id,
                "current_version": exc.actual_version,
            }
        ), 409

    @app.errorhandler(RepositoryError)
    @app.errorhandler(SQLAlchemyError)
    def _unavailable(exc):
        db.session.rollback()
        logger.error("Datastore error: %s", exc)
        return jsonify({"message": "The service is temporarily unavailable.", "retryable": True}), 503

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables (dev shortcut for `flask db upgrade`)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("seed-catalog")
    def seed_catalog_command():
        """Seed default regions, products and clinics."""
        from .seed import seed_catalog

        seed_catalog()
        click.echo("Default catalog seeded.")

    @app.cli.command("create-admin")
    @click.argument("email")
    @click.password_option()
    def create_admin_command(email: str, password: str):
        """Create an admin user (or promote an existing one)."""
        from .seed import ensure_admin

        user = ensure_admin(email, password)
        click.echo(f"Admin ready: {user.email}")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Service banner plus who is signed in."""
        return jsonify(
            {
                "app": app.config.get("APP_NAME", "ART CRM"),
                "authenticated": bool(current_user.is_authenticated),
            }
        )

    return app

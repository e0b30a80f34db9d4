"""
Flask extension singletons for ART CRM.

Created unbound here and attached in create_app(), so models, services and
blueprints can import `db` without importing the app.

- db:            Flask-SQLAlchemy (models, repository, visibility clause)
- migrate:       Flask-Migrate / Alembic (`flask db upgrade`)
- login_manager: Flask-Login session identity (resolved into an Actor per request)
- csrf:          Flask-WTF CSRF on POST requests (token from GET /auth/csrf)
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()

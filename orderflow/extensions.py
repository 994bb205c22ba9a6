"""
Flask extension instances for orderflow.

Bound to the app in create_app(). The engines never import `db` directly;
they receive an EntryStore wrapping db.session (see orderflow.services).
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()  # `flask db migrate/upgrade` against the models in orderflow.models
login_manager = LoginManager()
csrf = CSRFProtect()  # mutating JSON calls send X-CSRFToken (GET /auth/csrf)

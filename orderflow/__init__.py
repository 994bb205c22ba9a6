"""
orderflow/__init__.py

Flask application factory for the Orderflow procurement pipeline.

Requirements:
- Clear architecture: blueprints are thin, rules live in the engines
  (orderflow.workflow, orderflow.aggregation, orderflow.directory,
  orderflow.credentials) behind one EntryStore.
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev.
- Client is never trusted; server-side access control is enforced.

Every typed error (orderflow.errors) is rendered as JSON with its own
HTTP status; the core never builds responses itself.
"""

from __future__ import annotations

import logging

import click
from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError

from .errors import OrderflowError, PersistenceError
from .extensions import csrf, db, login_manager, migrate
from .models import User
from .services import EXTENSION_KEY, build_services

# Blueprint imports kept inside create_app() where possible to reduce import side effects.

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _configure_logging(app: Flask) -> None:
    """Level and handler for the orderflow logger hierarchy (idempotent)."""
    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    _configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    app.extensions[EXTENSION_KEY] = build_services(db.session)

    # ----------------------------------------------------------------------
    # Errors -> JSON
    # ----------------------------------------------------------------------
    @app.errorhandler(OrderflowError)
    def handle_orderflow_error(error: OrderflowError):
        if isinstance(error, PersistenceError):
            logger.error("%s: %s", error.code, error.message)
        else:
            logger.info("%s: %s", error.code, error.message)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error: CSRFError):
        return jsonify({"error": "CSRF_FAILED", "message": error.description}), 400

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.entries import entries_bp
    from .blueprints.partners import partners_bp
    from .blueprints.projects import projects_bp
    from .blueprints.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(entries_bp)
    app.register_blueprint(partners_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(users_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables (dev shortcut; use `flask db upgrade` with migrations)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("create-admin")
    @click.option("--username", prompt=True)
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    def create_admin_command(username: str, password: str):
        """Bootstrap the first admin (refused once any user exists)."""
        try:
            user = app.extensions[EXTENSION_KEY].accounts.bootstrap_admin(username, password)
        except OrderflowError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"Admin '{user.username}' created.")

    @app.cli.command("seed-demo")
    def seed_demo_command():
        """Seed demo partners and projects."""
        from .seed import seed_demo_data

        partners, projects = seed_demo_data()
        click.echo(f"Seeded {partners} partner(s) and {projects} project(s).")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Liveness check."""
        return jsonify({"app": app.config.get("APP_NAME", "Orderflow"), "status": "ok"})

    return app

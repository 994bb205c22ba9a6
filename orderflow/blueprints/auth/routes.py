"""
Authentication Routes (JSON session API)

Provides:
- POST /auth/login    credentials -> Flask-Login session cookie
- POST /auth/logout
- GET  /auth/me       the session's user
- GET  /auth/csrf     fresh CSRF token for state-changing requests

Rules:
- Only active users may log in (Accounts.authenticate).
- Bad credentials and inactive accounts both answer 401.
- First admin is created from the CLI (`flask create-admin`), never over HTTP.
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...security import login_required_json
from ...services import get_services
from ...utils import request_payload


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate a user and open a session.

    Body: {"username": ..., "password": ...}
    """
    payload = request_payload()
    user = get_services().accounts.authenticate(payload.get("username"), payload.get("password"))
    login_user(user)
    return jsonify({"user": user.to_dict(), "csrf_token": generate_csrf()})


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required_json
def logout():
    """Log out the current user."""
    logout_user()
    return jsonify({"message": "Logged out"})


# ============================================================
# SESSION INFO
# ============================================================

@auth_bp.route("/me", methods=["GET"])
@login_required_json
def me():
    return jsonify(current_user.to_dict())


@auth_bp.route("/csrf", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})

"""
User Management (Admin Only).

Rules enforced:
- Role must be one of: user, office, office_admin, stores, admin.
- Usernames are unique.
- Client is never trusted: we validate server-side (Accounts).

Audit:
- CREATE logged (password hash excluded)
"""

from flask import Blueprint, jsonify

from ...policy import Operation
from ...security import current_actor, requires
from ...services import get_services
from ...utils import request_payload


users_bp = Blueprint(
    "users",
    __name__,
    url_prefix="/users",
)


# ---------------------------------------------------------------------
# LIST USERS
# ---------------------------------------------------------------------

@users_bp.route("/", methods=["GET"])
@requires(Operation.LIST_USERS)
def list_users():
    """Admin view: list all users."""
    users = get_services().accounts.list_users(current_actor())
    return jsonify([u.to_dict() for u in users])


# ---------------------------------------------------------------------
# CREATE USER
# ---------------------------------------------------------------------

@users_bp.route("/", methods=["POST"])
@requires(Operation.CREATE_USER)
def create_user():
    """
    Create a new system user.

    Required:
    - username
    - password
    - role
    """
    user = get_services().accounts.create_user(current_actor(), request_payload())
    return jsonify(user.to_dict()), 201

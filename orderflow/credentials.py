"""
orderflow/credentials.py

Accounts: user creation, authentication, first-admin bootstrap.

Password hashing is Werkzeug's (User.set_password / User.check_password);
the core never sees raw hashes. Session issuance is Flask-Login's job in the
auth blueprint.

Rules:
- CreateUser is admin only. Role must be one of the known roles.
- Usernames are unique.
- Only active users may log in.
- bootstrap_admin() works only while the users table is empty.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from .audit import AuditSpec
from .errors import InvalidCredentialsError, PreconditionError, ValidationError
from .models import User
from .policy import Actor, Operation, Role, authorize
from .store import EntryStore
from .utils import check_length, clean_text

logger = logging.getLogger(__name__)


class Accounts:
    def __init__(self, store: EntryStore) -> None:
        self.store = store

    def list_users(self, actor: Actor) -> List[User]:
        authorize(actor.role, Operation.LIST_USERS)
        return self.store.list_users()

    def create_user(self, actor: Actor, payload: Mapping[str, Any]) -> User:
        """
        Create a new system user.

        Required:
        - username
        - password
        - role (user | office | office_admin | stores | admin)
        """
        authorize(actor.role, Operation.CREATE_USER)
        user = self._build_user(payload)
        self.store.insert_user(user, audit=AuditSpec("CREATE", actor=actor, exclude=("password_hash",)))
        logger.info("User %s (%s) created by %s", user.username, user.role, actor.username)
        return user

    def bootstrap_admin(self, username: str, password: str) -> User:
        """
        Create the FIRST admin of the system.

        Safety rule: if ANY user already exists, refuse.
        """
        if self.store.count_users() > 0:
            raise PreconditionError("Users already exist; bootstrap is only allowed on an empty system")

        user = self._build_user({"username": username, "password": password, "role": Role.ADMIN.value})
        self.store.insert_user(user)
        logger.info("Bootstrap admin %s created", user.username)
        return user

    def authenticate(self, username: Any, password: Any) -> User:
        """Return the user for valid credentials; raise InvalidCredentialsError otherwise."""
        name = clean_text(username)
        user = self.store.get_user_by_username(name) if name else None

        if user is None or not user.check_password(str(password or "")):
            logger.warning("Failed login for %r", name)
            raise InvalidCredentialsError("Invalid credentials")

        if not user.is_active:
            logger.warning("Login refused for inactive user %s", user.username)
            raise InvalidCredentialsError("Account is inactive")

        return user

    def _build_user(self, payload: Mapping[str, Any]) -> User:
        username = check_length(User, "username", clean_text(payload.get("username")))
        password = str(payload.get("password") or "").strip()
        if not username or not password:
            raise ValidationError("username and password are required")

        role = Role.parse(payload.get("role") or Role.USER.value)
        if role is None:
            raise ValidationError(f"Unknown role: {payload.get('role')}", field="role")

        if self.store.get_user_by_username(username) is not None:
            raise ValidationError("User already exists", field="username")

        user = User(username=username, role=role.value, is_active=True)
        user.set_password(password)
        return user

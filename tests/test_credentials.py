"""Tests for account creation, login checks and first-admin bootstrap."""

import pytest

from orderflow.errors import (
    AuthorizationError,
    InvalidCredentialsError,
    PersistenceError,
    PreconditionError,
    ValidationError,
)
from orderflow.extensions import db
from orderflow.models import AuditLog, User

from conftest import PASSWORD


class TestCreateUser:
    def test_create_user(self, accounts, actors):
        user = accounts.create_user(actors["admin"], {"username": "dora", "password": "pw", "role": "stores"})
        assert user.role == "stores"
        assert user.check_password("pw")

        log = AuditLog.query.filter_by(entity_type="User", entity_id=user.id).one()
        assert "password_hash" not in log.after_data

    def test_default_role_is_user(self, accounts, actors):
        user = accounts.create_user(actors["admin"], {"username": "eve", "password": "pw"})
        assert user.role == "user"

    @pytest.mark.parametrize(
        "payload",
        [
            {"username": "", "password": "pw"},
            {"username": "frank", "password": "   "},
            {"username": "frank", "password": "pw", "role": "superuser"},
            {"username": "ada", "password": "pw"},
            {"username": "u" * 81, "password": "pw"},
        ],
    )
    def test_invalid_payloads(self, accounts, actors, payload):
        with pytest.raises(ValidationError):
            accounts.create_user(actors["admin"], payload)

    def test_admin_only(self, accounts, actors):
        with pytest.raises(AuthorizationError):
            accounts.create_user(actors["office_admin"], {"username": "gus", "password": "pw"})

    def test_failed_audit_leaves_no_user(self, accounts, actors, broken_audit_log):
        with pytest.raises(PersistenceError):
            accounts.create_user(actors["admin"], {"username": "gus", "password": "pw"})

        assert User.query.filter_by(username="gus").count() == 0


class TestAuthenticate:
    def test_valid_credentials(self, accounts, actors):
        assert accounts.authenticate("olga", PASSWORD).role == "office"

    @pytest.mark.parametrize("username, password", [("olga", "wrong"), ("nobody", PASSWORD), ("", "")])
    def test_invalid_credentials(self, accounts, actors, username, password):
        with pytest.raises(InvalidCredentialsError) as exc:
            accounts.authenticate(username, password)
        assert exc.value.http_status == 401

    def test_inactive_user(self, accounts, actors):
        user = User.query.filter_by(username="sam").one()
        user.is_active = False
        db.session.commit()

        with pytest.raises(InvalidCredentialsError):
            accounts.authenticate("sam", PASSWORD)


class TestBootstrapAdmin:
    def test_first_admin(self, accounts, app):
        user = accounts.bootstrap_admin("root", "toor")
        assert user.role == "admin"
        assert user.check_password("toor")

    def test_refused_once_users_exist(self, accounts, actors):
        with pytest.raises(PreconditionError):
            accounts.bootstrap_admin("root", "toor")

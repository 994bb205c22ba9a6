"""
Pytest fixtures for the orderflow test suite.

Provides:
- An app built from TestingConfig (in-memory SQLite, CSRF off), tables
  created per test
- The wired engines (store, workflow, aggregation, directory, accounts)
- One Actor per role, plus a partner and a project
- A logged-in Flask test client factory for API tests
- A store whose commits fail, for rollback checks

Fixtures hand out ids and Actors rather than ORM instances so they stay
valid across request-scoped session teardown.
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from config import TestingConfig
from orderflow import create_app
from orderflow.extensions import db
from orderflow.models import Partner, Project, User
from orderflow.policy import Actor
from orderflow.services import get_services
from orderflow.store import EntryStore
from orderflow.workflow import WorkflowEngine

PASSWORD = "secret-pw"

ROLE_USERS = {
    "user": "alice",
    "office": "olga",
    "office_admin": "oscar",
    "stores": "sam",
    "admin": "ada",
}


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return get_services()


@pytest.fixture
def store(services):
    return services.store


@pytest.fixture
def workflow(services):
    return services.workflow


@pytest.fixture
def aggregation(services):
    return services.aggregation


@pytest.fixture
def directory(services):
    return services.directory


@pytest.fixture
def accounts(services):
    return services.accounts


@pytest.fixture
def make_workflow(store):
    """WorkflowEngine with a fixed clock."""
    def factory(when: datetime) -> WorkflowEngine:
        return WorkflowEngine(store, clock=lambda: when)

    return factory


@pytest.fixture
def actors(app):
    """role name -> Actor, one persisted user per role."""
    created = {}
    for role, username in ROLE_USERS.items():
        user = User(username=username, role=role, is_active=True)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        created[role] = Actor.from_user(user)
    return created


@pytest.fixture
def partner_id(app):
    partner = Partner(name="Acme Construction", image_url="/static/acme.png")
    db.session.add(partner)
    db.session.commit()
    return partner.id


@pytest.fixture
def project_id(partner_id):
    project = Project(name="Site A", partner_id=partner_id)
    db.session.add(project)
    db.session.commit()
    return project.id


@pytest.fixture
def entry_payload(project_id):
    return {
        "project_id": project_id,
        "product": "Pump",
        "quantity": 2,
        "description": "Submersible, 3 inch",
        "due_date": "2024-07-01",
    }


@pytest.fixture
def login(client, actors):
    """Log the test client in as the user holding role."""
    def do_login(role: str):
        response = client.post(
            "/auth/login",
            json={"username": ROLE_USERS[role], "password": PASSWORD},
        )
        assert response.status_code == 200, response.get_json()
        return client

    return do_login


class CommitFailingSession:
    """Session wrapper: statements run, but commit() fails like a locked database."""

    def __init__(self, session):
        self._session = session

    def __getattr__(self, name):
        return getattr(self._session, name)

    def commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))


@pytest.fixture
def commit_failing_store(app):
    return EntryStore(CommitFailingSession(db.session))


@pytest.fixture
def broken_audit_log(monkeypatch):
    """Make every audit insert fail after the change it describes has been issued."""
    def fail(*args, **kwargs):
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error"))

    monkeypatch.setattr("orderflow.store.log_action", fail)

"""
orderflow/store.py

Persistence interface used by the engines.

EntryStore is constructed explicitly (in create_app, or in tests) around a
SQLAlchemy session and handed to the engines. Nothing in the core reaches for
a module-level connection.

Concurrency:
- Every pipeline transition is ONE conditional UPDATE:
      UPDATE data_entries SET ... WHERE id = :id AND <guards>
  The guard lives inside the statement, so two racing callers cannot both
  pass it. Zero affected rows means "not found" OR "guard failed"; the
  caller re-reads to tell them apart.
- Partner/project deletes are ONE conditional DELETE:
      DELETE FROM partners WHERE id = :id AND NOT EXISTS (child rows)
  so a child inserted concurrently blocks the delete instead of tripping
  the foreign key.
- Aggregation reads are plain read-committed scans.

Audit:
- Every write takes an optional AuditSpec. The AuditLog row is added in the
  same transaction as the change: both commit or both roll back.

Failures from SQLAlchemy are rolled back and re-raised as PersistenceError.
"""

from __future__ import annotations

import logging
from collections import Counter
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from .audit import AuditSpec, log_action, serialize_model
from .errors import PersistenceError
from .models import Entry, Partner, Project, User
from .states import STATE_FIELDS, derive_state

logger = logging.getLogger(__name__)


class EntryStore:
    """SQLAlchemy-backed store for partners, projects, entries and users."""

    def __init__(self, session) -> None:
        self.session = session

    # -----------------------------------------------------------------
    # Transactions
    # -----------------------------------------------------------------
    @contextmanager
    def transaction(self, what: str) -> Iterator[Any]:
        """Commit on success; roll back on any failure and wrap database errors."""
        try:
            yield self.session
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Persistence failure during %s", what)
            raise PersistenceError(f"Database error during {what}", operation=what) from exc
        except Exception:
            self.session.rollback()
            raise

    def _read(self, what: str, query_fn):
        try:
            return query_fn()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Persistence failure during %s", what)
            raise PersistenceError(f"Database error during {what}", operation=what) from exc

    def _audit(self, entity: Any, audit: Optional[AuditSpec], *, deleted: bool = False) -> None:
        """Add the audit row for entity to the open transaction."""
        if audit is None:
            return
        after = None
        if not deleted:
            after = serialize_model(entity)
            for key in audit.exclude:
                after.pop(key, None)
        log_action(self.session, entity, audit.action, actor=audit.actor, before=audit.before, after=after)

    def _insert(self, what: str, instance: Any, audit: Optional[AuditSpec]) -> Any:
        with self.transaction(what):
            self.session.add(instance)
            self.session.flush()
            self._audit(instance, audit)
        return instance

    def _delete_if_childless(self, what: str, instance: Any, children, audit: Optional[AuditSpec]) -> bool:
        """
        DELETE instance only if no child row exists, in one statement.

        Returns False when zero rows were affected (already gone, or children exist).
        """
        model = type(instance)
        stmt = (
            sa.delete(model)
            .where(model.id == instance.id, ~children)
            .execution_options(synchronize_session="fetch")
        )
        with self.transaction(what):
            result = self.session.execute(stmt)
            if result.rowcount == 0:
                return False
            self._audit(instance, audit, deleted=True)
        return True

    # -----------------------------------------------------------------
    # Entries
    # -----------------------------------------------------------------
    def get_entry(self, entry_id: int) -> Optional[Entry]:
        return self._read("get_entry", lambda: self.session.get(Entry, entry_id))

    def insert_entry(self, fields: Dict[str, Any], *, audit: Optional[AuditSpec] = None) -> Entry:
        return self._insert("insert_entry", Entry(**fields), audit)

    def update_entry_conditional(
        self, entry_id: int, fields: Dict[str, Any], *guards, audit: Optional[AuditSpec] = None
    ) -> Optional[Entry]:
        """
        Apply fields to one entry in a single UPDATE, only where all guards hold.

        The audit row (if any) commits with the UPDATE. Returns the refreshed
        entry, or None when zero rows were affected.
        """
        stmt = (
            sa.update(Entry)
            .where(Entry.id == entry_id, *guards)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        with self.transaction("update_entry"):
            result = self.session.execute(stmt)
            if result.rowcount == 0:
                return None
            entry = self.session.get(Entry, entry_id)
            self.session.refresh(entry)
            self._audit(entry, audit)
        return entry

    def list_entries(self, *, project_id: int | None = None, requester_id: int | None = None) -> List[Entry]:
        """Entries newest first, optionally scoped to a project and/or requester."""
        def run():
            q = self.session.query(Entry)
            if project_id is not None:
                q = q.filter(Entry.project_id == project_id)
            if requester_id is not None:
                q = q.filter(Entry.user_id == requester_id)
            return q.order_by(Entry.id.desc()).all()

        return self._read("list_entries", run)

    def count_entries(self, *, project_id: int) -> int:
        return self._read(
            "count_entries",
            lambda: self.session.query(sa.func.count(Entry.id)).filter(Entry.project_id == project_id).scalar(),
        )

    def _state_rows(self, *, project_id: int | None = None, partner_id: int | None = None, group_by: str | None = None):
        columns = [getattr(Entry, name) for name in STATE_FIELDS]
        if group_by == "partner":
            columns.insert(0, Project.partner_id.label("unit_id"))
        elif group_by == "project":
            columns.insert(0, Entry.project_id.label("unit_id"))
        q = self.session.query(*columns)
        if partner_id is not None or group_by == "partner":
            q = q.join(Project, Project.id == Entry.project_id)
        if project_id is not None:
            q = q.filter(Entry.project_id == project_id)
        if partner_id is not None:
            q = q.filter(Project.partner_id == partner_id)
        return q.all()

    def count_entries_by_state(
        self, *, project_id: int | None = None, partner_id: int | None = None
    ) -> Counter:
        """Counter of EntryState for entries in scope (one project, one partner, or everything)."""
        rows = self._read(
            "count_entries_by_state",
            lambda: self._state_rows(project_id=project_id, partner_id=partner_id),
        )
        return Counter(derive_state(row) for row in rows)

    def count_states_per_partner(self) -> Dict[int, Counter]:
        """partner_id -> Counter of EntryState, in one scan."""
        rows = self._read("count_states_per_partner", lambda: self._state_rows(group_by="partner"))
        return _group_states(rows)

    def count_states_per_project(self, *, partner_id: int) -> Dict[int, Counter]:
        """project_id -> Counter of EntryState for one partner's projects, in one scan."""
        rows = self._read(
            "count_states_per_project",
            lambda: self._state_rows(partner_id=partner_id, group_by="project"),
        )
        return _group_states(rows)

    # -----------------------------------------------------------------
    # Partners
    # -----------------------------------------------------------------
    def get_partner(self, partner_id: int) -> Optional[Partner]:
        return self._read("get_partner", lambda: self.session.get(Partner, partner_id))

    def list_partners(self) -> List[Partner]:
        return self._read("list_partners", lambda: self.session.query(Partner).order_by(Partner.id.asc()).all())

    def insert_partner(self, *, name: str, image_url: str | None = None, audit: Optional[AuditSpec] = None) -> Partner:
        return self._insert("insert_partner", Partner(name=name, image_url=image_url), audit)

    def count_projects(self, *, partner_id: int) -> int:
        return self._read(
            "count_projects",
            lambda: self.session.query(sa.func.count(Project.id)).filter(Project.partner_id == partner_id).scalar(),
        )

    def delete_partner(self, partner: Partner, *, audit: Optional[AuditSpec] = None) -> bool:
        """Delete partner unless a project references it. False when nothing was deleted."""
        children = sa.exists().where(Project.partner_id == partner.id)
        return self._delete_if_childless("delete_partner", partner, children, audit)

    # -----------------------------------------------------------------
    # Projects
    # -----------------------------------------------------------------
    def get_project(self, project_id: int) -> Optional[Project]:
        return self._read("get_project", lambda: self.session.get(Project, project_id))

    def list_projects(self, *, partner_id: int) -> List[Project]:
        return self._read(
            "list_projects",
            lambda: self.session.query(Project)
            .filter(Project.partner_id == partner_id)
            .order_by(Project.id.asc())
            .all(),
        )

    def insert_project(self, *, name: str, partner_id: int, audit: Optional[AuditSpec] = None) -> Project:
        return self._insert("insert_project", Project(name=name, partner_id=partner_id), audit)

    def delete_project(self, project: Project, *, audit: Optional[AuditSpec] = None) -> bool:
        """Delete project unless an entry references it. False when nothing was deleted."""
        children = sa.exists().where(Entry.project_id == project.id)
        return self._delete_if_childless("delete_project", project, children, audit)

    # -----------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------
    def get_user_by_username(self, username: str) -> Optional[User]:
        return self._read(
            "get_user_by_username",
            lambda: self.session.query(User).filter_by(username=username).first(),
        )

    def list_users(self) -> List[User]:
        return self._read("list_users", lambda: self.session.query(User).order_by(User.username.asc()).all())

    def count_users(self) -> int:
        return self._read("count_users", lambda: self.session.query(sa.func.count(User.id)).scalar())

    def insert_user(self, user: User, *, audit: Optional[AuditSpec] = None) -> User:
        return self._insert("insert_user", user, audit)


def _group_states(rows) -> Dict[int, Counter]:
    grouped: Dict[int, Counter] = {}
    for row in rows:
        grouped.setdefault(row.unit_id, Counter())[derive_state(row)] += 1
    return grouped



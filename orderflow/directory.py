"""
orderflow/directory.py

Partner / project master data (admin-managed).

Rules:
- Reads (ListPartners, ListProjects) are open to every authenticated role.
- Create/Delete are admin only.
- Deletes are blocked, never cascaded:
    partner with projects -> ReferentialIntegrityError
    project with entries  -> ReferentialIntegrityError
- The child check is part of the DELETE statement itself; when it affects
  zero rows the record is re-read to tell NotFoundError from a blocked delete.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from .audit import AuditSpec, serialize_model
from .errors import NotFoundError, ReferentialIntegrityError, ValidationError
from .models import Partner, Project
from .policy import Actor, Operation, authorize
from .store import EntryStore
from .utils import check_length, clean_text, parse_optional_int

logger = logging.getLogger(__name__)


class Directory:
    def __init__(self, store: EntryStore) -> None:
        self.store = store

    # ---------------------------------------------------------------------
    # Partners
    # ---------------------------------------------------------------------
    def list_partners(self, actor: Actor) -> List[Partner]:
        authorize(actor.role, Operation.LIST_PARTNERS)
        return self.store.list_partners()

    def create_partner(self, actor: Actor, payload: Mapping[str, Any]) -> Partner:
        authorize(actor.role, Operation.CREATE_PARTNER)

        name = check_length(Partner, "name", clean_text(payload.get("name")))
        if not name:
            raise ValidationError("Partner name is required", field="name")
        image_url = check_length(Partner, "image_url", clean_text(payload.get("image_url")))

        partner = self.store.insert_partner(name=name, image_url=image_url, audit=AuditSpec("CREATE", actor=actor))
        logger.info("Partner %s (%s) created by %s", partner.id, name, actor.username)
        return partner

    def delete_partner(self, actor: Actor, partner_id: int) -> dict:
        """Delete a childless partner. Returns the deleted record as a dict."""
        authorize(actor.role, Operation.DELETE_PARTNER)

        partner = self.store.get_partner(partner_id)
        if partner is None:
            raise NotFoundError("Partner", partner_id)

        deleted = partner.to_dict()
        audit = AuditSpec("DELETE", actor=actor, before=serialize_model(partner))
        if not self.store.delete_partner(partner, audit=audit):
            if self.store.get_partner(partner_id) is None:
                raise NotFoundError("Partner", partner_id)
            projects = self.store.count_projects(partner_id=partner_id)
            logger.warning("Delete of partner %s blocked: %s project(s)", partner_id, projects)
            raise ReferentialIntegrityError(
                "Cannot delete partner with existing projects. Delete projects first.",
                entity="Partner",
                entity_id=partner_id,
                dependents=projects,
            )

        logger.info("Partner %s deleted by %s", partner_id, actor.username)
        return deleted

    # ---------------------------------------------------------------------
    # Projects
    # ---------------------------------------------------------------------
    def list_projects(self, actor: Actor, partner_id: int) -> List[Project]:
        authorize(actor.role, Operation.LIST_PROJECTS)
        return self.store.list_projects(partner_id=partner_id)

    def get_project(self, actor: Actor, project_id: int) -> Project:
        authorize(actor.role, Operation.LIST_PROJECTS)
        project = self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    def create_project(self, actor: Actor, payload: Mapping[str, Any]) -> Project:
        authorize(actor.role, Operation.CREATE_PROJECT)

        name = check_length(Project, "name", clean_text(payload.get("name")))
        partner_id = parse_optional_int(payload.get("partner_id"))
        if not name or partner_id is None:
            raise ValidationError("Project name and partner_id are required", field="name" if not name else "partner_id")

        if self.store.get_partner(partner_id) is None:
            raise NotFoundError("Partner", partner_id)

        project = self.store.insert_project(name=name, partner_id=partner_id, audit=AuditSpec("CREATE", actor=actor))
        logger.info("Project %s (%s) created under partner %s by %s", project.id, name, partner_id, actor.username)
        return project

    def delete_project(self, actor: Actor, project_id: int) -> dict:
        authorize(actor.role, Operation.DELETE_PROJECT)

        project = self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)

        deleted = project.to_dict()
        audit = AuditSpec("DELETE", actor=actor, before=serialize_model(project))
        if not self.store.delete_project(project, audit=audit):
            if self.store.get_project(project_id) is None:
                raise NotFoundError("Project", project_id)
            entries = self.store.count_entries(project_id=project_id)
            logger.warning("Delete of project %s blocked: %s entr(y/ies)", project_id, entries)
            raise ReferentialIntegrityError(
                "Cannot delete project with existing entries.",
                entity="Project",
                entity_id=project_id,
                dependents=entries,
            )

        logger.info("Project %s deleted by %s", project_id, actor.username)
        return deleted

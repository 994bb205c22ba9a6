"""
orderflow/seed.py

Seed demo partners and projects (`flask seed-demo`).

Rules:
- Safe to run multiple times (idempotent): partners match by name,
  projects by (partner, name).
- Users and entries are not seeded; the first admin comes from
  `flask create-admin` and entries only ever come from the pipeline.
"""

from __future__ import annotations

from .extensions import db
from .models import Partner, Project


DEFAULT_PARTNERS = [
    # name, image_url, project names
    ("Northwind Builders", None, ["Harbor Warehouse", "Riverside Offices"]),
    ("Contoso Infrastructure", None, ["Ring Road Bridge"]),
    ("Fabrikam Energy", None, ["Solar Park Phase 1", "Substation Upgrade"]),
]


def seed_demo_data() -> tuple[int, int]:
    """
    Create default Partner and Project rows if they don't exist.

    Returns (partners_created, projects_created).
    """
    partners_created = 0
    projects_created = 0

    for name, image_url, project_names in DEFAULT_PARTNERS:
        partner = Partner.query.filter_by(name=name).first()
        if not partner:
            partner = Partner(name=name, image_url=image_url)
            db.session.add(partner)
            db.session.flush()
            partners_created += 1

        for project_name in project_names:
            exists = Project.query.filter_by(partner_id=partner.id, name=project_name).first()
            if exists:
                continue
            db.session.add(Project(name=project_name, partner_id=partner.id))
            projects_created += 1

    db.session.commit()
    return partners_created, projects_created

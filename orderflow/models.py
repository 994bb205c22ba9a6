"""
Orderflow – Domain Models

Partners own projects, projects own data entries. Entries move through the
office/admin pipeline:

    order form -> approval -> purchase order -> invoice -> driver/delivery

IMPORTANT:
- The pipeline stage of an entry is NOT stored. It is derived from which stage
  fields are populated (see orderflow.states.derive_state).
- Stage timestamps (office_datetime_1..3) are server-assigned by the workflow
  engine and never accepted from payloads.
- Parent rows are never cascade-deleted; the directory blocks deletes while
  children exist.
"""

from __future__ import annotations

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db
from .utils import utcnow


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user. Role is fixed at creation."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # user | office | office_admin | stores | admin
    role = db.Column(db.String(20), nullable=False, default="user", index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "role": self.role, "is_active": self.is_active}

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"


# ---------------------------------------------------------------------
# Partners & projects
# ---------------------------------------------------------------------
class Partner(db.Model):
    """Partner company. Logo upload is handled outside the core; only the URL is kept."""

    __tablename__ = "partners"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    image_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    projects = db.relationship("Project", back_populates="partner", lazy=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "image_url": self.image_url}

    def __repr__(self):
        return f"<Partner {self.name}>"


class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)

    # RESTRICT: a partner with projects cannot be deleted
    partner_id = db.Column(
        db.Integer,
        db.ForeignKey("partners.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    partner = db.relationship("Partner", back_populates="projects")
    entries = db.relationship("Entry", back_populates="project", lazy=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "partner_id": self.partner_id}

    def __repr__(self):
        return f"<Project {self.name}>"


# ---------------------------------------------------------------------
# Data entries
# ---------------------------------------------------------------------
class Entry(db.Model):
    """A procurement request and its pipeline progress."""

    __tablename__ = "data_entries"

    id = db.Column(db.Integer, primary_key=True)

    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Intake (requester)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    user_name = db.Column(db.String(80))
    product = db.Column(db.String(255))
    quantity = db.Column(db.Integer)
    description = db.Column(db.Text)
    user_datetime = db.Column(db.DateTime)
    due_date = db.Column(db.Date)

    # Stage 1 – order form (office)
    order_form_no = db.Column(db.String(100), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)
    office_user_1 = db.Column(db.String(80), nullable=True)
    office_datetime_1 = db.Column(db.DateTime, nullable=True)

    # Stage 2 – approval (admin / office_admin)
    approved = db.Column(db.Boolean, default=False, nullable=False, index=True)
    approved_by = db.Column(db.String(80), nullable=True)

    # Stage 3 – purchase order (office)
    po_no = db.Column(db.String(100), nullable=True, index=True)
    office_user_2 = db.Column(db.String(80), nullable=True)
    office_datetime_2 = db.Column(db.DateTime, nullable=True)

    # Stage 4 – invoice (office)
    invoice_no = db.Column(db.String(100), nullable=True, index=True)
    office_user_3 = db.Column(db.String(80), nullable=True)
    office_datetime_3 = db.Column(db.DateTime, nullable=True)

    # Stage 5 – driver / delivery (office or stores)
    purchase_date = db.Column(db.Date, nullable=True)
    drivers_name = db.Column(db.String(120), nullable=True)
    vehicle_no = db.Column(db.String(50), nullable=True)
    received = db.Column(db.String(255), nullable=True)
    driver_description = db.Column(db.Text, nullable=True)

    # Admin override fields
    office_name = db.Column(db.String(80), nullable=True)
    office_datetime = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(80), nullable=True, index=True)
    delivery_date = db.Column(db.DateTime, nullable=True)
    office_locked = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=True)

    project = db.relationship("Project", back_populates="entries")

    @property
    def state(self):
        """Current pipeline state (derived)."""
        from .states import derive_state

        return derive_state(self)

    def to_dict(self) -> dict:
        data = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if hasattr(value, "isoformat"):
                value = value.isoformat()
            data[column.name] = value
        data["state"] = self.state.value
        return data

    def __repr__(self):
        return f"<Entry {self.id} {self.product!r}>"


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Who did what to which record, with before/after snapshots."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(40), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

"""
orderflow/blueprints/entries/routes.py

Data entry routes (JSON).

Includes:
- Lists (all entries, per project) and single entry
- Create (user role)
- One PUT route per pipeline step:
    /orderform      office, office_admin
    /approve        admin, office_admin
    /po             office, office_admin   (requires approval)
    /invoice        office, office_admin
    /driver         office, office_admin
    /stores-driver  stores                 (requires invoice)
    /admin          admin                  (partial override)

IMPORTANT:
- Views are thin: access policy via @requires, everything else in WorkflowEngine.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...policy import Operation
from ...security import current_actor, requires
from ...services import get_services
from ...utils import parse_optional_int, request_payload

entries_bp = Blueprint("entries", __name__, url_prefix="/entries")


# ---------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------
@entries_bp.route("/", methods=["GET"])
@requires(Operation.LIST_ENTRIES)
def list_entries():
    """All entries in scope (optionally ?project_id=), newest first."""
    project_id = parse_optional_int(request.args.get("project_id"))
    entries = get_services().workflow.list_entries(current_actor(), project_id=project_id)
    return jsonify([e.to_dict() for e in entries])


@entries_bp.route("/project/<int:project_id>", methods=["GET"])
@requires(Operation.LIST_ENTRIES)
def list_project_entries(project_id: int):
    entries = get_services().workflow.list_entries(current_actor(), project_id=project_id)
    return jsonify([e.to_dict() for e in entries])


@entries_bp.route("/<int:entry_id>", methods=["GET"])
@requires(Operation.GET_ENTRY)
def get_entry(entry_id: int):
    entry = get_services().workflow.get_entry(current_actor(), entry_id)
    return jsonify(entry.to_dict())


# ---------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------
@entries_bp.route("/", methods=["POST"])
@requires(Operation.CREATE_ENTRY)
def create_entry():
    entry = get_services().workflow.create(current_actor(), request_payload())
    return jsonify(entry.to_dict()), 201


# ---------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------
@entries_bp.route("/<int:entry_id>/orderform", methods=["PUT"])
@requires(Operation.SET_ORDER_FORM)
def set_order_form(entry_id: int):
    entry = get_services().workflow.set_order_form(current_actor(), entry_id, request_payload())
    return jsonify(entry.to_dict())


@entries_bp.route("/<int:entry_id>/approve", methods=["PUT"])
@requires(Operation.APPROVE)
def approve(entry_id: int):
    entry = get_services().workflow.approve(current_actor(), entry_id)
    return jsonify(entry.to_dict())


@entries_bp.route("/<int:entry_id>/po", methods=["PUT"])
@requires(Operation.SET_PO)
def set_po(entry_id: int):
    entry = get_services().workflow.set_po(current_actor(), entry_id, request_payload())
    return jsonify(entry.to_dict())


@entries_bp.route("/<int:entry_id>/invoice", methods=["PUT"])
@requires(Operation.SET_INVOICE)
def set_invoice(entry_id: int):
    entry = get_services().workflow.set_invoice(current_actor(), entry_id, request_payload())
    return jsonify(entry.to_dict())


@entries_bp.route("/<int:entry_id>/driver", methods=["PUT"])
@requires(Operation.SET_DRIVER_DETAILS)
def set_driver_details(entry_id: int):
    entry = get_services().workflow.set_driver_details(current_actor(), entry_id, request_payload())
    return jsonify(entry.to_dict())


@entries_bp.route("/<int:entry_id>/stores-driver", methods=["PUT"])
@requires(Operation.SET_DRIVER_DETAILS_STORES)
def set_driver_details_stores(entry_id: int):
    entry = get_services().workflow.set_driver_details_stores(current_actor(), entry_id, request_payload())
    return jsonify(entry.to_dict())


@entries_bp.route("/<int:entry_id>/admin", methods=["PUT"])
@requires(Operation.ADMIN_UPDATE)
def admin_update(entry_id: int):
    entry = get_services().workflow.admin_update(current_actor(), entry_id, request_payload())
    return jsonify(entry.to_dict())

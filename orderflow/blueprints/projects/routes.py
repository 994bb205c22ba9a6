"""
Project routes.

Provides:
- GET    /projects/partner/<partner_id>                 list a partner's projects
- GET    /projects/<id>                                 project info (with partner name)
- POST   /projects/                                     create (admin)
- DELETE /projects/<id>                                 delete, blocked while entries exist (admin)
- GET    /projects/partner/<partner_id>/status          backlog per project, variant by role
- GET    /projects/partner/<partner_id>/status/office   office variant
- GET    /projects/<id>/status                          one project's backlog
"""

from flask import Blueprint, jsonify, request

from ...aggregation import Variant
from ...policy import Operation
from ...security import current_actor, login_required_json, requires
from ...services import get_services
from ...utils import request_payload
from ..partners.routes import status_response


projects_bp = Blueprint("projects", __name__, url_prefix="/projects")


@projects_bp.route("/partner/<int:partner_id>", methods=["GET"])
@requires(Operation.LIST_PROJECTS)
def list_projects(partner_id: int):
    projects = get_services().directory.list_projects(current_actor(), partner_id)
    return jsonify([p.to_dict() for p in projects])


@projects_bp.route("/<int:project_id>", methods=["GET"])
@requires(Operation.LIST_PROJECTS)
def project_info(project_id: int):
    project = get_services().directory.get_project(current_actor(), project_id)
    data = project.to_dict()
    data["partner_name"] = project.partner.name
    return jsonify(data)


@projects_bp.route("/", methods=["POST"])
@requires(Operation.CREATE_PROJECT)
def create_project():
    project = get_services().directory.create_project(current_actor(), request_payload())
    return jsonify(project.to_dict()), 201


@projects_bp.route("/<int:project_id>", methods=["DELETE"])
@requires(Operation.DELETE_PROJECT)
def delete_project(project_id: int):
    deleted = get_services().directory.delete_project(current_actor(), project_id)
    return jsonify({"message": "Project deleted successfully", "deleted": deleted})


# ---------------------------------------------------------------------
# Status (notification counts)
# ---------------------------------------------------------------------
@projects_bp.route("/partner/<int:partner_id>/status", methods=["GET"])
@login_required_json
def partner_projects_status(partner_id: int):
    units = get_services().aggregation.project_statuses(current_actor(), partner_id, request.args.get("variant"))
    return status_response(units)


@projects_bp.route("/partner/<int:partner_id>/status/office", methods=["GET"])
@requires(Operation.VIEW_STATUS_OFFICE)
def partner_projects_status_office(partner_id: int):
    units = get_services().aggregation.project_statuses(current_actor(), partner_id, Variant.OFFICE)
    return status_response(units)


@projects_bp.route("/<int:project_id>/status", methods=["GET"])
@login_required_json
def project_status(project_id: int):
    unit = get_services().aggregation.project_status(current_actor(), project_id, request.args.get("variant"))
    return status_response([unit])

"""
Partner routes.

Provides:
- GET    /partners/                list (all roles)
- POST   /partners/                create (admin)
- DELETE /partners/<id>            delete, blocked while projects exist (admin)
- GET    /partners/status          backlog per partner, variant chosen by role
- GET    /partners/status/all      full variant (admin, office_admin)
- GET    /partners/status/office   office variant (office, stores, admin, office_admin)
"""

from flask import Blueprint, current_app, jsonify, request

from ...aggregation import Variant
from ...policy import Operation
from ...security import current_actor, login_required_json, requires
from ...services import get_services
from ...utils import request_payload


partners_bp = Blueprint("partners", __name__, url_prefix="/partners")


def status_response(units):
    """JSON list of unit summaries plus the polling hint header."""
    response = jsonify([u.to_dict() for u in units])
    response.headers["X-Poll-Interval"] = str(current_app.config.get("STATUS_POLL_SECONDS", 5))
    return response


@partners_bp.route("/", methods=["GET"])
@requires(Operation.LIST_PARTNERS)
def list_partners():
    partners = get_services().directory.list_partners(current_actor())
    return jsonify([p.to_dict() for p in partners])


@partners_bp.route("/", methods=["POST"])
@requires(Operation.CREATE_PARTNER)
def create_partner():
    partner = get_services().directory.create_partner(current_actor(), request_payload())
    return jsonify(partner.to_dict()), 201


@partners_bp.route("/<int:partner_id>", methods=["DELETE"])
@requires(Operation.DELETE_PARTNER)
def delete_partner(partner_id: int):
    deleted = get_services().directory.delete_partner(current_actor(), partner_id)
    return jsonify({"message": "Partner deleted successfully", "deleted": deleted})


# ---------------------------------------------------------------------
# Status (notification counts)
# ---------------------------------------------------------------------
@partners_bp.route("/status", methods=["GET"])
@login_required_json
def partner_status():
    """Variant follows the caller's role unless ?variant=full|office is given."""
    units = get_services().aggregation.partner_statuses(current_actor(), request.args.get("variant"))
    return status_response(units)


@partners_bp.route("/status/all", methods=["GET"])
@requires(Operation.VIEW_STATUS_FULL)
def partner_status_full():
    units = get_services().aggregation.partner_statuses(current_actor(), Variant.FULL)
    return status_response(units)


@partners_bp.route("/status/office", methods=["GET"])
@requires(Operation.VIEW_STATUS_OFFICE)
def partner_status_office():
    units = get_services().aggregation.partner_statuses(current_actor(), Variant.OFFICE)
    return status_response(units)

# Overview: Flask API routes for visit reports; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_roles
from ..models.auth import (
    ROLE_ACCOUNTING_MANAGER,
    ROUTE_MANAGER_ROLES,
)
from ..services import visit_report_service
from ..validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/visits")
@require_auth
@require_roles(*ROUTE_MANAGER_ROLES, ROLE_ACCOUNTING_MANAGER)
def visits_report_route():
    """
    Per-user visit totals.

    Query: start_date, end_date (YYYY-MM-DD; startDate/endDate also accepted).
    """
    start = request.args.get("start_date") or request.args.get("startDate")
    end = request.args.get("end_date") or request.args.get("endDate")
    try:
        rows = visit_report_service.visits_report(start, end)
        return jsonify({"start_date": start, "end_date": end, "rows": rows})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

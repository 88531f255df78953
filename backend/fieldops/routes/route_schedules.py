# Overview: Flask API routes for route schedules and visit completion; parses input and returns JSON responses.

"""
Route Schedule Routes

SECURITY:
- Creating, editing and deleting templates requires a route manager role
  (admin, general_manager, sales_manager, sales_supervisor).
- Route managers may read any user's projection; everyone else is pinned to
  their own, whatever user_id they send.
- A visit may be toggled by its assigned user or a route manager.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..models.auth import ROUTE_MANAGER_ROLES
from ..services import (
    calendar_service,
    reconciliation_service,
    schedule_service,
    visit_report_service,
    visit_service,
)
from ..validation import ConflictError, NotFoundError, ValidationError, require_int


route_schedules_bp = Blueprint("route_schedules", __name__, url_prefix="/api/route-schedules")


def _scoped_user_id(raw) -> int | None:
    """
    user_id the caller may read.

    Route managers get what they asked for (None = everyone); other roles
    always get themselves.
    """
    user = g.current_user
    if not user.is_route_manager:
        return user.id
    if raw in (None, ""):
        return None
    return require_int(raw, "user_id")


def _projection_response(user_id: int | None):
    window = calendar_service.business_window()
    visits = reconciliation_service.project_visits(window, user_id=user_id)
    return jsonify({
        "window": [day.to_dict() for day in window],
        "visits": [v.to_dict() for v in visits],
        "summary": reconciliation_service.projection_summary(visits),
    })


@route_schedules_bp.get("")
@require_auth
def list_projection_route():
    """Rolling-window visit projection with completion state."""
    try:
        return _projection_response(_scoped_user_id(request.args.get("user_id")))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to project route schedules")
        return jsonify({"error": "Internal server error"}), 500


@route_schedules_bp.get("/my")
@require_auth
def my_projection_route():
    try:
        return _projection_response(g.current_user.id)
    except Exception:
        current_app.logger.exception("Failed to project route schedules for user %s", g.current_user.id)
        return jsonify({"error": "Internal server error"}), 500


@route_schedules_bp.get("/templates")
@require_auth
def list_templates_route():
    try:
        user_id = _scoped_user_id(request.args.get("user_id"))
        rows = schedule_service.list_all() if user_id is None else schedule_service.list_for_user(user_id)
        return jsonify({"schedules": rows})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@route_schedules_bp.get("/by-day/<int:day_of_week>")
@require_auth
def list_by_day_route(day_of_week: int):
    try:
        user_id = _scoped_user_id(request.args.get("user_id"))
        return jsonify({"schedules": schedule_service.list_by_day(day_of_week, user_id=user_id)})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@route_schedules_bp.get("/team")
@require_auth
@require_roles(*ROUTE_MANAGER_ROLES)
def team_route():
    """Templates for the caller's team, with this month's completed visit counts."""
    rows = schedule_service.list_team(g.current_user)
    counts = visit_report_service.monthly_visit_counts({r["user_id"] for r in rows})
    return jsonify({
        "schedules": rows,
        "monthly_visit_counts": {str(uid): count for uid, count in counts.items()},
    })


@route_schedules_bp.get("/visit-count")
@require_auth
def visit_count_route():
    try:
        user_id = _scoped_user_id(request.args.get("user_id")) or g.current_user.id
        return jsonify({"user_id": user_id, "count": visit_report_service.monthly_visit_count(user_id)})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@route_schedules_bp.post("")
@require_auth
@require_roles(*ROUTE_MANAGER_ROLES)
def create_schedule_route():
    """
    Assign a user to one or more stores on a weekday.

    Body: {user_id, store_ids: [...] | store_id, day_of_week}
    Existing (user, store, day) slots are skipped, not rejected.
    """
    data = request.get_json(silent=True) or {}
    store_ids = data.get("store_ids")
    if store_ids is None and data.get("store_id") is not None:
        store_ids = [data.get("store_id")]

    try:
        result = schedule_service.add_schedule(
            user_id=data.get("user_id"),
            store_ids=store_ids,
            day_of_week=data.get("day_of_week"),
            created_by=g.current_user.id,
        )
        return jsonify(result), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create route schedule")
        return jsonify({"error": "Internal server error"}), 500


@route_schedules_bp.put("/<int:schedule_id>")
@require_auth
@require_roles(*ROUTE_MANAGER_ROLES)
def update_schedule_route(schedule_id: int):
    data = request.get_json(silent=True) or {}
    try:
        schedule = schedule_service.update_schedule(schedule_id, data)
        return jsonify({"schedule": schedule.to_dict()})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update route schedule %s", schedule_id)
        return jsonify({"error": "Internal server error"}), 500


@route_schedules_bp.delete("/<int:schedule_id>")
@require_auth
@require_roles(*ROUTE_MANAGER_ROLES)
def delete_schedule_route(schedule_id: int):
    try:
        result = schedule_service.delete_schedule(schedule_id)
        current_app.logger.info(
            "Route schedule %s deleted by user %s (%s tasks, %s visit logs)",
            schedule_id, g.current_user.id, result["deleted_tasks"], result["deleted_visit_logs"],
        )
        return jsonify(result)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete route schedule %s", schedule_id)
        return jsonify({"error": "Internal server error"}), 500


@route_schedules_bp.post("/<int:schedule_id>/toggle-visit")
@require_auth
def toggle_visit_route(schedule_id: int):
    """Body: {visit_date: "YYYY-MM-DD"}"""
    data = request.get_json(silent=True) or {}
    user = g.current_user
    try:
        schedule = schedule_service.get_schedule(schedule_id)
        if schedule.user_id != user.id and not user.is_route_manager:
            return jsonify({"error": "Permission denied"}), 403

        result = visit_service.toggle_visit(schedule_id, data.get("visit_date"), actor_id=user.id)
        return jsonify(result)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to toggle visit for schedule %s", schedule_id)
        return jsonify({"error": "Internal server error"}), 500

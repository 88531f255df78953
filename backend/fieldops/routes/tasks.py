# Overview: Flask API routes for route tasks; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..models.auth import ROUTE_MANAGER_ROLES
from ..services import calendar_service, task_service
from ..validation import ValidationError, require_int


tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")


@tasks_bp.post("/route-tasks/generate")
@require_auth
@require_roles(*ROUTE_MANAGER_ROLES)
def generate_route_tasks_route():
    """
    Create tasks for every projected visit in the current window.

    Body (optional): {user_id} to limit generation to one user's route.
    """
    data = request.get_json(silent=True) or {}
    try:
        user_id = require_int(data["user_id"], "user_id") if data.get("user_id") is not None else None
        result = task_service.generate_route_tasks(
            calendar_service.business_window(),
            created_by=g.current_user.id,
            user_id=user_id,
        )
        return jsonify(result), 201 if result["created"] else 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to generate route tasks")
        return jsonify({"error": "Internal server error"}), 500


@tasks_bp.get("/my")
@require_auth
def my_tasks_route():
    try:
        tasks = task_service.list_tasks_for_user(g.current_user.id, status=request.args.get("status"))
        return jsonify({"tasks": tasks})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

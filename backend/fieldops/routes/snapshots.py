# Overview: Flask API routes for stock snapshots; parses input and returns JSON responses.

"""
Snapshot Routes

POST records a count for the caller and, when the caller has that store on
their route for the day, completes the visit. Only admin and general_manager
may delete snapshots, since deletion withdraws visit evidence.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..models.auth import ROLE_ADMIN, ROLE_GENERAL_MANAGER
from ..services import snapshot_service
from ..validation import NotFoundError, ValidationError


snapshots_bp = Blueprint("snapshots", __name__, url_prefix="/api/snapshots")


@snapshots_bp.get("")
@require_auth
def list_snapshots_route():
    try:
        return jsonify({"snapshots": snapshot_service.list_snapshots(request.args.to_dict())})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@snapshots_bp.post("")
@require_auth
def create_snapshot_route():
    data = request.get_json(silent=True) or {}
    try:
        result = snapshot_service.add_snapshot(data, g.current_user.id)
        return jsonify(result), 201 if result["created"] else 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to record snapshot")
        return jsonify({"error": "Internal server error"}), 500


@snapshots_bp.delete("/<int:snapshot_id>")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_GENERAL_MANAGER)
def delete_snapshot_route(snapshot_id: int):
    try:
        result = snapshot_service.delete_snapshot(snapshot_id)
        return jsonify({"deleted": True, **result})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete snapshot %s", snapshot_id)
        return jsonify({"error": "Internal server error"}), 500

"""Recent activity API endpoint."""

from flask import Blueprint, jsonify

from app.context import error_response, get_components, get_service

bp = Blueprint("rollups", __name__, url_prefix="/api/rollups")


@bp.route("", methods=["GET"])
def list_rollups():
    """Get daily rollups for the last 9 weeks (3 sprints).

    Query params:
        - components: Optional comma-separated component names
    """
    try:
        rollups = get_service().get_rollups(get_components())
        return jsonify({"data": rollups})
    except Exception as e:
        return error_response(e)

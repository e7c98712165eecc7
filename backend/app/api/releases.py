"""Release API endpoints."""

from flask import Blueprint, jsonify

from app.context import error_response, get_components, get_service

bp = Blueprint("releases", __name__, url_prefix="/api/releases")


@bp.route("", methods=["GET"])
def list_releases():
    """Get every configured release with its rollups.

    Query params:
        - components: Optional comma-separated component names
    """
    try:
        releases = get_service().get_releases(get_components())
        return jsonify({"data": releases})
    except Exception as e:
        return error_response(e)


@bp.route("/<name>", methods=["GET"])
def get_release(name):
    """Get one release's milestones and rollups over its window.

    The window runs from the start milestone (or the first appearance of
    the release targets) to the GA milestone (or the latest snapshot).
    """
    try:
        release = get_service().get_release(name, get_components())
        return jsonify({"data": release})
    except Exception as e:
        return error_response(e)

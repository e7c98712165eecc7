"""Issue list and daily snapshot API endpoints."""

from flask import Blueprint, request, jsonify

from app.context import error_response, get_components, get_service

bp = Blueprint("issues", __name__, url_prefix="/api")


@bp.route("/issues", methods=["GET"])
def list_issues():
    """List the issues recorded on a date.

    Query params:
        - date: YYYY-MM-DD, "_latest" (default) or "_earliest"
        - components: Optional comma-separated component names

    Returns issues sorted by PM score, highest first.
    """
    datestamp = request.args.get("date", "")

    try:
        issues = get_service().get_issues(datestamp, get_components())
        return jsonify({"data": issues})
    except Exception as e:
        return error_response(e)


@bp.route("/snapshot", methods=["GET"])
def get_snapshot():
    """Get the issue list and rollup for a single date.

    Query params:
        - date: YYYY-MM-DD, "_latest" (default) or "_earliest"
        - components: Optional comma-separated component names

    Returns:
        - datestamp: The resolved date
        - issues: Issues on that date
        - rollup: All/blocker/customer case breakdowns against the previous snapshot
    """
    datestamp = request.args.get("date", "")

    try:
        snapshot = get_service().get_snapshot(datestamp, get_components())
        return jsonify({"data": snapshot})
    except Exception as e:
        return error_response(e)

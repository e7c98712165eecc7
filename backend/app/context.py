"""Per-request access to the snapshot store and shared request helpers."""

from flask import current_app, g, jsonify, request

from services.analytics import BugTrendsService
from services.errors import AnalyticsError


def get_view():
    """Read view for the current request, opened on first use.

    Every query of one request shares this view and therefore sees the same
    point in time.
    """
    if "snapshot_view" not in g:
        g.snapshot_view = current_app.extensions["snapshot_store"].begin()
    return g.snapshot_view


def close_view(exc=None):
    view = g.pop("snapshot_view", None)
    if view is not None:
        view.close()


def get_service():
    return BugTrendsService(get_view(), current_app.extensions["bugtrends_config"])


def get_components():
    """Get component filter from query params (comma-separated)."""
    components = request.args.get("components", "")
    if not components:
        return None
    return [c.strip() for c in components.split(",") if c.strip()] or None


def error_response(e: Exception):
    """Log the full error and return a message that is safe to expose."""
    if isinstance(e, AnalyticsError):
        current_app.logger.error(f"{type(e).__name__}: {e.safe_message} (cause: {e.__cause__!r})")
        return jsonify({"error": e.safe_message}), e.status_code

    current_app.logger.exception(f"Unexpected error handling {request.path}")
    return jsonify({"error": "Internal server error"}), 500

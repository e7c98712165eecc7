"""Flask application factory."""

from flask import Flask
from flask_cors import CORS

from services.config import AnalyticsConfig, load_config, parse_config
from services.snapshot_store import SnapshotStore


def load_analytics_config(app, config=None):
    """Resolve the configuration passed to create_app.

    Accepts an AnalyticsConfig, a dict shaped like the YAML file, or None to
    read the file from disk.
    """
    if isinstance(config, AnalyticsConfig):
        return config
    if isinstance(config, dict):
        return parse_config(config)

    config = load_config()
    app.logger.info(f"Loaded {len(config.releases)} releases")
    return config


def create_app(config=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Enable CORS for frontend
    CORS(app, resources={
        r"/api/*": {
            "origins": ["http://localhost:5173", "http://127.0.0.1:5173"],
            "methods": ["GET", "OPTIONS"],
            "allow_headers": ["Content-Type"]
        }
    })

    analytics_config = load_analytics_config(app, config)
    store = SnapshotStore.from_url(analytics_config.database_url, analytics_config.pool_size)
    store.create_schema()
    app.extensions["bugtrends_config"] = analytics_config
    app.extensions["snapshot_store"] = store

    from app.context import close_view
    app.teardown_appcontext(close_view)

    # Register blueprints
    from app.api import issues, releases, rollups
    app.register_blueprint(issues.bp)
    app.register_blueprint(releases.bp)
    app.register_blueprint(rollups.bp)

    from app.cli import snapshot_command
    app.cli.add_command(snapshot_command)

    # Health check endpoint
    @app.route("/health")
    def health():
        return {"status": "ok"}

    return app

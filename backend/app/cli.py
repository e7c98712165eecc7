"""Flask CLI commands."""

import logging

import click
from flask import current_app
from flask.cli import with_appcontext

from services.bugzilla_client import BugzillaClient
from services.errors import AnalyticsError, TrackerError
from services.ingest import SnapshotIngestor


@click.command("snapshot")
@click.option("--date", "day", default=None, help="Snapshot date (YYYY-MM-DD), defaults to today")
@with_appcontext
def snapshot_command(day):
    """Fetch the tracker's issues and store them as a daily snapshot."""
    logging.basicConfig(level=logging.INFO)
    config = current_app.extensions["bugtrends_config"]
    store = current_app.extensions["snapshot_store"]

    if not config.bugzilla.url or not config.bugzilla.search:
        raise click.ClickException("bugzilla.url and bugzilla.search must be configured")

    client = BugzillaClient(config.bugzilla.url, config.bugzilla.user, config.bugzilla.password)
    ingestor = SnapshotIngestor(
        client, store,
        search=config.bugzilla.search,
        sharer=config.bugzilla.sharer,
        fields=config.bugzilla.fields,
    )

    try:
        stored = ingestor.run(day)
    except (TrackerError, AnalyticsError) as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Stored {stored} issues")

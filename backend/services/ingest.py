"""Daily snapshot ingestion."""

from datetime import datetime, timezone
import logging

from services.dates import format_day, to_day
from services.errors import TrackerError

logger = logging.getLogger(__name__)


class SnapshotIngestor:
    """Fetches the tracker's current issue set and stores it as a day's snapshot."""

    def __init__(self, client, store, search: str, sharer: str = "", fields=None):
        self.client = client
        self.store = store
        self.search = search
        self.sharer = sharer
        self.fields = list(fields) if fields else None

    def run(self, day=None) -> int:
        """Replace the snapshot for ``day`` (today, UTC, by default).

        An empty query result leaves the stored snapshot untouched.

        Returns:
            Number of issues stored
        """
        day = to_day(day) if day is not None else datetime.now(timezone.utc).date()
        issues = self.client.execute_query(self.search, self.sharer, self.fields)
        if not issues:
            raise TrackerError("Query found no bugs. Ensure query is correct.")

        stored = self.store.replace_day(day, issues)
        logger.info(f"Snapshot done for {format_day(day)}: {stored} issues")
        return stored

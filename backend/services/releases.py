"""Resolution of a release's reporting window."""

from __future__ import annotations

import logging
from datetime import date

from services.config import Release
from services.dates import EARLIEST, LATEST, TRAILING_WINDOW, format_day, parse_day
from services.errors import ConfigError, InvalidRange, NotFound

logger = logging.getLogger(__name__)


def resolve_date(view, value) -> date:
    """Turn a date string or sentinel into a concrete date.

    "" and "_latest" mean the latest snapshot date, "_earliest" the earliest
    one; anything else must be a literal YYYY-MM-DD.
    """
    if value is None or value in ("", LATEST):
        return view.get_latest_date()
    if value == EARLIEST:
        return view.get_earliest_date()
    if isinstance(value, date):
        return value
    return parse_day(value)


class ReleaseDateResolver:
    """Computes [start, end] windows against one read view."""

    def __init__(self, view):
        self.view = view

    def resolve_window(self, release: Release) -> tuple:
        """Resolve the start and end dates for a release.

        The end is the GA milestone, defaulting to the latest snapshot. The
        start is the start milestone; without one it is the first date any
        of the release targets appeared, or 63 days before the end if they
        never did.

        Raises:
            InvalidRange: the end date falls before the start date
        """
        end = resolve_date(self.view, release.milestones.ga)

        if release.milestones.start:
            start = resolve_date(self.view, release.milestones.start)
        else:
            try:
                start = self.view.get_earliest_date_for_targets(release.targets)
            except (NotFound, ConfigError) as e:
                start = end - TRAILING_WINDOW
                logger.info(
                    f"Unable to find earliest date for release {release.name!r}, "
                    f"using {format_day(start)} instead: {e}"
                )

        if end < start:
            logger.error(
                f"Release {release.name!r}: end date {format_day(end)} "
                f"cannot be before start date {format_day(start)}"
            )
            raise InvalidRange(f"Invalid dates for release {release.name!r}")

        return start, end

    def recent_window(self) -> tuple:
        """The trailing 63 days up to the latest snapshot."""
        end = self.view.get_latest_date()
        return end - TRAILING_WINDOW, end

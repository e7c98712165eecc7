"""Daily rollups: the all / blockers / customer-case breakdowns for a date."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from typing import Optional

from services.dates import format_day, iter_days, to_day
from services.errors import NotFound, StoreFailure
from services.filters import IssueFilter
from services.models import Rollup

logger = logging.getLogger(__name__)


class RollupAssembler:
    """Builds rollups from a read view of the snapshot store.

    Args:
        view: ReadView used for every query
        blockers: Keywords that mark an issue as a release blocker
    """

    def __init__(self, view, blockers=()):
        self.view = view
        self.blockers = tuple(blockers)

    def _categories(self, issue_filter: IssueFilter) -> dict:
        return {
            "all": issue_filter,
            "blockers": issue_filter.with_keywords(self.blockers),
            "customer_cases": issue_filter.with_customer_case(),
        }

    def get_rollup(self, day, issue_filter: Optional[IssueFilter] = None) -> Rollup:
        """Rollup for one date, compared with the previous snapshot date.

        Raises:
            NotFound: ``day`` has no snapshot
            StoreFailure: any of the underlying queries failed
        """
        day = to_day(day)
        issue_filter = issue_filter or IssueFilter()
        previous = self.view.get_previous_date(day)

        breakdowns = {
            name: self.view.get_breakdown(previous, day, category)
            for name, category in self._categories(issue_filter).items()
        }
        return Rollup(datestamp=day, **breakdowns)

    def assemble(self, start, end, issue_filter: Optional[IssueFilter] = None,
                 batched: bool = False) -> list:
        """Rollups for every snapshot date between start and end (inclusive).

        Dates without a snapshot are skipped rather than zero-filled. A date
        whose queries fail is logged and dropped; the rest of the series is
        still returned.

        Args:
            start: First date of the range
            end: Last date of the range
            issue_filter: Filter applied to all three categories
            batched: Compute every date at once from the per-date breakdown
                maps instead of querying date by date

        Returns:
            List of Rollup in chronological order
        """
        start, end = to_day(start), to_day(end)
        issue_filter = issue_filter or IssueFilter()
        if end < start:
            return []
        if batched:
            return self._assemble_batched(start, end, issue_filter)

        present = set(self.view.get_snapshot_dates(start, end))
        days = [day for day in iter_days(start, end) if day in present]

        rollups = {}
        workers = max(1, min(getattr(self.view, "pool_size", 1), len(days)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.get_rollup, day, issue_filter): day for day in days}
            for future in as_completed(futures):
                day = futures[future]
                try:
                    rollups[day] = future.result()
                except NotFound as e:
                    logger.info(f"Skipping {format_day(day)}: {e}")
                except StoreFailure as e:
                    logger.warning(f"Dropping rollup for {format_day(day)}: {e} ({e.__cause__})")

        return [rollups[day] for day in sorted(rollups)]

    def _assemble_batched(self, start: date, end: date, issue_filter: IssueFilter) -> list:
        maps = {
            name: self.view.get_breakdowns(category)
            for name, category in self._categories(issue_filter).items()
        }

        rollups = []
        for day in iter_days(start, end):
            if not all(day in breakdowns for breakdowns in maps.values()):
                continue
            rollups.append(Rollup(
                datestamp=day,
                all=maps["all"][day],
                blockers=maps["blockers"][day],
                customer_cases=maps["customer_cases"][day],
            ))
        return rollups

"""Bug trend queries exposed through the API."""

from __future__ import annotations

import logging
from typing import Optional

from services.config import AnalyticsConfig, Release
from services.dates import format_day
from services.errors import NotFound
from services.filters import IssueFilter
from services.releases import ReleaseDateResolver, resolve_date
from services.rollups import RollupAssembler

logger = logging.getLogger(__name__)


class BugTrendsService:
    """Answers issue, snapshot, release and rollup queries.

    All queries made through one instance read the same point-in-time view,
    so figures returned together are consistent with each other.
    """

    def __init__(self, view, config: AnalyticsConfig):
        self.view = view
        self.config = config
        self.rollups = RollupAssembler(view, config.blockers)
        self.resolver = ReleaseDateResolver(view)

    def get_issues(self, datestamp: str = "", components: Optional[list] = None) -> list:
        """Issues recorded on a date, highest priority score first."""
        day = resolve_date(self.view, datestamp)
        issues = self.view.get_issues(day, IssueFilter.build(components=components))
        return [issue.to_dict() for issue in issues]

    def get_snapshot(self, datestamp: str = "", components: Optional[list] = None) -> dict:
        """Issue list plus the rollup for one date.

        The rollup is not filtered by target release.
        """
        day = resolve_date(self.view, datestamp)
        issue_filter = IssueFilter.build(components=components)
        issues = self.view.get_issues(day, issue_filter)
        rollup = self.rollups.get_rollup(day, issue_filter.without_targets())
        return {
            "datestamp": format_day(day),
            "issues": [issue.to_dict() for issue in issues],
            "rollup": rollup.to_dict(),
        }

    def _release(self, release: Release, components: Optional[list]) -> dict:
        start, end = self.resolver.resolve_window(release)
        issue_filter = IssueFilter.build(components=components, targets=release.targets)
        rollups = self.rollups.assemble(start, end, issue_filter)
        return {
            "name": release.name,
            "targets": list(release.targets),
            "milestones": release.milestones.to_dict(),
            "window": {"start": format_day(start), "end": format_day(end)},
            "rollups": [rollup.to_dict() for rollup in rollups],
        }

    def get_release(self, name: str, components: Optional[list] = None) -> dict:
        release = self.config.get_release(name)
        if release is None:
            raise NotFound(f"Cannot find release with name {name!r}")
        return self._release(release, components)

    def get_releases(self, components: Optional[list] = None) -> list:
        """Every configured release, in configuration order."""
        return [self._release(release, components) for release in self.config.releases]

    def get_rollups(self, components: Optional[list] = None) -> list:
        """Rollups over the trailing 63 days, without release filtering."""
        start, end = self.resolver.recent_window()
        rollups = self.rollups.assemble(start, end, IssueFilter.build(components=components))
        return [rollup.to_dict() for rollup in rollups]

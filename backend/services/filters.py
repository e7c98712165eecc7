"""Issue filters and the SQL they compile to.

All breakdown queries, single-day and batched, are built from
``snapshot_membership``. It is the one place that decides which side of a
new/closed comparison is filtered: the primary day's rows must match the
filter, while the comparison day is checked as a whole, unfiltered snapshot.
An issue therefore counts as new only if its id did not exist at all on the
comparison day, and as closed only if its id disappeared entirely.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional

from sqlalchemy import and_, exists, func, select, true

from services.models import Issue
from services.schema import issue_keywords, issues


def _clean(values: Optional[Iterable[str]]) -> tuple:
    if not values:
        return ()
    if isinstance(values, str):
        values = [values]
    cleaned = []
    for value in values:
        value = str(value).strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return tuple(cleaned)


@dataclass(frozen=True)
class IssueFilter:
    """Restrictions on the issues being counted.

    Components and targets are OR-matched, keywords match on any overlap.
    An empty field places no restriction on that dimension.
    """

    components: tuple = ()
    keywords: tuple = ()
    customer_case: bool = False
    targets: tuple = ()

    @classmethod
    def build(cls, components=None, keywords=None, customer_case=False, targets=None) -> IssueFilter:
        return cls(
            components=_clean(components),
            keywords=_clean(keywords),
            customer_case=bool(customer_case),
            targets=_clean(targets),
        )

    def with_keywords(self, keywords) -> IssueFilter:
        return replace(self, keywords=_clean(keywords))

    def with_customer_case(self) -> IssueFilter:
        return replace(self, customer_case=True)

    def without_targets(self) -> IssueFilter:
        return replace(self, targets=())

    def matches(self, issue: Issue) -> bool:
        """Evaluate the filter against an in-memory issue.

        Mirrors ``filter_clause``; the tests use it to compute expected counts
        straight from seeded snapshots.
        """
        if self.components and issue.component not in self.components:
            return False
        if self.keywords and not set(self.keywords) & set(issue.keywords):
            return False
        if self.customer_case and not issue.customer_case:
            return False
        if self.targets and issue.target_release not in self.targets:
            return False
        return True


def filter_clause(table, issue_filter: IssueFilter):
    """WHERE clause restricting rows of ``table`` to the filter."""
    conditions = []
    if issue_filter.components:
        conditions.append(table.c.component.in_(issue_filter.components))
    if issue_filter.keywords:
        conditions.append(
            exists().where(
                issue_keywords.c.issue_id == table.c.id,
                issue_keywords.c.datestamp == table.c.datestamp,
                issue_keywords.c.keyword.in_(issue_filter.keywords),
            )
        )
    if issue_filter.customer_case:
        conditions.append(table.c.customer_case == true())
    if issue_filter.targets:
        conditions.append(table.c.target_release.in_(issue_filter.targets))
    return and_(true(), *conditions)


def snapshot_membership(table, on_date, issue_filter: IssueFilter, absent_on=None):
    """Rows of ``table`` in the ``on_date`` snapshot that match the filter.

    When ``absent_on`` is given (a date or a column), rows are further limited
    to ids missing from the entire, unfiltered snapshot of that day.
    """
    clause = and_(table.c.datestamp == on_date, filter_clause(table, issue_filter))
    if absent_on is not None:
        other = issues.alias()
        clause = and_(
            clause,
            ~exists().where(other.c.id == table.c.id, other.c.datestamp == absent_on),
        )
    return clause


def count_statement(on_date, issue_filter: IssueFilter, absent_on=None):
    return (
        select(func.count(issues.c.id))
        .select_from(issues)
        .where(snapshot_membership(issues, on_date, issue_filter, absent_on))
    )


def breakdown_statements(start, end, issue_filter: IssueFilter) -> dict:
    """Total, new and closed count queries for one (start, end) pair."""
    return {
        "total": count_statement(end, issue_filter),
        "new": count_statement(end, issue_filter, absent_on=start),
        "closed": count_statement(start, issue_filter, absent_on=end),
    }


def breakdown_series_statements(issue_filter: IssueFilter) -> dict:
    """Per-date total, new and closed count queries over every snapshot date.

    Each date is compared with the previous date that has a snapshot. The
    earliest date has no previous date, so all of its issues count as new.
    """
    ds = select(issues.c.datestamp).distinct().subquery("ds")
    dates = select(
        ds.c.datestamp,
        func.lag(ds.c.datestamp).over(order_by=ds.c.datestamp).label("prev"),
    ).cte("dates")

    def series(primary, absent_on):
        row = issues.alias("b1")
        on = snapshot_membership(row, primary, issue_filter, absent_on)
        return (
            select(dates.c.datestamp, func.count(row.c.id))
            .select_from(dates.outerjoin(row, on))
            .group_by(dates.c.datestamp)
        )

    return {
        "total": series(dates.c.datestamp, None),
        "new": series(dates.c.datestamp, dates.c.prev),
        "closed": series(dates.c.prev, dates.c.datestamp),
    }

"""Value types for issue snapshots and the figures derived from them."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from services.dates import format_day

logger = logging.getLogger(__name__)

# External tracker id of the customer portal; an issue linking to it has a
# customer case attached.
CUSTOMER_PORTAL_TRACKER_ID = 60


def has_customer_case(externals) -> bool:
    """Check whether external links reference the customer portal tracker.

    Args:
        externals: Parsed list of external link dicts, or its JSON text

    Returns:
        True if any link carries ``ext_bz_id`` equal to the portal id
    """
    if not externals:
        return False
    if isinstance(externals, (str, bytes)):
        try:
            externals = json.loads(externals)
        except ValueError as e:
            logger.warning(f"Unable to parse external links: {e}")
            return False
    for link in externals:
        if not isinstance(link, dict):
            continue
        try:
            if int(link.get("ext_bz_id")) == CUSTOMER_PORTAL_TRACKER_ID:
                return True
        except (TypeError, ValueError):
            continue
    return False


@dataclass(frozen=True)
class Issue:
    """One issue as recorded in one daily snapshot."""

    id: int
    component: str = ""
    target_release: str = ""
    assignee: str = ""
    status: str = ""
    summary: str = ""
    keywords: tuple = ()
    priority_score: int = 0
    externals: list = field(default_factory=list, compare=False)
    datestamp: Optional[date] = None
    # Days since the id first appeared in any snapshot; set on reads only.
    age: Optional[int] = None

    @property
    def customer_case(self) -> bool:
        return has_customer_case(self.externals)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "datestamp": format_day(self.datestamp) if self.datestamp else None,
            "component": self.component,
            "targetRelease": self.target_release,
            "assignedTo": self.assignee,
            "status": self.status,
            "summary": self.summary,
            "keywords": list(self.keywords),
            "pmScore": self.priority_score,
            "customerCase": self.customer_case,
            "age": self.age,
        }


@dataclass(frozen=True)
class Breakdown:
    """Total, new and closed issue counts for one date pair and filter."""

    total: int = 0
    new: int = 0
    closed: int = 0

    def to_dict(self) -> dict:
        return {"total": self.total, "new": self.new, "closed": self.closed}


@dataclass(frozen=True)
class Rollup:
    """One day's breakdowns for all issues, blockers and customer cases."""

    datestamp: date
    all: Breakdown
    blockers: Breakdown
    customer_cases: Breakdown

    def to_dict(self) -> dict:
        return {
            "datestamp": format_day(self.datestamp),
            "all": self.all.to_dict(),
            "blockers": self.blockers.to_dict(),
            "customerCases": self.customer_cases.to_dict(),
        }

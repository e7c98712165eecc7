"""Bugzilla JSON-RPC client for fetching the issues of a saved search."""

from typing import Optional
import logging

import requests

from services.errors import TrackerError
from services.models import Issue

logger = logging.getLogger(__name__)


def _first(value) -> str:
    """Bugzilla returns component and target_release as lists."""
    if isinstance(value, (list, tuple)):
        return str(value[0]) if value else ""
    return "" if value is None else str(value)


def _score(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_bug(bug: dict) -> Issue:
    """Convert one bug from a Bug.search result into an Issue."""
    externals = bug.get("external_bugs") or []
    return Issue(
        id=int(bug["id"]),
        component=_first(bug.get("component")),
        target_release=_first(bug.get("target_release")),
        assignee=bug.get("assigned_to") or "",
        status=bug.get("status") or "",
        summary=bug.get("summary") or "",
        keywords=tuple(bug.get("keywords") or ()),
        priority_score=_score(bug.get("cf_pm_score")),
        externals=[e for e in externals if isinstance(e, dict)],
    )


class BugzillaClient:
    """Runs saved searches against a Bugzilla JSON-RPC endpoint."""

    def __init__(self, url: str, user: str, password: str, timeout: int = 60):
        self.url = url
        self.user = user
        self.password = password
        self.timeout = timeout

    def _call(self, method: str, params: dict) -> dict:
        """POST a JSON-RPC request and return its result."""
        payload = {"method": method, "params": [params], "id": 0}
        try:
            response = requests.post(
                self.url,
                json=payload,
                headers={"Accept": "application/json"},
                timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise TrackerError(f"Error when POSTing {method}: {e}") from e
        except ValueError as e:
            raise TrackerError(f"Unable to parse {method} response: {e}") from e

        if data.get("error"):
            raise TrackerError(f"{method} failed: {data['error']}")
        return data.get("result") or {}

    def execute_query(self, search: str, sharer: str = "", fields: Optional[list] = None) -> list:
        """Fetch every bug matched by a saved search.

        Args:
            search: Name of the saved search
            sharer: User id of the search's owner, when it is shared
            fields: Bug fields to include in the result

        Returns:
            List of Issue, without snapshot dates
        """
        params = {
            "Bugzilla_login": self.user,
            "Bugzilla_password": self.password,
            "savedsearch": search,
            "sharer_id": sharer,
        }
        if fields:
            params["include_fields"] = list(fields)

        result = self._call("Bug.search", params)
        bugs = result.get("bugs") or []

        issues = []
        for bug in bugs:
            try:
                issues.append(parse_bug(bug))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed bug {bug!r}: {e}")
        logger.info(f"Query {search!r} found {len(issues)} bugs")
        return issues

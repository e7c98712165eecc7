"""Shared fixtures for bug trend tests.

The seeded store holds three snapshots with a gap on 2023-01-12:

    2023-01-10  #1 Networking/4.10, #2 Storage/4.10 [TestBlocker],
                #3 Networking/4.9 (customer case)
    2023-01-11  #1 Networking/4.10, #2 Storage/4.10 [TestBlocker],
                #4 Networking/4.10
    2023-01-13  #1 Storage/4.10 (moved from Networking),
                #2 Storage/4.10 [TestBlocker], #4 Networking/4.10,
                #5 Storage/4.11 [TestBlocker] (customer case)
"""

import os
import sys
from datetime import date

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.models import Issue
from services.snapshot_store import SnapshotStore

DAY_1 = date(2023, 1, 10)
DAY_2 = date(2023, 1, 11)
GAP = date(2023, 1, 12)
DAY_3 = date(2023, 1, 13)

CUSTOMER_CASE = [{"ext_bz_id": 60, "ext_bz_bug_id": "02345678"}]
OTHER_TRACKER = [{"ext_bz_id": 5, "ext_bz_bug_id": "1234"}]


def make_issue(issue_id, component="Networking", target="4.10", keywords=(),
               externals=None, score=0, status="NEW"):
    return Issue(
        id=issue_id,
        component=component,
        target_release=target,
        assignee=f"dev{issue_id}@example.com",
        status=status,
        summary=f"Issue {issue_id}",
        keywords=tuple(keywords),
        priority_score=score,
        externals=externals or [],
    )


SNAPSHOTS = {
    DAY_1: [
        make_issue(1, score=10),
        make_issue(2, component="Storage", keywords=["TestBlocker"], score=30),
        make_issue(3, target="4.9", externals=CUSTOMER_CASE, score=20),
    ],
    DAY_2: [
        make_issue(1, score=10),
        make_issue(2, component="Storage", keywords=["TestBlocker"], score=30),
        make_issue(4, score=5, externals=OTHER_TRACKER),
    ],
    DAY_3: [
        make_issue(1, component="Storage", score=10, status="ASSIGNED"),
        make_issue(2, component="Storage", keywords=["TestBlocker"], score=30),
        make_issue(4, score=5, externals=OTHER_TRACKER),
        make_issue(5, component="Storage", target="4.11",
                   keywords=["TestBlocker", "Regression"], externals=CUSTOMER_CASE, score=40),
    ],
}


def seed(store):
    for day, issues in SNAPSHOTS.items():
        store.replace_day(day, issues)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'bugtrends.db'}"


@pytest.fixture
def store(database_url):
    """Empty snapshot store backed by a temporary SQLite file."""
    store = SnapshotStore.from_url(database_url)
    store.create_schema()
    yield store
    store.close()


@pytest.fixture
def seeded_store(store):
    seed(store)
    return store


@pytest.fixture
def view(seeded_store):
    """Read view over the seeded store."""
    with seeded_store.begin() as view:
        yield view


@pytest.fixture
def app_config(database_url):
    """Configuration dict shaped like the YAML file."""
    return {
        "database": {"url": database_url},
        "blockers": ["TestBlocker"],
        "releases": [
            {"name": "4.10", "targets": ["4.10"], "milestones": {}},
            {
                "name": "4.11",
                "targets": ["4.11"],
                "milestones": {"start": "2023-01-11", "ga": "_latest"},
            },
        ],
    }


@pytest.fixture
def app(app_config):
    """Create Flask test app over the seeded database."""
    from app import create_app
    app = create_app(app_config)
    app.config['TESTING'] = True
    seed(app.extensions["snapshot_store"])
    yield app
    app.extensions["snapshot_store"].close()


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()

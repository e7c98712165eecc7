"""Tests for API endpoints."""

import json
from unittest.mock import patch

import pytest

from app import create_app
from services.errors import StoreFailure


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert json.loads(response.data) == {"status": "ok"}


class TestIssues:
    """Test issue list endpoint."""

    def test_defaults_to_latest_date(self, client):
        response = client.get("/api/issues")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [issue["id"] for issue in data["data"]] == [5, 2, 1, 4]
        assert data["data"][0]["datestamp"] == "2023-01-13"
        assert data["data"][0]["customerCase"] is True

    def test_earliest_date_and_components(self, client):
        response = client.get("/api/issues?date=_earliest&components=Networking")

        data = json.loads(response.data)
        assert [issue["id"] for issue in data["data"]] == [3, 1]

    def test_date_without_snapshot_is_empty(self, client):
        response = client.get("/api/issues?date=2023-01-12")

        assert response.status_code == 200
        assert json.loads(response.data)["data"] == []

    def test_invalid_date(self, client):
        response = client.get("/api/issues?date=yesterday")

        assert response.status_code == 400
        assert "Invalid date" in json.loads(response.data)["error"]


class TestSnapshot:
    """Test snapshot endpoint."""

    def test_snapshot(self, client):
        response = client.get("/api/snapshot?date=2023-01-11")

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["datestamp"] == "2023-01-11"
        assert len(data["issues"]) == 3
        assert data["rollup"]["all"] == {"total": 3, "new": 1, "closed": 1}
        assert data["rollup"]["customerCases"] == {"total": 0, "new": 0, "closed": 1}

    def test_missing_date_is_not_found(self, client):
        response = client.get("/api/snapshot?date=2023-01-12")

        assert response.status_code == 404
        assert "2023-01-12" in json.loads(response.data)["error"]

    def test_store_failure_hides_details(self, client):
        with patch("services.snapshot_store.ReadView.get_breakdown",
                   side_effect=StoreFailure("Error querying for TOTAL issue count")):
            response = client.get("/api/snapshot")

        assert response.status_code == 500
        assert json.loads(response.data)["error"] == "Error querying for TOTAL issue count"


class TestReleases:
    """Test release endpoints."""

    def test_release_defaults(self, client):
        response = client.get("/api/releases/4.10")

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["name"] == "4.10"
        assert data["window"] == {"start": "2023-01-10", "end": "2023-01-13"}
        assert [r["datestamp"] for r in data["rollups"]] == ["2023-01-10", "2023-01-11", "2023-01-13"]
        # Target filtering drops issue 3 (4.9) and issue 5 (4.11)
        assert data["rollups"][0]["all"] == {"total": 2, "new": 2, "closed": 0}
        assert data["rollups"][0]["blockers"] == {"total": 1, "new": 1, "closed": 0}

    def test_release_with_start_milestone(self, client):
        response = client.get("/api/releases/4.11")

        data = json.loads(response.data)["data"]
        assert data["milestones"]["start"] == "2023-01-11"
        assert data["window"] == {"start": "2023-01-11", "end": "2023-01-13"}
        assert [r["datestamp"] for r in data["rollups"]] == ["2023-01-11", "2023-01-13"]

    def test_release_components(self, client):
        response = client.get("/api/releases/4.10?components=Networking")

        data = json.loads(response.data)["data"]
        assert data["rollups"][-1]["all"] == {"total": 1, "new": 0, "closed": 0}

    def test_unknown_release(self, client):
        response = client.get("/api/releases/9.99")

        assert response.status_code == 404
        assert "9.99" in json.loads(response.data)["error"]

    def test_list_releases(self, client):
        response = client.get("/api/releases")

        assert response.status_code == 200
        names = [r["name"] for r in json.loads(response.data)["data"]]
        assert names == ["4.10", "4.11"]

    def test_invalid_release_dates(self, app_config):
        app_config["releases"] = [
            {"name": "old", "targets": ["4.1"], "milestones": {"start": "2024-06-01"}}
        ]
        app = create_app(app_config)
        from conftest import seed
        seed(app.extensions["snapshot_store"])

        response = app.test_client().get("/api/releases/old")

        assert response.status_code == 422
        assert json.loads(response.data)["error"] == "Invalid dates for release 'old'"
        app.extensions["snapshot_store"].close()


class TestRollups:
    """Test recent activity endpoint."""

    def test_rollups(self, client):
        response = client.get("/api/rollups")

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert [r["datestamp"] for r in data] == ["2023-01-10", "2023-01-11", "2023-01-13"]
        assert data[-1]["blockers"] == {"total": 2, "new": 1, "closed": 0}

    def test_rollups_empty_store(self, database_url):
        app = create_app({"database": {"url": database_url}})

        response = app.test_client().get("/api/rollups")

        assert response.status_code == 404
        app.extensions["snapshot_store"].close()

    def test_unexpected_error_is_generic(self, client):
        with patch("services.analytics.BugTrendsService.get_rollups",
                   side_effect=RuntimeError("SELECT * FROM issues exploded")):
            response = client.get("/api/rollups")

        assert response.status_code == 500
        assert json.loads(response.data)["error"] == "Internal server error"

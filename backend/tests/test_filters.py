"""Tests for IssueFilter and the SQL it compiles to."""

import pytest

from conftest import CUSTOMER_CASE, DAY_3, SNAPSHOTS, make_issue
from services.filters import IssueFilter


class TestIssueFilter:
    """Test IssueFilter construction and matching."""

    def test_build_cleans_values(self):
        f = IssueFilter.build(components=[" Networking", "", "Networking", "Storage"])
        assert f.components == ("Networking", "Storage")

    def test_build_accepts_single_string(self):
        assert IssueFilter.build(keywords="TestBlocker").keywords == ("TestBlocker",)

    def test_empty_filter_matches_everything(self):
        assert IssueFilter().matches(make_issue(1))

    def test_components_are_or_matched(self):
        f = IssueFilter.build(components=["Networking", "Storage"])
        assert f.matches(make_issue(1, component="Storage"))
        assert not f.matches(make_issue(1, component="Console"))

    def test_keywords_match_on_overlap(self):
        f = IssueFilter.build(keywords=["TestBlocker", "UpgradeBlocker"])
        assert f.matches(make_issue(1, keywords=("Regression", "UpgradeBlocker")))
        assert not f.matches(make_issue(1, keywords=("Regression",)))

    def test_customer_case(self):
        f = IssueFilter().with_customer_case()
        assert f.matches(make_issue(1, externals=CUSTOMER_CASE))
        assert not f.matches(make_issue(1))

    def test_without_targets(self):
        f = IssueFilter.build(components=["Networking"], targets=["4.10"]).without_targets()
        assert f.targets == ()
        assert f.components == ("Networking",)


class TestFilterClause:
    """The SQL filter selects exactly the issues the filter matches."""

    @pytest.mark.parametrize("issue_filter", [
        IssueFilter(),
        IssueFilter.build(components=["Storage"]),
        IssueFilter.build(keywords=["Regression", "TestBlocker"]),
        IssueFilter().with_customer_case(),
        IssueFilter.build(components=["Networking", "Storage"], targets=["4.10"]),
    ])
    def test_agrees_with_matches(self, view, issue_filter):
        expected = sorted(i.id for i in SNAPSHOTS[DAY_3] if issue_filter.matches(i))
        assert sorted(i.id for i in view.get_issues(DAY_3, issue_filter)) == expected

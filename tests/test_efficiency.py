"""Tests for estimated vs. logged hours."""

from datetime import datetime, timedelta, timezone

import pytest

from sprint_planning.efficiency import calculate_efficiency, categorize_worklogs, worklog_hours_by_category
from sprint_planning.models import CATEGORY_DEVELOPMENT, CATEGORY_OTHER, Issue, WorkLog, WorklogConfig


def log(issue_key, author, hours, day=10, category=None):
    return WorkLog(issue_key=issue_key, author=author, hours=hours, started=datetime(2025, 6, day, 12), category=category)


class TestCalculateEfficiency:
    def test_ratio_of_logged_to_estimated(self):
        issues = [
            Issue("P-1", assignee="Milan", original_estimate_hours=6),
            Issue("P-2", assignee="Milan", original_estimate_hours=4),
        ]
        worklogs = [log("P-1", "Milan", 7), log("P-2", "Milan", 5)]
        [data] = calculate_efficiency(issues, worklogs)
        assert data.assignee == "Milan"
        assert data.estimated_hours == 10
        assert data.logged_hours == 12
        assert data.efficiency == pytest.approx(1.2)
        assert data.efficiency_defined
        assert data.issue_keys == ["P-1", "P-2"]
        assert [(d.key, d.logged_hours) for d in data.issue_details] == [("P-1", 7), ("P-2", 5)]

    def test_no_estimate_is_flagged_not_raised(self):
        [data] = calculate_efficiency([], [log("P-1", "Sara", 3)])
        assert data.efficiency == 0.0
        assert not data.efficiency_defined
        assert data.logged_hours == 3

    def test_assignee_without_worklogs(self):
        [data] = calculate_efficiency([Issue("P-1", assignee="Sara", original_estimate_hours=8)], [])
        assert data.logged_hours == 0
        assert data.efficiency == 0.0
        assert data.efficiency_defined

    def test_non_productive_worklogs_are_ignored(self):
        issues = [Issue("P-1", assignee="Milan", original_estimate_hours=10)]
        worklogs = [log("P-1", "Milan", 4, category=CATEGORY_DEVELOPMENT), log("P-9", "Milan", 6, category=CATEGORY_OTHER)]
        [data] = calculate_efficiency(issues, worklogs)
        assert data.logged_hours == 4

    def test_window(self):
        issues = [Issue("P-1", assignee="Milan", original_estimate_hours=10)]
        worklogs = [log("P-1", "Milan", 4, day=2), log("P-1", "Milan", 5, day=20)]
        [data] = calculate_efficiency(issues, worklogs, start=datetime(2025, 6, 15), end=datetime(2025, 6, 30))
        assert data.logged_hours == 5

    def test_assignees_sorted(self):
        result = calculate_efficiency(
            [Issue("P-1", assignee="Zoe", original_estimate_hours=1)],
            [log("P-2", "Adam", 1)],
        )
        assert [d.assignee for d in result] == ["Adam", "Zoe"]


class TestWorklogCategories:
    def test_listed_issues_are_overhead(self):
        configs = [WorklogConfig("Intern", "Overig", ["INT-1", "INT-2"]), WorklogConfig("Project", "Ontwikkeling")]
        categorized = categorize_worklogs([log("INT-1", "Milan", 2), log("P-1", "Milan", 3)], configs)
        assert [w.category for w in categorized] == [CATEGORY_OTHER, CATEGORY_DEVELOPMENT]

    def test_hours_by_category(self):
        worklogs = [
            log("P-1", "Milan", 2, category=CATEGORY_DEVELOPMENT),
            log("P-2", "Milan", 3, category=CATEGORY_DEVELOPMENT),
            log("INT-1", "Milan", 1, category=CATEGORY_OTHER),
            log("P-1", "Sara", 4),
        ]
        assert worklog_hours_by_category(worklogs) == {
            "Milan": {CATEGORY_DEVELOPMENT: 5, CATEGORY_OTHER: 1},
            "Sara": {"uncategorized": 4},
        }


class TestWindowOffsets:
    def test_window_compares_in_utc(self):
        """01:00+02:00 on the 15th is still the 14th in UTC."""
        cest = timezone(timedelta(hours=2))
        worklogs = [
            WorkLog("P-1", "Milan", 3, started=datetime(2025, 6, 15, 1, 0, tzinfo=cest)),
            WorkLog("P-1", "Milan", 2, started=datetime(2025, 6, 15, 3, 0, tzinfo=cest)),
        ]
        [data] = calculate_efficiency([], worklogs, start=datetime(2025, 6, 15))
        assert data.logged_hours == 2

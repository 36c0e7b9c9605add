"""Shared factories for building issue snapshots."""

from datetime import datetime

import pytest

from sprint_planning.models import Issue, IssueLink


def blocked_by(key, status=None):
    """Link read from the blocked issue's side: `key` blocks it."""
    return IssueLink("Blocks", "is blocked by", "blocks", inward_issue=key, inward_status=status)


def blocks(key, status=None):
    """Link read from the blocking issue's side: it blocks `key`."""
    return IssueLink("Blocks", "is blocked by", "blocks", outward_issue=key, outward_status=status)


@pytest.fixture
def make_issue():
    def factory(
        key,
        hours=None,
        assignee="Alice",
        priority="Medium",
        created=None,
        predecessors=(),
        successors=(),
        **kwargs,
    ):
        links = [blocked_by(k) for k in predecessors] + [blocks(k) for k in successors]
        return Issue(
            key=key,
            assignee=assignee,
            priority=priority,
            remaining_estimate_hours=hours,
            created=created or datetime(2025, 6, 1, 9, 0),
            links=links,
            **kwargs,
        )

    return factory

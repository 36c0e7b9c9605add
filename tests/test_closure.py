"""Tests for the linked-issue closure."""

import pytest

from sprint_planning.closure import linked_closure, snapshot_lookup
from sprint_planning.models import Issue, RetrievalError

from conftest import blocked_by, blocks


def lookup_for(*issues):
    return snapshot_lookup(issues)


class TestSnapshotLookup:
    def test_missing_key_raises_retrieval_error(self):
        lookup = lookup_for(Issue("AMP-1"))
        assert lookup("AMP-1").key == "AMP-1"
        with pytest.raises(RetrievalError):
            lookup("AMP-2")


class TestLinkedClosure:
    """Traversal over precedence links with project and subtree filters."""

    def test_excluded_subtree_is_skipped(self):
        """Seed -> S1 -> S2 where S2 sits below the excluded root."""
        lookup = lookup_for(
            Issue("AMP-1", links=[blocks("AMP-2")]),
            Issue("AMP-2", links=[blocked_by("AMP-1"), blocks("AMP-3")]),
            Issue("AMP-3", parent_key="AMP-10", links=[blocked_by("AMP-2"), blocks("AMP-4")]),
            Issue("AMP-4", links=[blocked_by("AMP-3")]),
            Issue("AMP-10", parent_key="AMP-99"),
            Issue("AMP-99"),
        )
        result = linked_closure("AMP-1", lookup, "AMP", exclude_subtree_root="AMP-99")
        assert result.keys == ["AMP-2"]
        assert result.omitted == []

    def test_excluded_root_itself(self):
        lookup = lookup_for(
            Issue("AMP-1", links=[blocks("AMP-99"), blocks("AMP-2")]),
            Issue("AMP-2"),
            Issue("AMP-99"),
        )
        assert linked_closure("AMP-1", lookup, "AMP", exclude_subtree_root="AMP-99").keys == ["AMP-2"]

    def test_only_project_prefix_is_visited(self):
        lookup = lookup_for(
            Issue("AMP-1", links=[blocks("REAL-5"), blocks("AMP-2")]),
            Issue("AMP-2"),
            Issue("REAL-5", links=[blocks("AMP-3")]),
            Issue("AMP-3"),
        )
        assert linked_closure("AMP-1", lookup, "AMP").keys == ["AMP-2"]

    def test_multiple_prefixes(self):
        lookup = lookup_for(
            Issue("AMP-1", links=[blocks("KAMP-5"), blocks("AMP-2")]),
            Issue("AMP-2"),
            Issue("KAMP-5"),
        )
        assert linked_closure("AMP-1", lookup, ("AMP", "KAMP")).keys == ["KAMP-5", "AMP-2"]

    def test_follows_predecessors_too(self):
        lookup = lookup_for(
            Issue("AMP-2", links=[blocked_by("AMP-1")]),
            Issue("AMP-1", links=[blocks("AMP-2"), blocked_by("AMP-0")]),
            Issue("AMP-0", links=[blocks("AMP-1")]),
        )
        assert linked_closure("AMP-2", lookup, "AMP").keys == ["AMP-1", "AMP-0"]

    def test_unresolvable_link_is_omitted(self):
        lookup = lookup_for(
            Issue("AMP-1", links=[blocks("AMP-2"), blocks("AMP-7")]),
            Issue("AMP-2", links=[blocks("AMP-3")]),
            Issue("AMP-3"),
        )
        result = linked_closure("AMP-1", lookup, "AMP")
        assert result.keys == ["AMP-2", "AMP-3"]
        assert result.omitted == ["AMP-7"]

    def test_cycles_terminate(self):
        lookup = lookup_for(
            Issue("AMP-1", links=[blocks("AMP-2"), blocked_by("AMP-3")]),
            Issue("AMP-2", links=[blocks("AMP-3")]),
            Issue("AMP-3", links=[blocks("AMP-1")]),
        )
        assert linked_closure("AMP-1", lookup, "AMP").keys == ["AMP-2", "AMP-3"]

    def test_missing_seed(self):
        result = linked_closure("AMP-1", lookup_for(), "AMP")
        assert result.issues == []
        assert result.omitted == ["AMP-1"]

    def test_unresolvable_parent_does_not_exclude(self):
        lookup = lookup_for(
            Issue("AMP-1", links=[blocks("AMP-2")]),
            Issue("AMP-2", parent_key="AMP-50"),
        )
        result = linked_closure("AMP-1", lookup, "AMP", exclude_subtree_root="AMP-99")
        assert result.keys == ["AMP-2"]
        assert result.omitted == ["AMP-50"]

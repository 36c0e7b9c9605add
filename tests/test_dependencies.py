"""Tests for reading precedence edges from issue links."""

from sprint_planning.dependencies import (
    INWARD,
    DependencyGraph,
    PrecedenceRule,
    predecessors_of,
    successors_of,
)
from sprint_planning.models import Issue, IssueLink

from conftest import blocked_by, blocks


def predecessor_link(inward_issue=None, outward_issue=None):
    return IssueLink(
        "Predecessor",
        "is a predecessor of",
        "has as a predecessor",
        inward_issue=inward_issue,
        outward_issue=outward_issue,
    )


class TestPredecessorsAndSuccessors:
    """Link type and direction decide which keys come back."""

    def test_blocks(self):
        issue = Issue("P-1", links=[blocked_by("P-2"), blocks("P-3")])
        assert predecessors_of(issue) == ["P-2"]
        assert successors_of(issue) == ["P-3"]

    def test_depends_on(self):
        issue = Issue("P-1", links=[
            IssueLink("Depends On", "is depended on by", "depends on", outward_issue="P-2"),
            IssueLink("Depends On", "is depended on by", "depends on", inward_issue="P-3"),
        ])
        assert predecessors_of(issue) == ["P-2"]
        assert successors_of(issue) == ["P-3"]

    def test_predecessor_type(self):
        """Inward 'is a predecessor of' points at a successor."""
        issue = Issue("P-1", links=[predecessor_link(inward_issue="P-5"), predecessor_link(outward_issue="P-4")])
        assert successors_of(issue) == ["P-5"]
        assert predecessors_of(issue) == ["P-4"]

    def test_predecessor_type_requires_phrase(self):
        link = IssueLink("Predecessor", "comes before", "comes after", outward_issue="P-4")
        assert predecessors_of(Issue("P-1", links=[link])) == []

    def test_unrelated_link_types_ignored(self):
        issue = Issue("P-1", links=[IssueLink("Relates", "relates to", "relates to", inward_issue="P-2")])
        assert predecessors_of(issue) == []
        assert successors_of(issue) == []

    def test_no_links(self):
        assert predecessors_of(Issue("P-1")) == []

    def test_closed_linked_issue_ignored(self):
        issue = Issue("P-1", links=[blocked_by("P-2", status="Closed"), blocked_by("P-3", status="Open")])
        assert predecessors_of(issue) == ["P-3"]

    def test_custom_rules(self):
        rules = [PrecedenceRule("Finish-to-start", INWARD)]
        link = IssueLink("Finish-to-start", "starts after", "finishes before", inward_issue="P-2")
        issue = Issue("P-1", links=[link, blocked_by("P-3")])
        assert predecessors_of(issue, rules) == ["P-2"]

    def test_keeps_link_order_without_duplicates(self):
        issue = Issue("P-1", links=[blocked_by("P-3"), blocked_by("P-2"), blocked_by("P-3")])
        assert predecessors_of(issue) == ["P-3", "P-2"]


class TestDependencyGraph:
    def test_link_seen_from_both_sides_once(self):
        graph = DependencyGraph.build([
            Issue("P-1", links=[blocks("P-2")]),
            Issue("P-2", links=[blocked_by("P-1")]),
        ])
        assert graph.predecessors_for("P-2") == ["P-1"]
        assert graph.successors_for("P-1") == ["P-2"]
        assert graph.edges() == [("P-1", "P-2")]

    def test_unknown_keys(self):
        graph = DependencyGraph.build([Issue("P-1")])
        assert graph.predecessors_for("P-9") == []

    def test_no_cycles_in_chain(self):
        graph = DependencyGraph()
        graph.add_edge("A", "B")
        graph.add_edge("B", "C")
        assert graph.find_cycles() == []

    def test_finds_cycles(self):
        graph = DependencyGraph()
        graph.add_edge("A", "B")
        graph.add_edge("B", "A")
        graph.add_edge("C", "D")
        graph.add_edge("D", "E")
        graph.add_edge("E", "C")
        graph.add_edge("E", "F")
        assert graph.find_cycles() == [["A", "B"], ["C", "D", "E"]]

    def test_self_edge_ignored(self):
        graph = DependencyGraph()
        graph.add_edge("A", "A")
        assert graph.edges() == []

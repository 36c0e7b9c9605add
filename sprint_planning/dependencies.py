from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .models import Issue, IssueLink


INWARD = "inward"
OUTWARD = "outward"

DEFAULT_IGNORED_STATUSES = frozenset({"Closed"})


@dataclass(frozen=True)
class PrecedenceRule:
    """A link type whose linked issue must be finished first.

    predecessor_slot names the slot (inward/outward) that holds the
    predecessor when the link is read from the issue's side; the opposite slot
    then holds a successor. inward_phrase narrows the rule to link types whose
    inward description matches.
    """

    type_name: str
    predecessor_slot: str
    inward_phrase: Optional[str] = None

    def matches(self, link: IssueLink) -> bool:
        if link.type_name != self.type_name:
            return False
        return self.inward_phrase is None or link.inward == self.inward_phrase


DEFAULT_PRECEDENCE_RULES = (
    PrecedenceRule("Blocks", INWARD),
    PrecedenceRule("Depends On", OUTWARD),
    PrecedenceRule("Predecessor", OUTWARD, inward_phrase="is a predecessor of"),
)


def _linked(link: IssueLink, slot: str, ignored_statuses) -> Optional[str]:
    if slot == INWARD:
        key, status = link.inward_issue, link.inward_status
    else:
        key, status = link.outward_issue, link.outward_status
    if not key or (status and status in ignored_statuses):
        return None
    return key


def _collect(issue: Issue, rules, ignored_statuses, want_predecessors: bool) -> List[str]:
    keys = []
    for link in issue.links or []:
        for rule in rules:
            if not rule.matches(link):
                continue
            slot = rule.predecessor_slot
            if not want_predecessors:
                slot = OUTWARD if slot == INWARD else INWARD
            key = _linked(link, slot, ignored_statuses)
            if key and key != issue.key and key not in keys:
                keys.append(key)
            break
    return keys


def predecessors_of(
    issue: Issue,
    rules: Sequence[PrecedenceRule] = DEFAULT_PRECEDENCE_RULES,
    ignored_statuses=DEFAULT_IGNORED_STATUSES,
) -> List[str]:
    return _collect(issue, rules, ignored_statuses, want_predecessors=True)


def successors_of(
    issue: Issue,
    rules: Sequence[PrecedenceRule] = DEFAULT_PRECEDENCE_RULES,
    ignored_statuses=DEFAULT_IGNORED_STATUSES,
) -> List[str]:
    return _collect(issue, rules, ignored_statuses, want_predecessors=False)


class DependencyGraph:
    """Precedence edges between issue keys, "A precedes B" stored both ways."""

    def __init__(self):
        self.predecessors: Dict[str, List[str]] = defaultdict(list)
        self.successors: Dict[str, List[str]] = defaultdict(list)

    def add_edge(self, before: str, after: str):
        if before == after:
            return
        if before not in self.predecessors[after]:
            self.predecessors[after].append(before)
        if after not in self.successors[before]:
            self.successors[before].append(after)

    @classmethod
    def build(
        cls,
        issues: Iterable[Issue],
        rules: Sequence[PrecedenceRule] = DEFAULT_PRECEDENCE_RULES,
        ignored_statuses=DEFAULT_IGNORED_STATUSES,
    ) -> "DependencyGraph":
        # A link usually shows up on both ends, add_edge dedupes.
        graph = cls()
        for issue in issues:
            for key in predecessors_of(issue, rules, ignored_statuses):
                graph.add_edge(key, issue.key)
            for key in successors_of(issue, rules, ignored_statuses):
                graph.add_edge(issue.key, key)
        return graph

    def predecessors_for(self, key: str) -> List[str]:
        return list(self.predecessors.get(key, []))

    def successors_for(self, key: str) -> List[str]:
        return list(self.successors.get(key, []))

    def edges(self) -> List[tuple]:
        return [(before, after) for after, befores in sorted(self.predecessors.items()) for before in befores]

    def find_cycles(self) -> List[List[str]]:
        """Strongly connected groups with more than one issue (Tarjan, iterative)."""
        nodes = sorted(set(self.predecessors) | set(self.successors))
        index_of: Dict[str, int] = {}
        low: Dict[str, int] = {}
        on_stack = set()
        stack: List[str] = []
        cycles = []
        counter = 0

        for root in nodes:
            if root in index_of:
                continue
            work = [(root, iter(self.successors.get(root, [])))]
            index_of[root] = low[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            while work:
                node, children = work[-1]
                advanced = False
                for child in children:
                    if child not in index_of:
                        index_of[child] = low[child] = counter
                        counter += 1
                        stack.append(child)
                        on_stack.add(child)
                        work.append((child, iter(self.successors.get(child, []))))
                        advanced = True
                        break
                    if child in on_stack:
                        low[node] = min(low[node], index_of[child])
                if advanced:
                    continue
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
                if low[node] == index_of[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    if len(component) > 1:
                        cycles.append(sorted(component))
        return sorted(cycles)

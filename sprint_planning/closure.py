import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from .dependencies import (
    DEFAULT_IGNORED_STATUSES,
    DEFAULT_PRECEDENCE_RULES,
    PrecedenceRule,
    predecessors_of,
    successors_of,
)
from .models import Issue, RetrievalError


logger = logging.getLogger(__name__)

IssueLookup = Callable[[str], Issue]


@dataclass
class ClosureResult:
    issues: List[Issue] = field(default_factory=list)
    omitted: List[str] = field(default_factory=list)

    @property
    def keys(self) -> List[str]:
        return [issue.key for issue in self.issues]


def snapshot_lookup(issues: Iterable[Issue]) -> IssueLookup:
    """Lookup over an already fetched list of issues."""
    by_key: Dict[str, Issue] = {issue.key: issue for issue in issues}

    def lookup(key: str) -> Issue:
        try:
            return by_key[key]
        except KeyError:
            raise RetrievalError(key, "not in snapshot") from None

    return lookup


class _ParentChain:
    """Caches parent-chain answers so each ancestor is fetched once."""

    def __init__(self, lookup: IssueLookup, excluded_root: Optional[str], omitted: List[str]):
        self.lookup = lookup
        self.excluded_root = excluded_root
        self.omitted = omitted
        self._cache: Dict[str, bool] = {}

    def is_excluded(self, issue: Issue) -> bool:
        if not self.excluded_root:
            return False
        seen = []
        current = issue
        excluded = False
        while current is not None:
            if current.key in self._cache:
                excluded = self._cache[current.key]
                break
            seen.append(current.key)
            if current.key == self.excluded_root:
                excluded = True
                break
            parent_key = current.parent_key
            if not parent_key or parent_key in seen:
                break
            try:
                current = self.lookup(parent_key)
            except RetrievalError as exc:
                logger.warning("Parent %s of %s could not be retrieved: %s", parent_key, issue.key, exc)
                if parent_key not in self.omitted:
                    self.omitted.append(parent_key)
                break
        for key in seen:
            self._cache[key] = excluded
        return excluded


def linked_closure(
    seed_key: str,
    lookup: IssueLookup,
    project_prefix: Union[str, Sequence[str]],
    exclude_subtree_root: Optional[str] = None,
    rules: Sequence[PrecedenceRule] = DEFAULT_PRECEDENCE_RULES,
    ignored_statuses=DEFAULT_IGNORED_STATUSES,
) -> ClosureResult:
    """Collect the project issues reachable from seed_key over precedence links.

    Only keys starting with project_prefix are visited. The excluded root and
    its descendants (by parent) are left out and not expanded. Keys the lookup
    cannot resolve are skipped and reported in ``omitted``.
    """
    prefixes = (project_prefix,) if isinstance(project_prefix, str) else tuple(project_prefix)
    result = ClosureResult()
    parents = _ParentChain(lookup, exclude_subtree_root, result.omitted)

    try:
        seed = lookup(seed_key)
    except RetrievalError as exc:
        logger.warning("Seed issue %s could not be retrieved: %s", seed_key, exc)
        result.omitted.append(seed_key)
        return result

    visited = {seed_key}
    queue = deque([seed])
    while queue:
        current = queue.popleft()
        neighbours = successors_of(current, rules, ignored_statuses) + predecessors_of(current, rules, ignored_statuses)
        for key in neighbours:
            if key in visited:
                continue
            visited.add(key)
            if not key.startswith(prefixes):
                continue
            try:
                linked = lookup(key)
            except RetrievalError as exc:
                logger.warning("Skipping %s linked from %s: %s", key, current.key, exc)
                result.omitted.append(key)
                continue
            if parents.is_excluded(linked):
                logger.info("Excluding %s: below %s", key, exclude_subtree_root)
                continue
            result.issues.append(linked)
            queue.append(linked)

    logger.info("Closure of %s: %d issues, %d omitted", seed_key, len(result.issues), len(result.omitted))
    return result

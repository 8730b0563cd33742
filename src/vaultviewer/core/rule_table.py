"""
Rule Tables

Sorted collections of PermissionRule, one per match partition (exact or
prefix). Paths are ordered with plain string comparison so lookups are
deterministic regardless of the order the source payload was iterated in.
"""

import bisect
import logging
from typing import Iterable, Iterator, List, Optional

from .errors import DuplicatePathError, FrozenTableError
from .rules import PermissionRule

logger = logging.getLogger(__name__)


class RuleTable:
    """
    Ordered sequence of rules, unique by path, sorted ascending.

    Tables are filled once while an ACLDocument is built and only read
    afterwards, so O(n) insertion is fine. The document freezes its tables
    when it is created; after that `insert` raises FrozenTableError.

    Tables compare by content and are not hashable.
    """

    __hash__ = None

    def __init__(self, rules: Optional[Iterable[PermissionRule]] = None):
        self._rules: List[PermissionRule] = []
        self._paths: List[str] = []
        self._frozen = False
        for rule in rules or ():
            self.insert(rule)

    @classmethod
    def from_rules(cls, rules: Iterable[PermissionRule]) -> "RuleTable":
        return cls(rules)

    def insert(self, rule: PermissionRule) -> None:
        """
        Insert a rule at its sorted position.

        Raises:
            DuplicatePathError: If the table already has a rule for rule.path
            FrozenTableError: If the table belongs to a published document
        """
        if self._frozen:
            raise FrozenTableError(f"Cannot insert {rule.path!r} into a frozen rule table")
        index = bisect.bisect_left(self._paths, rule.path)
        if index < len(self._paths) and self._paths[index] == rule.path:
            raise DuplicatePathError(rule.path)
        self._paths.insert(index, rule.path)
        self._rules.insert(index, rule)

    def find_exact(self, path: str) -> Optional[PermissionRule]:
        """Binary search for a rule whose path equals `path`"""
        index = bisect.bisect_left(self._paths, path)
        if index < len(self._paths) and self._paths[index] == path:
            return self._rules[index]
        return None

    def find_longest_prefix(self, path: str) -> Optional[PermissionRule]:
        """
        Find the rule with the longest path that is a prefix of `path`.

        Among equally long candidates the lexicographically greater path
        wins. With unique paths per table two distinct candidates of equal
        length cannot both prefix the same query, so in practice the
        longest match is unique.
        """
        # Probe candidate prefixes from longest to shortest; the first hit
        # is the longest match.
        for length in range(len(path), -1, -1):
            rule = self.find_exact(path[:length])
            if rule is not None:
                return rule
        return None

    def freeze(self) -> "RuleTable":
        """Reject further inserts"""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def paths(self) -> List[str]:
        """Rule paths in table order"""
        return list(self._paths)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[PermissionRule]:
        return iter(list(self._rules))

    def __getitem__(self, index: int) -> PermissionRule:
        return self._rules[index]

    def __bool__(self) -> bool:
        return bool(self._rules)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.find_exact(path) is not None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleTable):
            return NotImplemented
        return self._rules == other._rules

    def __repr__(self) -> str:
        return f"RuleTable({self._paths!r})"

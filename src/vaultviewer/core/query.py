"""
Path Queries

Answers "what can the caller do at path P, and why" against an ACLDocument.

Resolution order:
1. root document: everything allowed
2. exact rule
3. longest prefix rule
4. segment-wildcard rule (offline policies only)
5. nothing matched: deny by default
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from .capabilities import Capability, CapabilitySet
from .document import ACLDocument
from .rules import PermissionRule


class MatchSource(str, Enum):
    """Where a query answer came from"""
    ROOT = "root"
    EXACT = "exact"
    PREFIX = "prefix"
    WILDCARD = "wildcard"
    DEFAULT_DENY = "default_deny"


@dataclass(frozen=True)
class QueryResult:
    """Result of a path query"""
    path: str
    source: MatchSource
    rule: Optional[PermissionRule] = None

    @property
    def capabilities(self) -> Optional[CapabilitySet]:
        """
        Effective capability set.

        None when the matching rule exists but its permissions were never
        populated.
        """
        if self.source == MatchSource.ROOT:
            return CapabilitySet.all()
        if self.source == MatchSource.DEFAULT_DENY:
            return CapabilitySet.deny()
        return self.rule.capabilities

    @property
    def allowed(self) -> bool:
        """True unless unpopulated or carrying the deny marker"""
        caps = self.capabilities
        return caps is not None and not caps.has_capability(Capability.DENY)

    def allows(self, capability: Union[str, Capability, int]) -> bool:
        """Deny anywhere in the set overrides every other capability"""
        return self.allowed and self.capabilities.has_capability(capability)

    @property
    def capability_names(self) -> List[str]:
        caps = self.capabilities
        return [] if caps is None else caps.capability_names()

    @property
    def reason(self) -> str:
        if self.source == MatchSource.ROOT:
            return "root token: all capabilities granted"
        if self.source == MatchSource.DEFAULT_DENY:
            return f"no rule matches {self.path!r}: denied by default"
        if self.rule.capabilities is None:
            return f"{self.source.value} rule {self.rule.path!r} has no permissions populated"
        if self.rule.is_denied:
            return f"{self.source.value} rule {self.rule.path!r} explicitly denies"
        return f"{self.source.value} rule {self.rule.path!r} grants {', '.join(self.rule.capability_names)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "source": self.source.value,
            "rule": None if self.rule is None else self.rule.path,
            "allowed": self.allowed,
            "capabilities": self.capability_names,
            "reason": self.reason,
        }


def normalize_path(path: str) -> str:
    """Strip the leading slash; Vault paths are relative to /v1/"""
    return path[1:] if path.startswith("/") else path


def query_path(document: ACLDocument, path: str) -> QueryResult:
    """
    Resolve the rule that applies to `path`.

    Pure function of (document, path).
    """
    path = normalize_path(path)

    if document.root:
        return QueryResult(path=path, source=MatchSource.ROOT)

    rule = document.exact_rules.find_exact(path)
    if rule is not None:
        return QueryResult(path=path, source=MatchSource.EXACT, rule=rule)

    rule = document.prefix_rules.find_longest_prefix(path)
    if rule is not None:
        return QueryResult(path=path, source=MatchSource.PREFIX, rule=rule)

    rule = find_segment_wildcard(document.wildcard_rules, path)
    if rule is not None:
        return QueryResult(path=path, source=MatchSource.WILDCARD, rule=rule)

    return QueryResult(path=path, source=MatchSource.DEFAULT_DENY)


def segment_match(pattern: str, path: str, is_prefix: bool) -> bool:
    """
    Match a path against a pattern whose `+` segments match one segment.

    For prefix patterns the last pattern segment only needs to prefix the
    corresponding path segment, and deeper path segments are allowed.
    """
    pattern_segments = pattern.split("/")
    path_segments = path.split("/")

    if len(path_segments) < len(pattern_segments):
        return False
    if not is_prefix and len(path_segments) != len(pattern_segments):
        return False

    last = len(pattern_segments) - 1
    for index, segment in enumerate(pattern_segments):
        candidate = path_segments[index]
        if segment == "+":
            continue
        if is_prefix and index == last:
            if not candidate.startswith(segment):
                return False
        elif segment != candidate:
            return False
    return True


def find_segment_wildcard(rules: Iterable[PermissionRule], path: str) -> Optional[PermissionRule]:
    """
    Longest matching wildcard pattern.

    An exact pattern beats a prefix pattern of the same path; remaining
    ties go to the greater path.
    """
    best: Optional[PermissionRule] = None
    best_key = None
    for rule in rules:
        if not segment_match(rule.path, path, rule.is_prefix):
            continue
        key = (len(rule.path), not rule.is_prefix, rule.path)
        if best_key is None or key > best_key:
            best, best_key = rule, key
    return best

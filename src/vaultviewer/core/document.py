"""
ACL Documents

ACLDocument is the immutable unit handed to consumers: exact rules, prefix
rules and the root flag. ACLHandle holds the current document for one
Vault instance and swaps it wholesale on refresh.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from .errors import ACLError
from .rule_table import RuleTable
from .rules import PermissionRule

if TYPE_CHECKING:
    from .query import QueryResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ACLDocument:
    """
    Resolved ACL for one principal.

    `root` is orthogonal to the tables: a root document grants everything
    even when both tables are empty. `wildcard_rules` only carries rules
    with `+` path segments from offline policies, sorted by (path, is_prefix);
    resultant ACLs from the server never populate it.

    Both tables are frozen on construction. Documents compare by content
    and are not hashable.
    """

    __hash__ = None

    exact_rules: RuleTable = field(default_factory=RuleTable)
    prefix_rules: RuleTable = field(default_factory=RuleTable)
    root: bool = False
    wildcard_rules: Tuple[PermissionRule, ...] = ()

    def __post_init__(self):
        self.exact_rules.freeze()
        self.prefix_rules.freeze()

    @classmethod
    def empty(cls) -> "ACLDocument":
        """No rules, not root: everything is denied"""
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.root or self.exact_rules or self.prefix_rules or self.wildcard_rules)

    def query(self, path: str) -> "QueryResult":
        """What can the caller do at `path`, and why"""
        from .query import query_path
        return query_path(self, path)

    def exact_paths(self) -> List[str]:
        return self.exact_rules.paths()

    def prefix_paths(self) -> List[str]:
        return self.prefix_rules.paths()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in the shape of the resultant-acl payload"""
        return {
            "root": self.root,
            "exact_paths": {r.path: r.to_dict() for r in self.exact_rules},
            "glob_paths": {r.path: r.to_dict() for r in self.prefix_rules},
            "wildcard_paths": {
                (r.path + "*" if r.is_prefix else r.path): r.to_dict() for r in self.wildcard_rules
            },
        }


class ACLHandle:
    """
    Atomically swappable holder of the current ACLDocument.

    Readers always see one complete document. A failed refresh leaves the
    last good document in place.
    """

    def __init__(self, document: Optional[ACLDocument] = None):
        self._lock = threading.Lock()
        self._document = document if document is not None else ACLDocument.empty()
        self._version = 0 if document is None else 1

    @property
    def current(self) -> ACLDocument:
        return self._document

    @property
    def version(self) -> int:
        """Number of documents published so far (0 = still uninitialized)"""
        return self._version

    @property
    def is_populated(self) -> bool:
        return self._version > 0

    def publish(self, document: ACLDocument) -> int:
        """Replace the current document, returning the new version"""
        if not isinstance(document, ACLDocument):
            raise TypeError(f"Expected ACLDocument, got {type(document).__name__}")
        with self._lock:
            self._document = document
            self._version += 1
            version = self._version
        logger.debug(f"Published ACL document v{version}")
        return version

    def refresh(self, loader: Callable[[], ACLDocument]) -> ACLDocument:
        """
        Build a new document with `loader` and publish it.

        Raises:
            ACLError: Propagated from the loader; the previous document
                stays current
        """
        try:
            document = loader()
        except ACLError as e:
            logger.warning(f"ACL refresh failed, keeping document v{self._version}: {e}")
            raise
        self.publish(document)
        return document

"""
Resultant ACL Ingest

Converts the untyped payload returned by `sys/internal/ui/resultant-acl`
into an ACLDocument.

Payload shape:
```json
{
  "exact_paths": {"secret/data/app": {"capabilities": ["read", "list"]}},
  "glob_paths":  {"kv/": {"capabilities": ["read"]}},
  "root": false
}
```

Other top-level keys and other per-path attributes are informational and
ignored. Any structural problem aborts the whole ingest with
MalformedACLError; a partial document is never returned.
"""

import logging
from typing import Any, Mapping, Optional

from .capabilities import CapabilitySet
from .document import ACLDocument
from .errors import ACLNoDataError, MalformedACLError
from .rule_table import RuleTable
from .rules import PermissionRule

logger = logging.getLogger(__name__)

RESULTANT_ACL_PATH = "sys/internal/ui/resultant-acl"

EXACT_PATHS_KEY = "exact_paths"
GLOB_PATHS_KEY = "glob_paths"
ROOT_KEY = "root"
CAPABILITIES_KEY = "capabilities"


def ingest_resultant_acl(
    payload: Optional[Mapping[str, Any]],
    allow_empty: bool = True,
) -> ACLDocument:
    """
    Build an ACLDocument from a resultant-acl payload.

    Args:
        payload: The `data` section of the response, or None when the
            server returned nothing
        allow_empty: Treat a missing payload as "no rules, not root"
            (default) instead of raising ACLNoDataError

    Returns:
        A fully populated ACLDocument

    Raises:
        MalformedACLError: If the payload violates the expected shape
        ACLNoDataError: If payload is None and allow_empty is False
    """
    if payload is None:
        if not allow_empty:
            raise ACLNoDataError("Resultant ACL read returned no data")
        logger.info("Resultant ACL returned no data, using empty document")
        return ACLDocument.empty()

    if not isinstance(payload, Mapping):
        raise MalformedACLError(
            f"Resultant ACL payload must be a mapping, got {type(payload).__name__}"
        )

    root = False
    if ROOT_KEY in payload:
        value = payload[ROOT_KEY]
        if not isinstance(value, bool):
            raise MalformedACLError(
                f"'{ROOT_KEY}' must be a boolean, got {type(value).__name__}",
                key=ROOT_KEY,
            )
        root = value

    exact_rules = _build_table(payload.get(EXACT_PATHS_KEY), EXACT_PATHS_KEY, is_prefix=False)
    prefix_rules = _build_table(payload.get(GLOB_PATHS_KEY), GLOB_PATHS_KEY, is_prefix=True)

    for key in payload:
        if key not in (EXACT_PATHS_KEY, GLOB_PATHS_KEY, ROOT_KEY):
            logger.debug(f"Ignoring resultant ACL field: {key}")

    logger.info(
        f"Ingested resultant ACL: root={root}, "
        f"exact={len(exact_rules)}, prefix={len(prefix_rules)}"
    )
    return ACLDocument(exact_rules=exact_rules, prefix_rules=prefix_rules, root=root)


def _build_table(section: Any, key: str, is_prefix: bool) -> RuleTable:
    """Build one rule table from an `exact_paths` / `glob_paths` section"""
    table = RuleTable()
    if section is None:
        return table

    if not isinstance(section, Mapping):
        raise MalformedACLError(
            f"'{key}' must be a mapping of path to attributes, got {type(section).__name__}",
            key=key,
        )

    for path, attributes in section.items():
        if not isinstance(path, str):
            raise MalformedACLError(f"'{key}' has a non-string path: {path!r}", key=key)
        # A glob of "" is what a `path "*"` policy resolves to
        if path == "" and not is_prefix:
            raise MalformedACLError(f"'{key}' has an empty path", key=key)

        logger.debug(f"parsing {key} {path}: {attributes}")
        table.insert(_rule_from_attributes(path, attributes, key, is_prefix))

    return table


def _rule_from_attributes(path: str, attributes: Any, key: str, is_prefix: bool) -> PermissionRule:
    if not isinstance(attributes, Mapping):
        raise MalformedACLError(
            f"Attributes for '{key}' path {path!r} must be a mapping, "
            f"got {type(attributes).__name__}",
            key=key,
        )

    names = attributes.get(CAPABILITIES_KEY)
    if names is None:
        names = []
    elif not isinstance(names, list) or not all(isinstance(n, str) for n in names):
        raise MalformedACLError(
            f"'{CAPABILITIES_KEY}' for '{key}' path {path!r} must be a list of strings",
            key=key,
        )

    for attribute in attributes:
        if attribute != CAPABILITIES_KEY:
            logger.debug(f"Ignoring attribute {attribute!r} on {path!r}")

    return PermissionRule(
        path=path,
        capabilities=CapabilitySet.from_names(names),
        is_prefix=is_prefix,
    )

"""
vaultviewer Core

The ACL permission model: capability bitmasks, per-path rules, sorted rule
tables, documents, resultant-ACL ingest, offline policies and path queries.
"""

from .capabilities import (
    Capability,
    CapabilitySet,
    CAPABILITY_BITS,
    DENY_MASK,
    ALL_CAPABILITIES_MASK,
    LEGACY_POLICY_CAPABILITIES,
)
from .rules import (
    PermissionRule,
    RuleStyle,
    ControlGroup,
    ControlGroupFactor,
    IdentityFactor,
)
from .rule_table import RuleTable
from .document import ACLDocument, ACLHandle
from .ingest import ingest_resultant_acl, RESULTANT_ACL_PATH
from .query import query_path, QueryResult, MatchSource
from .policy import Policy, PolicyType, parse_policy, load_policy_file, build_acl
from .errors import (
    ACLError,
    MalformedACLError,
    ACLNoDataError,
    DuplicatePathError,
    FrozenTableError,
    PolicyParseError,
)

__all__ = [
    # Capabilities
    "Capability",
    "CapabilitySet",
    "CAPABILITY_BITS",
    "DENY_MASK",
    "ALL_CAPABILITIES_MASK",
    "LEGACY_POLICY_CAPABILITIES",
    # Rules
    "PermissionRule",
    "RuleStyle",
    "ControlGroup",
    "ControlGroupFactor",
    "IdentityFactor",
    "RuleTable",
    # Documents
    "ACLDocument",
    "ACLHandle",
    "ingest_resultant_acl",
    "RESULTANT_ACL_PATH",
    "query_path",
    "QueryResult",
    "MatchSource",
    # Offline policies
    "Policy",
    "PolicyType",
    "parse_policy",
    "load_policy_file",
    "build_acl",
    # Errors
    "ACLError",
    "MalformedACLError",
    "ACLNoDataError",
    "DuplicatePathError",
    "FrozenTableError",
    "PolicyParseError",
]

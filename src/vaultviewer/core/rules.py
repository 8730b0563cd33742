"""
Permission Rules

The resolved access grant for one path: capability set plus the optional
constraints a Vault policy may attach to it (wrapping TTL bounds, parameter
allow/deny lists, required parameters, MFA, control groups).
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from .capabilities import CapabilitySet


class RuleStyle(str, Enum):
    """
    Presentation classification of a rule.

    Lets renderers colour a rule without re-deriving mask semantics.
    """
    GRANT = "grant"              # Populated, anything other than deny-only
    DENY = "deny"                # Populated, mask is exactly deny
    UNPOPULATED = "unpopulated"  # No capability set attached


@dataclass(frozen=True)
class IdentityFactor:
    """Approvers required from identity groups"""
    group_ids: Tuple[str, ...] = ()
    group_names: Tuple[str, ...] = ()
    approvals_required: int = 0


@dataclass(frozen=True)
class ControlGroupFactor:
    """One named approval factor of a control group"""
    name: str
    identity: Optional[IdentityFactor] = None
    controlled_capabilities: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ControlGroup:
    """Approval workflow gate: TTL plus one or more named factors"""
    ttl: timedelta = timedelta(0)
    factors: Tuple[ControlGroupFactor, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ttl": int(self.ttl.total_seconds()),
            "factors": {
                factor.name: {
                    "identity": None if factor.identity is None else {
                        "group_ids": list(factor.identity.group_ids),
                        "group_names": list(factor.identity.group_names),
                        "approvals": factor.identity.approvals_required,
                    },
                    "controlled_capabilities": list(factor.controlled_capabilities),
                }
                for factor in self.factors
            },
        }


@dataclass(frozen=True)
class PermissionRule:
    """
    Resolved permissions for exactly one path.

    `capabilities` is None when permissions were never populated, which is
    not the same thing as an explicit deny-only set. Zero wrapping TTLs mean
    unset. A parameter absent from `allowed_parameters` is unconstrained.
    Rules carry dict fields and are not hashable.
    """

    __hash__ = None

    path: str
    capabilities: Optional[CapabilitySet] = None
    min_wrapping_ttl: timedelta = timedelta(0)
    max_wrapping_ttl: timedelta = timedelta(0)
    allowed_parameters: Dict[str, Tuple[Any, ...]] = field(default_factory=dict)
    denied_parameters: Dict[str, Tuple[Any, ...]] = field(default_factory=dict)
    required_parameters: FrozenSet[str] = frozenset()
    mfa_methods: Tuple[str, ...] = ()
    control_group: Optional[ControlGroup] = None
    is_prefix: bool = False
    has_segment_wildcards: bool = False

    def __post_init__(self):
        if not isinstance(self.path, str):
            raise TypeError(f"Rule path must be a string, got {type(self.path).__name__}")

    @property
    def is_populated(self) -> bool:
        return self.capabilities is not None

    @property
    def is_denied(self) -> bool:
        """Populated with an explicit deny-only mask"""
        return self.capabilities is not None and self.capabilities.is_deny_only()

    @property
    def capability_names(self) -> List[str]:
        if self.capabilities is None:
            return []
        return list(self.capabilities.names)

    @property
    def style(self) -> RuleStyle:
        if self.capabilities is None:
            return RuleStyle.UNPOPULATED
        if self.capabilities.is_deny_only():
            return RuleStyle.DENY
        return RuleStyle.GRANT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary"""
        return {
            "path": self.path,
            "capabilities": None if self.capabilities is None else list(self.capabilities.names),
            "capabilities_bitmap": None if self.capabilities is None else self.capabilities.mask,
            "min_wrapping_ttl": int(self.min_wrapping_ttl.total_seconds()),
            "max_wrapping_ttl": int(self.max_wrapping_ttl.total_seconds()),
            "allowed_parameters": {k: list(v) for k, v in self.allowed_parameters.items()},
            "denied_parameters": {k: list(v) for k, v in self.denied_parameters.items()},
            "required_parameters": sorted(self.required_parameters),
            "mfa_methods": list(self.mfa_methods),
            "control_group": None if self.control_group is None else self.control_group.to_dict(),
            "is_prefix": self.is_prefix,
            "has_segment_wildcards": self.has_segment_wildcards,
        }

"""
Capability Sets

Bit-encoded representation of a Vault capability list.

Each capability in the fixed vocabulary owns one reserved bit of a 32-bit
mask:

    deny=1  create=2  read=4  update=8  delete=16  list=32  sudo=64  patch=128

`root` is only meaningful at the document level and has no bit.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, List, Mapping, Tuple, Union


class Capability(str, Enum):
    """Named capabilities understood by the ACL model"""
    DENY = "deny"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"
    SUDO = "sudo"
    PATCH = "patch"
    ROOT = "root"  # Document-level superuser marker, never inside a set


CAPABILITY_BITS: Mapping[str, int] = MappingProxyType({
    Capability.DENY.value: 1 << 0,
    Capability.CREATE.value: 1 << 1,
    Capability.READ.value: 1 << 2,
    Capability.UPDATE.value: 1 << 3,
    Capability.DELETE.value: 1 << 4,
    Capability.LIST.value: 1 << 5,
    Capability.SUDO.value: 1 << 6,
    Capability.PATCH.value: 1 << 7,
})

DENY_MASK = CAPABILITY_BITS[Capability.DENY.value]

ALL_CAPABILITIES_MASK = 0
for _bit in CAPABILITY_BITS.values():
    if _bit != DENY_MASK:
        ALL_CAPABILITIES_MASK |= _bit
del _bit

# Pre-capability policy syntax: `policy = "write"` and friends
LEGACY_POLICY_CAPABILITIES: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "deny": ("deny",),
    "read": ("read", "list"),
    "write": ("read", "list", "create", "update", "delete"),
    "sudo": ("read", "list", "create", "update", "delete", "sudo"),
})


def capability_bit(capability: Union[str, Capability, int]) -> int:
    """Resolve a capability name, enum member or raw bit to its bit value"""
    if isinstance(capability, Capability):
        return CAPABILITY_BITS.get(capability.value, 0)
    if isinstance(capability, str):
        return CAPABILITY_BITS.get(capability, 0)
    return int(capability)


@dataclass(frozen=True)
class CapabilitySet:
    """
    Immutable capability list plus its derived mask.

    The mask is authoritative for capability tests. `names` keeps the
    non-blank names exactly as received, including ones this vocabulary
    does not know about.
    """
    names: Tuple[str, ...] = ()
    mask: int = DENY_MASK

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "CapabilitySet":
        """
        Build a set from capability name strings.

        Blank names are dropped. Unknown names are kept in `names` but add
        no bit. A set with no recognized bits collapses to deny.
        """
        retained = tuple(name for name in names if name != "")
        mask = 0
        for name in retained:
            mask |= CAPABILITY_BITS.get(name, 0)
        if mask == 0:
            mask = DENY_MASK
        return cls(names=retained, mask=mask)

    @classmethod
    def all(cls) -> "CapabilitySet":
        """Every capability except deny (what a root token holds)"""
        return cls(
            names=tuple(name for name, bit in CAPABILITY_BITS.items() if bit != DENY_MASK),
            mask=ALL_CAPABILITIES_MASK,
        )

    @classmethod
    def deny(cls) -> "CapabilitySet":
        return cls(names=(Capability.DENY.value,), mask=DENY_MASK)

    def has_capability(self, capability: Union[str, Capability, int]) -> bool:
        """Test the mask for a capability bit"""
        bit = capability_bit(capability)
        return bit != 0 and (self.mask & bit) == bit

    def is_deny_only(self) -> bool:
        return self.mask == DENY_MASK

    def capability_names(self) -> List[str]:
        """Known capabilities present in the mask, in bit order"""
        return [name for name, bit in CAPABILITY_BITS.items() if self.mask & bit]

    def union(self, other: "CapabilitySet") -> "CapabilitySet":
        """
        Merge two sets, with deny taking precedence.

        Used when several policies grant the same path.
        """
        if (self.mask | other.mask) & DENY_MASK:
            return CapabilitySet.deny()
        names = self.names + tuple(n for n in other.names if n not in self.names)
        return CapabilitySet(names=names, mask=self.mask | other.mask)

    def __contains__(self, capability: Union[str, Capability, int]) -> bool:
        return self.has_capability(capability)

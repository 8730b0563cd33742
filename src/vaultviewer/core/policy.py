"""
Offline Policy Documents

Parses Vault ACL policies written in the JSON (or equivalent YAML) policy
syntax and merges one or more of them into an ACLDocument, so policies can
be inspected without a live server.

Example policy (JSON syntax):
```json
{
  "path": {
    "secret/data/app": {"capabilities": ["read", "list"]},
    "secret/data/*": {
      "capabilities": ["create", "update"],
      "max_wrapping_ttl": "1h",
      "allowed_parameters": {"ttl": ["30m", "1h"]}
    },
    "secret/+/config": {"policy": "read"}
  }
}
```

Path syntax:
- A trailing `*` makes the rule a prefix rule
- A `+` segment matches exactly one path segment
"""

import logging
import re
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import yaml

from .capabilities import Capability, CapabilitySet, LEGACY_POLICY_CAPABILITIES
from .document import ACLDocument
from .errors import PolicyParseError
from .rule_table import RuleTable
from .rules import ControlGroup, ControlGroupFactor, IdentityFactor, PermissionRule

logger = logging.getLogger(__name__)

ROOT_POLICY_NAME = "root"

# Go-style durations: "90s", "1h30m", "1.5h", plus Vault's "d"
_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ms|s|m|h|d)')
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


class PolicyType(str, Enum):
    """Kind of Vault policy"""
    ACL = "acl"
    RGP = "rgp"
    EGP = "egp"
    TOKEN = "token"  # Resolved to ACL or RGP by lookup


@dataclass(frozen=True)
class Policy:
    """A named policy composed of path rules"""
    name: str
    paths: Tuple[PermissionRule, ...] = ()
    raw: str = ""
    type: PolicyType = PolicyType.ACL
    templated: bool = False

    @property
    def is_root(self) -> bool:
        return self.name == ROOT_POLICY_NAME


def parse_duration(value: Any) -> timedelta:
    """
    Parse a Vault duration.

    Accepts integer seconds, numeric strings (seconds) and Go-style duration
    strings such as "1h30m".

    Raises:
        ValueError: If the value cannot be parsed or does not fit a timedelta
    """
    try:
        return _to_timedelta(value)
    except OverflowError as e:
        raise ValueError(f"Duration out of range: {value!r}") from e


def _to_timedelta(value: Any) -> timedelta:
    if value is None or value == "":
        return timedelta(0)
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration: {value!r}")

    text = value.strip()
    if re.fullmatch(r'\d+', text):
        return timedelta(seconds=int(text))

    position = 0
    total = timedelta(0)
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            raise ValueError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position == 0 or position != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


def parse_policy(name: str, document: Mapping[str, Any], raw: str = "") -> Policy:
    """
    Parse a policy document into a Policy.

    Args:
        name: Policy name
        document: Decoded policy, `{"path": {<path>: {<attributes>}}}`
        raw: Original policy text, kept for display

    Raises:
        PolicyParseError: If the document is malformed
    """
    if not isinstance(document, Mapping):
        raise PolicyParseError("policy document must be a mapping", policy=name)

    rules: List[PermissionRule] = []
    for path, attributes in _iter_blocks(document.get("path"), name, "path"):
        rules.append(_parse_path_rule(name, path, attributes))

    templated = any("{{" in rule.path for rule in rules)
    logger.debug(f"Parsed policy {name}: {len(rules)} paths, templated={templated}")

    return Policy(name=name, paths=tuple(rules), raw=raw, templated=templated)


def load_policy_file(path: Union[str, Path]) -> Policy:
    """
    Load a policy from a JSON or YAML file.

    The policy is named after the file stem unless the document has a
    top-level `name` key.

    Raises:
        FileNotFoundError: If the file doesn't exist
        PolicyParseError: If the file is not a valid policy
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Policy file not found: {path}")

    raw = path.read_text()
    try:
        document = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise PolicyParseError(f"unable to decode: {e}", policy=path.stem) from e

    if document is None:
        document = {}
    if not isinstance(document, Mapping):
        raise PolicyParseError("policy document must be a mapping", policy=path.stem)

    name = document.get("name") or path.stem
    logger.info(f"Loading policy {name} from {path}")
    return parse_policy(str(name), document, raw=raw)


def build_acl(policies: Iterable[Policy]) -> ACLDocument:
    """
    Merge policies into a single ACLDocument.

    - A policy named `root` makes the document root
    - Rules for the same path and partition are merged; deny always wins
    - Policies are merged in name order, so the result does not depend on
      the order they were given in
    """
    root = False
    merged: Dict[Tuple[str, str, bool], PermissionRule] = {}

    for policy in sorted(policies, key=lambda p: p.name):
        if policy.type not in (PolicyType.ACL, PolicyType.TOKEN):
            logger.info(f"Skipping non-ACL policy {policy.name} ({policy.type.value})")
            continue
        if policy.is_root:
            root = True
        for rule in policy.paths:
            key = (_partition(rule), rule.path, rule.is_prefix)
            existing = merged.get(key)
            merged[key] = rule if existing is None else merge_rules(existing, rule)

    exact_rules = RuleTable()
    prefix_rules = RuleTable()
    wildcard_rules: List[PermissionRule] = []
    for (partition, _path, _is_prefix), rule in merged.items():
        if partition == "wildcard":
            wildcard_rules.append(rule)
        elif partition == "prefix":
            prefix_rules.insert(rule)
        else:
            exact_rules.insert(rule)
    wildcard_rules.sort(key=lambda r: (r.path, r.is_prefix))

    logger.info(
        f"Built ACL from policies: root={root}, exact={len(exact_rules)}, "
        f"prefix={len(prefix_rules)}, wildcard={len(wildcard_rules)}"
    )
    return ACLDocument(
        exact_rules=exact_rules,
        prefix_rules=prefix_rules,
        root=root,
        wildcard_rules=tuple(wildcard_rules),
    )


def merge_rules(existing: PermissionRule, new: PermissionRule) -> PermissionRule:
    """
    Combine two grants for the same path.

    Deny wins outright. Otherwise capabilities, parameter maps, required
    parameters and MFA methods are unioned, the lowest non-zero min wrapping
    TTL and the highest max wrapping TTL are kept, and the first control
    group wins.
    """
    if existing.is_denied:
        return existing
    if new.is_denied:
        return new

    if existing.capabilities is None:
        capabilities = new.capabilities
    elif new.capabilities is None:
        capabilities = existing.capabilities
    else:
        capabilities = existing.capabilities.union(new.capabilities)

    if capabilities is not None and capabilities.is_deny_only():
        return PermissionRule(
            path=existing.path,
            capabilities=capabilities,
            is_prefix=existing.is_prefix,
            has_segment_wildcards=existing.has_segment_wildcards,
        )

    return replace(
        existing,
        capabilities=capabilities,
        min_wrapping_ttl=_lowest_set(existing.min_wrapping_ttl, new.min_wrapping_ttl),
        max_wrapping_ttl=max(existing.max_wrapping_ttl, new.max_wrapping_ttl),
        allowed_parameters=_merge_parameters(existing.allowed_parameters, new.allowed_parameters),
        denied_parameters=_merge_parameters(existing.denied_parameters, new.denied_parameters),
        required_parameters=existing.required_parameters | new.required_parameters,
        mfa_methods=existing.mfa_methods + tuple(
            m for m in new.mfa_methods if m not in existing.mfa_methods
        ),
        control_group=existing.control_group or new.control_group,
    )


def _partition(rule: PermissionRule) -> str:
    if rule.has_segment_wildcards:
        return "wildcard"
    return "prefix" if rule.is_prefix else "exact"


def _lowest_set(a: timedelta, b: timedelta) -> timedelta:
    if not a:
        return b
    if not b:
        return a
    return min(a, b)


def _merge_parameters(
    a: Mapping[str, Tuple[Any, ...]],
    b: Mapping[str, Tuple[Any, ...]],
) -> Dict[str, Tuple[Any, ...]]:
    merged = {k: tuple(v) for k, v in a.items()}
    for key, values in b.items():
        current = merged.get(key, ())
        merged[key] = current + tuple(v for v in values if v not in current)
    return merged


def _iter_blocks(value: Any, policy: str, block: str) -> List[Tuple[str, Any]]:
    """
    Flatten a labelled block into (label, body) pairs.

    HCL's JSON form allows either `{"label": {...}}` or a list of such
    single-label mappings for repeated blocks.
    """
    if value is None:
        return []
    if isinstance(value, Mapping):
        return list(value.items())
    if isinstance(value, list):
        pairs: List[Tuple[str, Any]] = []
        for item in value:
            if not isinstance(item, Mapping):
                raise PolicyParseError(f"'{block}' entries must be mappings", policy=policy)
            pairs.extend(item.items())
        return pairs
    raise PolicyParseError(f"'{block}' must be a mapping", policy=policy)


def _parse_path_rule(policy: str, path: Any, attributes: Any) -> PermissionRule:
    if not isinstance(path, str):
        raise PolicyParseError(f"path must be a string, got {path!r}", policy=policy)
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, Mapping):
        raise PolicyParseError("path attributes must be a mapping", policy=policy, path=path)

    rule_path = path[1:] if path.startswith("/") else path
    is_prefix = rule_path.endswith("*")
    if is_prefix:
        rule_path = rule_path[:-1]
    has_segment_wildcards = "+" in rule_path.split("/")

    names = _string_list(attributes.get("capabilities"), policy, path, "capabilities")
    legacy = attributes.get("policy")
    if legacy is not None:
        if legacy not in LEGACY_POLICY_CAPABILITIES:
            raise PolicyParseError(f"invalid legacy policy {legacy!r}", policy=policy, path=path)
        names = names + [n for n in LEGACY_POLICY_CAPABILITIES[legacy] if n not in names]

    try:
        min_ttl = parse_duration(attributes.get("min_wrapping_ttl"))
        max_ttl = parse_duration(attributes.get("max_wrapping_ttl"))
    except ValueError as e:
        raise PolicyParseError(str(e), policy=policy, path=path) from e
    if max_ttl and min_ttl and max_ttl < min_ttl:
        raise PolicyParseError(
            "max_wrapping_ttl cannot be less than min_wrapping_ttl", policy=policy, path=path
        )

    capabilities = CapabilitySet.from_names(names)
    if capabilities.has_capability(Capability.DENY):
        # Constraints are meaningless on a denied path
        return PermissionRule(
            path=rule_path,
            capabilities=capabilities,
            is_prefix=is_prefix,
            has_segment_wildcards=has_segment_wildcards,
        )

    return PermissionRule(
        path=rule_path,
        capabilities=capabilities,
        min_wrapping_ttl=min_ttl,
        max_wrapping_ttl=max_ttl,
        allowed_parameters=_parameter_map(attributes.get("allowed_parameters"), policy, path),
        denied_parameters=_parameter_map(attributes.get("denied_parameters"), policy, path),
        required_parameters=frozenset(
            _string_list(attributes.get("required_parameters"), policy, path, "required_parameters")
        ),
        mfa_methods=tuple(_string_list(attributes.get("mfa_methods"), policy, path, "mfa_methods")),
        control_group=_parse_control_group(attributes.get("control_group"), policy, path),
        is_prefix=is_prefix,
        has_segment_wildcards=has_segment_wildcards,
    )


def _string_list(value: Any, policy: str, path: str, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise PolicyParseError(f"'{field_name}' must be a list of strings", policy=policy, path=path)
    return list(value)


def _parameter_map(value: Any, policy: str, path: str) -> Dict[str, Tuple[Any, ...]]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise PolicyParseError("parameter constraints must be a mapping", policy=policy, path=path)
    params: Dict[str, Tuple[Any, ...]] = {}
    for key, values in value.items():
        if values is None:
            params[str(key)] = ()
        elif isinstance(values, list):
            params[str(key)] = tuple(values)
        else:
            params[str(key)] = (values,)
    return params


def _parse_control_group(value: Any, policy: str, path: str) -> Optional[ControlGroup]:
    if value is None:
        return None
    if isinstance(value, list):
        # Repeated-block JSON form; only one control group is allowed
        if len(value) != 1:
            raise PolicyParseError("only one control_group block is allowed", policy=policy, path=path)
        value = value[0]
    if not isinstance(value, Mapping):
        raise PolicyParseError("control_group must be a mapping", policy=policy, path=path)

    try:
        ttl = parse_duration(value.get("ttl"))
    except ValueError as e:
        raise PolicyParseError(f"control_group: {e}", policy=policy, path=path) from e

    factors: List[ControlGroupFactor] = []
    for factor_name, body in _iter_blocks(value.get("factor"), policy, "factor"):
        if not isinstance(body, Mapping):
            raise PolicyParseError(f"factor {factor_name!r} must be a mapping", policy=policy, path=path)

        identity = None
        identity_data = body.get("identity")
        if isinstance(identity_data, list) and len(identity_data) == 1:
            identity_data = identity_data[0]
        if identity_data is not None:
            if not isinstance(identity_data, Mapping):
                raise PolicyParseError(
                    f"factor {factor_name!r} identity must be a mapping", policy=policy, path=path
                )
            approvals = identity_data.get("approvals", 0)
            if isinstance(approvals, bool) or not isinstance(approvals, int) or approvals < 0:
                raise PolicyParseError(
                    f"factor {factor_name!r} approvals must be a non-negative integer",
                    policy=policy, path=path,
                )
            identity = IdentityFactor(
                group_ids=tuple(_string_list(identity_data.get("group_ids"), policy, path, "group_ids")),
                group_names=tuple(_string_list(identity_data.get("group_names"), policy, path, "group_names")),
                approvals_required=approvals,
            )

        factors.append(ControlGroupFactor(
            name=str(factor_name),
            identity=identity,
            controlled_capabilities=tuple(_string_list(
                body.get("controlled_capabilities"), policy, path, "controlled_capabilities"
            )),
        ))

    if not factors:
        raise PolicyParseError("control_group requires at least one factor", policy=policy, path=path)

    return ControlGroup(ttl=ttl, factors=tuple(factors))

"""
Info Views

Text for the info panel shown next to the tree: connection details for an
instance, rule details for a path, and answers to path queries.
"""

import json
from typing import Optional

from ..core.query import QueryResult
from .tree import NodeKind, TreeNode


def format_node_info(node: Optional[TreeNode], reveal_token: bool = False) -> str:
    """Describe the selected node"""
    if node is None:
        return "Nothing Selected"

    if node.kind == NodeKind.CONNECTION and node.instance is not None:
        return json.dumps(node.instance.connection_info(reveal_token=reveal_token), indent=2)

    lines = [
        f"Displayname      : {node.label}",
        f"Node Type        : {node.kind.value}",
    ]
    if node.instance is not None:
        lines.append(f"Instance         : {node.instance.address}")

    rule = node.rule
    if rule is not None:
        lines.append(f"Path Permissions : {rule.path}")
        lines.append(f"Match            : {'prefix' if rule.is_prefix else 'exact'}")
        if rule.capabilities is None:
            lines.append("Capabilities     : (not populated)")
        else:
            lines.append(f"Capabilities     : {', '.join(rule.capability_names) or '(none)'}")
            lines.append(f"Bitmap           : {rule.capabilities.mask:#010b}")
        lines.append(f"Classification   : {rule.style.value}")
        if rule.min_wrapping_ttl:
            lines.append(f"Min Wrapping TTL : {rule.min_wrapping_ttl}")
        if rule.max_wrapping_ttl:
            lines.append(f"Max Wrapping TTL : {rule.max_wrapping_ttl}")
        if rule.allowed_parameters:
            lines.append(f"Allowed Params   : {json.dumps({k: list(v) for k, v in rule.allowed_parameters.items()})}")
        if rule.denied_parameters:
            lines.append(f"Denied Params    : {json.dumps({k: list(v) for k, v in rule.denied_parameters.items()})}")
        if rule.required_parameters:
            lines.append(f"Required Params  : {', '.join(sorted(rule.required_parameters))}")
        if rule.mfa_methods:
            lines.append(f"MFA Methods      : {', '.join(rule.mfa_methods)}")
        if rule.control_group is not None:
            lines.append(f"Control Group    : {json.dumps(rule.control_group.to_dict())}")

    return "\n".join(lines)


def format_query_result(result: QueryResult, instance_name: Optional[str] = None) -> str:
    """One-line answer plus the effective capabilities"""
    verdict = "ALLOW" if result.allowed else "DENY"
    prefix = f"[{instance_name}] " if instance_name else ""
    capabilities = ", ".join(result.capability_names) or "-"
    return f"{prefix}{verdict} {result.path}: {result.reason}\n    capabilities: {capabilities}"

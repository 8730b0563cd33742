"""
vaultviewer UI

Text rendering of the instance/ACL hierarchy and of node details.
"""

from .tree import (
    TreeNode,
    NodeKind,
    NodeColor,
    build_tree,
    build_instance_node,
    build_acl_node,
    build_rule_node,
    render_tree,
)
from .viewer import format_node_info, format_query_result

__all__ = [
    "TreeNode",
    "NodeKind",
    "NodeColor",
    "build_tree",
    "build_instance_node",
    "build_acl_node",
    "build_rule_node",
    "render_tree",
    "format_node_info",
    "format_query_result",
]

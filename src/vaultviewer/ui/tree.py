"""
ACL Tree

Builds a navigable hierarchy of Vault instances and their ACLs and renders
it as text:

    Vault Instances
    └── https://vault.example.com:8200
        ├── Connection
        └── ACL
            ├── ExactRules
            │   └── secret/data/app
            │       └── Capabilities
            │           ├── read
            │           └── list
            └── PrefixRules

Colours follow the rule classification: tables are red when empty, rules
without permissions are red and unselectable, and a Capabilities node is red
for deny-only sets and yellow otherwise.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, List, Optional, TYPE_CHECKING

from ..core.document import ACLDocument
from ..core.rules import PermissionRule, RuleStyle

if TYPE_CHECKING:
    from ..client.vault import VaultInstance


class NodeKind(str, Enum):
    """What a tree node represents"""
    INSTANCES = "instances"
    INSTANCE = "instance"
    CONNECTION = "connection"
    ACL = "acl"
    ROOT_GRANT = "root"
    EXACT_RULES = "exact_rules"
    PREFIX_RULES = "prefix_rules"
    WILDCARD_RULES = "wildcard_rules"
    RULE = "rule"
    CAPABILITIES = "capabilities"
    CAPABILITY = "capability"


class NodeColor(str, Enum):
    GREEN = "green"
    RED = "red"
    WHITE = "white"
    YELLOW = "yellow"


ANSI_COLORS = {
    NodeColor.GREEN: "\033[32m",
    NodeColor.RED: "\033[31m",
    NodeColor.WHITE: "\033[37m",
    NodeColor.YELLOW: "\033[33m",
}
ANSI_RESET = "\033[0m"


@dataclass
class TreeNode:
    """One node of the ACL hierarchy"""
    label: str
    kind: NodeKind
    color: NodeColor = NodeColor.WHITE
    selectable: bool = True
    children: List["TreeNode"] = field(default_factory=list)
    rule: Optional[PermissionRule] = None
    instance: Optional["VaultInstance"] = None

    def add(self, child: "TreeNode") -> "TreeNode":
        self.children.append(child)
        return child

    def walk(self) -> Iterator["TreeNode"]:
        """Depth-first, pre-order"""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, label: str) -> Optional["TreeNode"]:
        for node in self.walk():
            if node.label == label:
                return node
        return None


def rule_label(rule: PermissionRule) -> str:
    """Path as written in a policy: prefix rules get their trailing `*` back"""
    return f"{rule.path}*" if rule.is_prefix else rule.path


def build_rule_node(rule: PermissionRule, instance: Optional["VaultInstance"] = None) -> TreeNode:
    if rule.style == RuleStyle.UNPOPULATED:
        return TreeNode(
            label=rule_label(rule),
            kind=NodeKind.RULE,
            color=NodeColor.RED,
            selectable=False,
            rule=rule,
            instance=instance,
        )

    node = TreeNode(
        label=rule_label(rule),
        kind=NodeKind.RULE,
        color=NodeColor.GREEN,
        rule=rule,
        instance=instance,
    )
    names = rule.capability_names
    capabilities = node.add(TreeNode(
        label="Capabilities",
        kind=NodeKind.CAPABILITIES,
        color=NodeColor.RED if rule.style == RuleStyle.DENY or not names else NodeColor.YELLOW,
        rule=rule,
        instance=instance,
    ))
    for name in names:
        capabilities.add(TreeNode(
            label=name,
            kind=NodeKind.CAPABILITY,
            color=capabilities.color,
            selectable=False,
            rule=rule,
            instance=instance,
        ))
    return node


def _build_table_node(
    label: str,
    kind: NodeKind,
    rules: Iterable[PermissionRule],
    instance: Optional["VaultInstance"],
) -> TreeNode:
    rules = list(rules)
    node = TreeNode(
        label=label,
        kind=kind,
        color=NodeColor.WHITE if rules else NodeColor.RED,
        instance=instance,
    )
    for rule in rules:
        node.add(build_rule_node(rule, instance))
    return node


def build_acl_node(document: ACLDocument, instance: Optional["VaultInstance"] = None) -> TreeNode:
    node = TreeNode(label="ACL", kind=NodeKind.ACL, instance=instance)
    if document.root:
        node.add(TreeNode(
            label="root (all paths, all capabilities)",
            kind=NodeKind.ROOT_GRANT,
            color=NodeColor.GREEN,
            selectable=False,
            instance=instance,
        ))
    node.add(_build_table_node("ExactRules", NodeKind.EXACT_RULES, document.exact_rules, instance))
    node.add(_build_table_node("PrefixRules", NodeKind.PREFIX_RULES, document.prefix_rules, instance))
    if document.wildcard_rules:
        node.add(_build_table_node(
            "WildcardRules", NodeKind.WILDCARD_RULES, document.wildcard_rules, instance
        ))
    return node


def build_instance_node(instance: "VaultInstance") -> TreeNode:
    node = TreeNode(
        label=instance.display_name,
        kind=NodeKind.INSTANCE,
        color=NodeColor.GREEN,
        instance=instance,
    )
    node.add(TreeNode(label="Connection", kind=NodeKind.CONNECTION, instance=instance))
    node.add(build_acl_node(instance.document, instance))
    return node


def build_tree(instances: Iterable["VaultInstance"]) -> TreeNode:
    root = TreeNode(label="Vault Instances", kind=NodeKind.INSTANCES, color=NodeColor.GREEN)
    for instance in instances:
        root.add(build_instance_node(instance))
    return root


def render_tree(node: TreeNode, color: bool = True) -> str:
    """Render a tree with box-drawing branches, optionally ANSI-coloured"""
    lines: List[str] = [_paint(node, color)]
    _render_children(node, "", color, lines)
    return "\n".join(lines)


def _render_children(node: TreeNode, indent: str, color: bool, lines: List[str]) -> None:
    for index, child in enumerate(node.children):
        last = index == len(node.children) - 1
        lines.append(f"{indent}{'└── ' if last else '├── '}{_paint(child, color)}")
        _render_children(child, indent + ("    " if last else "│   "), color, lines)


def _paint(node: TreeNode, color: bool) -> str:
    if not color:
        return node.label
    return f"{ANSI_COLORS[node.color]}{node.label}{ANSI_RESET}"

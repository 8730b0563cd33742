"""
vaultviewer - Entry Point

Logs into the configured Vault instances, fetches their resultant ACLs and
prints them as a tree, answers path queries, or opens a shell with an
instance's credentials.
"""

import asyncio
import argparse
import logging
import sys
from typing import List, Optional

from .client.errors import VaultClientError
from .client.vault import VaultInstance, connect
from .config.loader import load_config
from .config.schema import InstanceConfig, ViewerConfig
from .core.errors import ACLError
from .core.policy import build_acl, load_policy_file
from .executer import launch_shell
from .ui.tree import NodeKind, build_acl_node, build_tree, render_tree
from .ui.viewer import format_node_info, format_query_result

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def connect_all(configs: List[InstanceConfig]) -> List[VaultInstance]:
    """Connect to every instance, skipping the ones that fail"""
    instances = []
    for config in configs:
        try:
            instances.append(await connect(config))
        except (VaultClientError, ACLError) as e:
            logger.error(f"Unable to initialize Vault client for {config.url}: {e}")
    return instances


def select_instances(config: ViewerConfig, name: Optional[str]) -> List[InstanceConfig]:
    if not name:
        return config.instances
    instance = config.get_instance(name)
    if instance is None:
        raise SystemExit(f"No configured instance named {name!r}")
    return [instance]


async def cmd_tree(config: ViewerConfig, args) -> int:
    instances = await connect_all(select_instances(config, args.instance))
    try:
        root = build_tree(instances)
        print(render_tree(root, color=not args.no_color))
        if args.info:
            for node in root.walk():
                if node.kind == NodeKind.RULE and node.rule is not None:
                    print()
                    print(format_node_info(node))
    finally:
        for instance in instances:
            await instance.aclose()
    return 0


async def cmd_query(config: ViewerConfig, args) -> int:
    instances = await connect_all(select_instances(config, args.instance))
    if not instances:
        logger.error(f"No Vault instance could be queried for {args.path}")
        return 2

    denied = False
    try:
        for instance in instances:
            result = instance.document.query(args.path)
            print(format_query_result(result, instance.display_name))
            if args.capability and not result.allows(args.capability):
                denied = True
    finally:
        for instance in instances:
            await instance.aclose()
    return 1 if denied else 0


async def cmd_shell(config: ViewerConfig, args) -> int:
    instance_config = select_instances(config, args.instance)[0]
    instance = VaultInstance(instance_config)
    try:
        await instance.login()
        return await launch_shell(instance, shell=args.shell)
    finally:
        await instance.aclose()


def cmd_policy(args) -> int:
    policies = [load_policy_file(path) for path in args.files]
    document = build_acl(policies)
    print(render_tree(build_acl_node(document), color=not args.no_color))
    if args.query:
        result = document.query(args.query)
        print()
        print(format_query_result(result))
        if args.capability and not result.allows(args.capability):
            return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vaultviewer",
        description="Browse and query Vault resultant ACLs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the ACL tree of every configured instance
  python -m vaultviewer --config config.yml tree

  # What can I do at a path, and why?
  python -m vaultviewer query secret/data/app --capability read

  # Open a shell with VAULT_ADDR / VAULT_TOKEN set for one instance
  python -m vaultviewer shell --instance internal

  # Inspect policy files offline
  python -m vaultviewer policy app.json ops.yaml --query secret/data/app
"""
    )

    parser.add_argument(
        '--config', '-c',
        help='Path to config.yml (default: ./config.yml, then ~/.config/vaultviewer/config.yml)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    parser.add_argument(
        '--no-color',
        action='store_true',
        help='Disable ANSI colours in tree output'
    )

    subparsers = parser.add_subparsers(dest='command')

    tree = subparsers.add_parser('tree', help='Print the ACL tree (default)')
    tree.add_argument('--instance', '-i', help='Only this instance (name or URL)')
    tree.add_argument('--info', action='store_true', help='Print details for every rule')

    query = subparsers.add_parser('query', help='Resolve the rule that applies to a path')
    query.add_argument('path', help='Path to query, e.g. secret/data/app')
    query.add_argument('--instance', '-i', help='Only this instance (name or URL)')
    query.add_argument('--capability', help='Exit with status 1 if this capability is denied')

    shell = subparsers.add_parser('shell', help='Open a shell with the instance credentials')
    shell.add_argument('--instance', '-i', help='Instance name or URL (default: first configured)')
    shell.add_argument('--shell', help='Shell to run (default: $SHELL)')

    policy = subparsers.add_parser('policy', help='Build an ACL from offline policy files')
    policy.add_argument('files', nargs='+', help='Policy files (JSON or YAML)')
    policy.add_argument('--query', help='Path to query against the merged policies')
    policy.add_argument('--capability', help='Exit with status 1 if this capability is denied')

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == 'policy':
        try:
            return cmd_policy(args)
        except (ACLError, FileNotFoundError) as e:
            logger.error(f"Unable to build ACL from policies: {e}")
            return 2

    try:
        config = load_config(args.config)
    except (FileNotFoundError, KeyError, ValueError) as e:
        print(f"\n❌ Error: {e}")
        return 2

    if not config.instances:
        print("\n❌ Error: no Vault instances configured")
        print("\nCreate a config.yml:")
        print("  instances:")
        print("    - url: http://127.0.0.1:8200")
        print("      auth:")
        print('        token: "${VAULT_TOKEN}"')
        return 2

    if args.command == 'query':
        return await cmd_query(config, args)
    if args.command == 'shell':
        try:
            return await cmd_shell(config, args)
        except (VaultClientError, RuntimeError) as e:
            logger.error(f"Unable to launch shell: {e}")
            return 2

    if args.command is None:
        args.instance = None
        args.info = False
    return await cmd_tree(config, args)


def run():
    """Entry point for console script"""
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()

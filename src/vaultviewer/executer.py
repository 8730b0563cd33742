"""
Shell Launcher

Starts an interactive shell with the credentials of a logged-in Vault
instance injected as VAULT_ADDR / VAULT_TOKEN / VAULT_NAMESPACE, so the
`vault` CLI works against that instance right away.
"""

import asyncio
import logging
import os
from typing import Dict, Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .client.vault import VaultInstance

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "/bin/sh"


def build_shell_environment(
    instance: "VaultInstance",
    base_env: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Copy of `base_env` (default: os.environ) with Vault credentials added"""
    if not instance.token:
        raise RuntimeError(f"Not logged in to {instance.display_name}")

    env = dict(os.environ if base_env is None else base_env)
    env["VAULT_ADDR"] = instance.address
    env["VAULT_TOKEN"] = instance.token
    if instance.config.namespace:
        env["VAULT_NAMESPACE"] = instance.config.namespace
    else:
        env.pop("VAULT_NAMESPACE", None)
    return env


def resolve_shell(shell: Optional[str] = None) -> str:
    return shell or os.environ.get("SHELL") or DEFAULT_SHELL


async def launch_shell(instance: "VaultInstance", shell: Optional[str] = None) -> int:
    """
    Run an interactive shell for `instance` and wait for it to exit.

    The shell inherits this process's stdin/stdout/stderr.

    Returns:
        The shell's exit code
    """
    env = build_shell_environment(instance)
    shell = resolve_shell(shell)

    logger.info(f"Launching {shell} for {instance.display_name}")
    process = await asyncio.create_subprocess_exec(shell, env=env)
    return await process.wait()

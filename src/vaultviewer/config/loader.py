"""
Config File Discovery

vaultviewer reads one YAML file that lists the Vault instances to inspect.
Strings in it may reference environment variables, which keeps tokens and
passwords out of the file itself:

    ${VAULT_TOKEN}                          must be set
    ${VAULT_ADDR:-http://127.0.0.1:8200}    falls back to the default

Lookup order when no path is given: ./config.yml, ./config.yaml, then the
same names under ~/.config/vaultviewer. Without any file the config is empty
and the CLI says so.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Iterator, Optional, Union

import yaml

from .schema import ViewerConfig

logger = logging.getLogger(__name__)

ENV_REFERENCE = re.compile(r'\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}')

CONFIG_FILENAMES = ("config.yml", "config.yaml")
USER_CONFIG_DIR = Path("~/.config/vaultviewer")


def _expand_reference(match: "re.Match[str]") -> str:
    name = match.group("name")
    value = os.environ.get(name, match.group("default"))
    if value is None:
        raise KeyError(
            f"vaultviewer config references ${{{name}}} but it is not set "
            f"(use ${{{name}:-default}} to make it optional)"
        )
    return value


def interpolate_env_vars(value: Any) -> Any:
    """
    Expand ${VAR} references in every string of a parsed config tree.

    Raises:
        KeyError: If a reference without a default names an unset variable
    """
    if isinstance(value, str):
        return ENV_REFERENCE.sub(_expand_reference, value)
    if isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    if isinstance(value, dict):
        return {key: interpolate_env_vars(item) for key, item in value.items()}
    return value


def candidate_paths(working_dir: Optional[Union[str, Path]] = None) -> Iterator[Path]:
    """Config file locations, most specific first"""
    base = Path(working_dir) if working_dir else Path.cwd()
    for directory in (base, USER_CONFIG_DIR.expanduser()):
        for name in CONFIG_FILENAMES:
            yield directory / name


def load_config_from_file(
    config_path: Union[str, Path],
    interpolate: bool = True,
) -> ViewerConfig:
    """
    Parse one config file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        KeyError: If a required environment variable is not set
        ValueError: If the file is not a YAML mapping
    """
    path = Path(config_path)
    if not path.is_file():
        raise FileNotFoundError(f"vaultviewer config not found: {path}")

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"{path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")

    if interpolate:
        data = interpolate_env_vars(data)

    config = ViewerConfig.from_dict(data)
    logger.info(f"Loaded {len(config.instances)} instance(s) from {path}")
    return config


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    working_dir: Optional[Union[str, Path]] = None,
) -> ViewerConfig:
    """Load an explicit config file, or the first one found by candidate_paths"""
    if config_path:
        return load_config_from_file(config_path)

    for path in candidate_paths(working_dir):
        if path.is_file():
            return load_config_from_file(path)

    logger.info("No vaultviewer config found")
    return ViewerConfig()

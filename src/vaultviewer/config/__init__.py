"""
vaultviewer Configuration Module

Provides YAML-based configuration for the Vault instances to inspect.
"""

from .schema import ViewerConfig, InstanceConfig, AuthConfig, LDAPAuthConfig
from .loader import load_config, load_config_from_file, interpolate_env_vars, candidate_paths

__all__ = [
    "ViewerConfig",
    "InstanceConfig",
    "AuthConfig",
    "LDAPAuthConfig",
    "load_config",
    "load_config_from_file",
    "interpolate_env_vars",
    "candidate_paths",
]

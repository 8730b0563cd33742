"""
Vault Client

Authentication flows and resultant-ACL retrieval over the Vault HTTP API.
"""

from .vault import VaultInstance, connect, mask_token, read_password_file
from .errors import VaultClientError, VaultRequestError, VaultAuthError

__all__ = [
    "VaultInstance",
    "connect",
    "mask_token",
    "read_password_file",
    "VaultClientError",
    "VaultRequestError",
    "VaultAuthError",
]

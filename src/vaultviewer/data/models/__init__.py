"""Data models for the Vault HTTP API."""

from .vault import VaultSecret, VaultAuthInfo, VaultErrorResponse

__all__ = [
    "VaultSecret",
    "VaultAuthInfo",
    "VaultErrorResponse",
]

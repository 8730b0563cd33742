"""
Data layer for vaultviewer.

Contains the wire models for Vault API responses.
"""

from .models import VaultSecret, VaultAuthInfo, VaultErrorResponse

__all__ = [
    "VaultSecret",
    "VaultAuthInfo",
    "VaultErrorResponse",
]

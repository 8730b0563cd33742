"""
Vault Client Errors

Failures talking to a Vault server. These are independent of the ACL model
errors in vaultviewer.core.errors.
"""

from typing import List, Optional


class VaultClientError(Exception):
    """Base class for Vault client failures"""


class VaultRequestError(VaultClientError):
    """A request failed at the transport level or returned an error status"""

    def __init__(self, message: str, status_code: Optional[int] = None, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class VaultAuthError(VaultClientError):
    """Login failed or produced no client token"""

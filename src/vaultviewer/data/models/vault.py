"""
Vault API Models

Response envelopes returned by the Vault HTTP API (`/v1/...`).
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class VaultAuthInfo(BaseModel):
    """`auth` block of a login response."""
    client_token: str
    accessor: Optional[str] = None
    policies: list[str] = Field(default_factory=list)
    token_policies: list[str] = Field(default_factory=list)
    identity_policies: list[str] = Field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None
    lease_duration: int = 0
    renewable: bool = False
    entity_id: Optional[str] = None

    @property
    def has_root_policy(self) -> bool:
        return "root" in self.policies or "root" in self.token_policies


class VaultSecret(BaseModel):
    """
    Generic Vault response.

    `data` holds the payload of a read, `auth` the result of a login.
    """
    request_id: Optional[str] = None
    lease_id: Optional[str] = None
    lease_duration: int = 0
    renewable: bool = False
    data: Optional[dict[str, Any]] = None
    auth: Optional[VaultAuthInfo] = None
    warnings: Optional[list[str]] = None
    wrap_info: Optional[dict[str, Any]] = None

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {
                "request_id": "6b1a2b9c-0f5e-4a47-9a31-9c0f2b3c1d2e",
                "data": {
                    "exact_paths": {"secret/data/app": {"capabilities": ["read", "list"]}},
                    "glob_paths": {},
                    "root": False,
                },
            }
        },
    )


class VaultErrorResponse(BaseModel):
    """Body of a non-2xx Vault response."""
    errors: list[str] = Field(default_factory=list)

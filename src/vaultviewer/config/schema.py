"""
vaultviewer Configuration Schema

Defines the configuration structure: the Vault instances to connect to and
how to authenticate against each of them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class LDAPAuthConfig:
    """LDAP auth method settings"""
    username: str = ""
    mount_path: str = "ldap"
    password: str = ""
    password_file: str = ""   # Read the password from this file
    password_env: str = ""    # Read the password from this environment variable

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LDAPAuthConfig":
        return cls(
            username=data.get("username", ""),
            mount_path=data.get("mountPath") or "ldap",
            password=data.get("password", ""),
            password_file=data.get("passwordFile", ""),
            password_env=data.get("passwordEnv", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "mountPath": self.mount_path,
            "password": self.password,
            "passwordFile": self.password_file,
            "passwordEnv": self.password_env,
        }


@dataclass
class AuthConfig:
    """
    Authentication for one instance.

    Tried in order: token, JWT, LDAP, userpass.
    """
    token: str = ""
    jwt: str = ""
    jwt_role: str = ""
    username: str = ""
    password: str = ""
    ldap: Optional[LDAPAuthConfig] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthConfig":
        ldap_data = data.get("ldap")
        return cls(
            token=data.get("token", ""),
            jwt=data.get("jwt", ""),
            jwt_role=data.get("role", ""),
            username=data.get("user", ""),
            password=data.get("password", ""),
            ldap=LDAPAuthConfig.from_dict(ldap_data) if isinstance(ldap_data, dict) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "token": self.token,
            "jwt": self.jwt,
            "role": self.jwt_role,
            "user": self.username,
            "password": self.password,
        }
        if self.ldap is not None:
            data["ldap"] = self.ldap.to_dict()
        return data


@dataclass
class InstanceConfig:
    """Configuration for one Vault instance"""
    url: str
    namespace: str = ""
    display_name: Optional[str] = None
    auth: Optional[AuthConfig] = None
    timeout: float = 30.0
    verify: bool = True      # TLS certificate verification

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstanceConfig":
        if "url" not in data:
            raise KeyError("Vault instance configuration requires 'url'")
        auth_data = data.get("auth")
        return cls(
            url=data["url"],
            namespace=data.get("namespace") or "",
            display_name=data.get("name"),
            auth=AuthConfig.from_dict(auth_data) if isinstance(auth_data, dict) else None,
            timeout=float(data.get("timeout", 30.0)),
            verify=data.get("verify", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "url": self.url,
            "namespace": self.namespace,
            "timeout": self.timeout,
            "verify": self.verify,
        }
        if self.display_name:
            data["name"] = self.display_name
        if self.auth is not None:
            data["auth"] = self.auth.to_dict()
        return data


@dataclass
class ViewerConfig:
    """
    Central configuration for vaultviewer.

    Example config.yml:
    ```yaml
    instances:
      - url: https://vault.example.com:8200
        namespace: team-a
        auth:
          token: "${VAULT_TOKEN}"
      - url: https://vault.internal:8200
        name: internal
        auth:
          ldap:
            mountPath: corp-ldap
            username: alice
            passwordEnv: LDAP_PASSWORD
    ```
    """
    instances: List[InstanceConfig] = field(default_factory=list)

    # Additional metadata
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_instance(self, name: str) -> Optional[InstanceConfig]:
        """Find an instance by display name or URL"""
        for instance in self.instances:
            if name in (instance.display_name, instance.url):
                return instance
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViewerConfig":
        """Create ViewerConfig from dictionary (e.g., parsed YAML)"""
        instances = []
        for instance_data in data.get("instances") or []:
            if isinstance(instance_data, str):
                instances.append(InstanceConfig(url=instance_data))
            elif isinstance(instance_data, dict):
                instances.append(InstanceConfig.from_dict(instance_data))

        return cls(
            instances=instances,
            metadata=data.get("metadata", {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary (for serialization)"""
        return {
            "instances": [i.to_dict() for i in self.instances],
            "metadata": self.metadata,
        }

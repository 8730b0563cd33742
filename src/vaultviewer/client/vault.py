"""
Vault Instance Client

Authenticates against a Vault server and fetches the resultant ACL for the
logged-in token.

Usage:
    async with VaultInstance(instance_config) as vault:
        await vault.login()
        document = await vault.refresh_acl()
        print(document.query("secret/data/app").reason)
"""

import getpass
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import httpx
from pydantic import ValidationError

from ..config.schema import InstanceConfig, LDAPAuthConfig
from ..core.document import ACLDocument, ACLHandle
from ..core.ingest import RESULTANT_ACL_PATH, ingest_resultant_acl
from ..data.models.vault import VaultErrorResponse, VaultSecret
from .errors import VaultAuthError, VaultRequestError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE_LABEL = "Default"
PASSWORD_FILE_LIMIT = 1000


def read_password_file(path: str) -> str:
    """Read a password from a file: first 1000 bytes, trailing newline removed"""
    try:
        with open(Path(path).expanduser(), "rb") as f:
            data = f.read(PASSWORD_FILE_LIMIT)
    except OSError as e:
        raise VaultAuthError(f"unable to open file containing password: {e}") from e
    return data.decode("utf-8").removesuffix("\n")


def mask_token(token: Optional[str]) -> str:
    if not token:
        return ""
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"


class VaultInstance:
    """
    Connection to one Vault instance.

    Holds the HTTP client, the token obtained at login, and an ACLHandle
    with the last successfully ingested ACL document.
    """

    def __init__(
        self,
        config: InstanceConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.address = config.url.rstrip("/")
        self.token: Optional[str] = None
        self.acl = ACLHandle()

        headers = {"Accept": "application/json"}
        if config.namespace:
            headers["X-Vault-Namespace"] = config.namespace

        self.client = httpx.AsyncClient(
            base_url=f"{self.address}/v1/",
            timeout=config.timeout,
            verify=config.verify,
            headers=headers,
            transport=transport,
        )

    @property
    def namespace(self) -> str:
        """Configured namespace, or "Default" for the root namespace"""
        return self.config.namespace or DEFAULT_NAMESPACE_LABEL

    @property
    def display_name(self) -> str:
        if self.config.display_name:
            return self.config.display_name
        if self.config.namespace:
            return f"{self.address} [{self.config.namespace}]"
        return self.address

    @property
    def document(self) -> ACLDocument:
        return self.acl.current

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    async def __aenter__(self) -> "VaultInstance":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def set_token(self, token: str) -> None:
        self.token = token
        self.client.headers["X-Vault-Token"] = token

    # =========================================================================
    # Authentication
    # =========================================================================

    async def login(
        self,
        prompt_username: Callable[[str], str] = input,
        prompt_password: Callable[[str], str] = getpass.getpass,
    ) -> str:
        """
        Authenticate and store the client token.

        Order: configured token, JWT, LDAP, userpass. Without an auth block
        the username and password are prompted for (userpass).

        Returns:
            The client token

        Raises:
            VaultAuthError: If login fails or no method is usable
        """
        auth = self.config.auth

        if auth is None:
            username = prompt_username("Enter Username: ").strip()
            password = prompt_password(f"Enter Password for {username}: ")
            token = await self._login_userpass(username, password)
        elif auth.token:
            logger.info(f"Using configured token for {self.display_name}")
            token = auth.token
        elif auth.jwt:
            token = await self._login_jwt(auth.jwt, auth.jwt_role)
        elif auth.ldap is not None:
            token = await self._login_ldap(auth.ldap, prompt_password)
        elif auth.username:
            password = auth.password or prompt_password(f"Enter Password for {auth.username}: ")
            token = await self._login_userpass(auth.username, password)
        else:
            raise VaultAuthError(f"No usable auth method configured for {self.display_name}")

        self.set_token(token)
        return token

    async def _login_userpass(self, username: str, password: str) -> str:
        return await self._login(f"auth/userpass/login/{username}", {"password": password}, "userpass")

    async def _login_jwt(self, jwt: str, role: str = "") -> str:
        payload: Dict[str, Any] = {"jwt": jwt}
        if role:
            payload["role"] = role
        return await self._login("auth/jwt/login", payload, "jwt")

    async def _login_ldap(
        self,
        ldap: LDAPAuthConfig,
        prompt_password: Callable[[str], str] = getpass.getpass,
    ) -> str:
        if ldap.password_file:
            password = read_password_file(ldap.password_file)
        elif ldap.password_env:
            password = os.environ.get(ldap.password_env, "")
            if not password:
                raise VaultAuthError(
                    "password was specified with an environment variable with an empty value"
                )
        else:
            password = ldap.password or prompt_password(f"Enter Password for {ldap.username}: ")

        mount_path = ldap.mount_path or "ldap"
        return await self._login(
            f"auth/{mount_path}/login/{ldap.username}", {"password": password}, "LDAP"
        )

    async def _login(self, path: str, payload: Dict[str, Any], method: str) -> str:
        logger.info(f"Logging in to {self.display_name} with {method} auth")
        try:
            secret = await self.write(path, payload)
        except VaultRequestError as e:
            raise VaultAuthError(f"unable to log in with {method} auth: {e}") from e

        if secret is None or secret.auth is None or not secret.auth.client_token:
            raise VaultAuthError(f"{method} login to {self.display_name} returned no client token")
        return secret.auth.client_token

    # =========================================================================
    # Logical reads and writes
    # =========================================================================

    async def read(self, path: str) -> Optional[VaultSecret]:
        """
        Read a logical path.

        Returns:
            The response, or None for 404 / empty responses
        """
        return await self._request("GET", path)

    async def write(self, path: str, payload: Mapping[str, Any]) -> Optional[VaultSecret]:
        return await self._request("POST", path, json=dict(payload))

    async def _request(self, method: str, path: str, **kwargs) -> Optional[VaultSecret]:
        path = path.lstrip("/")
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise VaultRequestError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            logger.debug(f"{method} {path}: not found")
            return None
        if response.status_code >= 400:
            errors = self._parse_errors(response)
            raise VaultRequestError(
                f"{method} {path} returned {response.status_code}: {'; '.join(errors) or response.reason_phrase}",
                status_code=response.status_code,
                errors=errors,
            )
        if response.status_code == 204 or not response.content:
            return None

        try:
            return VaultSecret.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise VaultRequestError(f"{method} {path} returned an invalid body: {e}") from e

    @staticmethod
    def _parse_errors(response: httpx.Response) -> list:
        try:
            return VaultErrorResponse.model_validate(response.json()).errors
        except (ValueError, ValidationError):
            return []

    # =========================================================================
    # ACL
    # =========================================================================

    async def fetch_resultant_acl(self) -> Optional[Mapping[str, Any]]:
        """Read the resultant ACL payload for the current token"""
        secret = await self.read(RESULTANT_ACL_PATH)
        if secret is None:
            return None
        return secret.data

    async def refresh_acl(self) -> ACLDocument:
        """
        Fetch, ingest and publish a new ACL document.

        On any failure the previously published document stays current and
        the error propagates.
        """
        payload = await self.fetch_resultant_acl()
        document = self.acl.refresh(lambda: ingest_resultant_acl(payload))
        logger.info(f"Refreshed ACL for {self.display_name} (v{self.acl.version})")
        return document

    def connection_info(self, reveal_token: bool = False) -> Dict[str, Any]:
        return {
            "Displayname": self.display_name,
            "Token": self.token if reveal_token else mask_token(self.token),
            "Namespace": self.namespace,
            "Address": self.address,
            "IsRoot": self.document.root,
        }


async def connect(
    config: InstanceConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **login_kwargs,
) -> VaultInstance:
    """
    Build an instance, log in and fetch its ACL.

    The client is closed again if any step fails.
    """
    instance = VaultInstance(config, transport=transport)
    try:
        await instance.login(**login_kwargs)
        await instance.refresh_acl()
    except Exception:
        await instance.aclose()
        raise
    return instance

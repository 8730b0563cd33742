"""
Test Vault Client

Exercises login methods and resultant ACL refresh against a mocked Vault
HTTP API.
"""

import json

import httpx
import pytest

from vaultviewer.client import VaultAuthError, VaultInstance, VaultRequestError, connect
from vaultviewer.client.vault import mask_token, read_password_file
from vaultviewer.config.schema import AuthConfig, InstanceConfig, LDAPAuthConfig
from vaultviewer.core.errors import MalformedACLError
from vaultviewer.data.models.vault import VaultSecret

ACL_PAYLOAD = {
    "exact_paths": {"secret/data/app": {"capabilities": ["read"]}},
    "glob_paths": {"kv/": {"capabilities": ["list"]}},
    "root": False,
}


class FakeVault:
    """Records requests and answers from a path -> response table"""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"errors": []})
        return handler(request) if callable(handler) else handler

    @property
    def transport(self):
        return httpx.MockTransport(self)


def login_response(token):
    return httpx.Response(200, json={"auth": {"client_token": token, "policies": ["default"]}})


def acl_response(data=ACL_PAYLOAD):
    return httpx.Response(200, json={"request_id": "r1", "data": data})


class TestLogin:
    """Test suite for VaultInstance.login"""

    @pytest.mark.asyncio
    async def test_configured_token(self):
        fake = FakeVault({("GET", "/v1/sys/internal/ui/resultant-acl"): acl_response()})
        config = InstanceConfig(url="http://vault:8200", auth=AuthConfig(token="s.configured"))

        async with VaultInstance(config, transport=fake.transport) as vault:
            token = await vault.login()
            await vault.refresh_acl()

        assert token == "s.configured"
        assert fake.requests[0].headers["X-Vault-Token"] == "s.configured"

    @pytest.mark.asyncio
    async def test_jwt(self):
        def handler(request):
            assert json.loads(request.content) == {"jwt": "eyJ.token", "role": "reader"}
            return login_response("s.jwt")

        fake = FakeVault({("POST", "/v1/auth/jwt/login"): handler})
        config = InstanceConfig(url="http://vault:8200", auth=AuthConfig(jwt="eyJ.token", jwt_role="reader"))

        async with VaultInstance(config, transport=fake.transport) as vault:
            assert await vault.login() == "s.jwt"
            assert vault.client.headers["X-Vault-Token"] == "s.jwt"

    @pytest.mark.asyncio
    async def test_ldap_password_file(self, tmp_path):
        password_file = tmp_path / "password"
        password_file.write_text("hunter2\n")

        def handler(request):
            assert json.loads(request.content) == {"password": "hunter2"}
            return login_response("s.ldap")

        fake = FakeVault({("POST", "/v1/auth/corp-ldap/login/alice"): handler})
        config = InstanceConfig(
            url="http://vault:8200",
            auth=AuthConfig(ldap=LDAPAuthConfig(
                username="alice", mount_path="corp-ldap", password_file=str(password_file),
            )),
        )

        async with VaultInstance(config, transport=fake.transport) as vault:
            assert await vault.login() == "s.ldap"

    @pytest.mark.asyncio
    async def test_ldap_password_env(self, monkeypatch):
        monkeypatch.setenv("LDAP_PASSWORD", "from-env")

        def handler(request):
            assert json.loads(request.content) == {"password": "from-env"}
            return login_response("s.env")

        fake = FakeVault({("POST", "/v1/auth/ldap/login/alice"): handler})
        config = InstanceConfig(
            url="http://vault:8200",
            auth=AuthConfig(ldap=LDAPAuthConfig(username="alice", password_env="LDAP_PASSWORD")),
        )

        async with VaultInstance(config, transport=fake.transport) as vault:
            assert await vault.login() == "s.env"

    @pytest.mark.asyncio
    async def test_ldap_empty_password_env(self, monkeypatch):
        monkeypatch.setenv("LDAP_PASSWORD", "")
        fake = FakeVault({})
        config = InstanceConfig(
            url="http://vault:8200",
            auth=AuthConfig(ldap=LDAPAuthConfig(username="alice", password_env="LDAP_PASSWORD")),
        )

        async with VaultInstance(config, transport=fake.transport) as vault:
            with pytest.raises(VaultAuthError):
                await vault.login()

        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_userpass(self):
        def handler(request):
            assert json.loads(request.content) == {"password": "pw"}
            return login_response("s.userpass")

        fake = FakeVault({("POST", "/v1/auth/userpass/login/bob"): handler})
        config = InstanceConfig(url="http://vault:8200", auth=AuthConfig(username="bob", password="pw"))

        async with VaultInstance(config, transport=fake.transport) as vault:
            assert await vault.login() == "s.userpass"

    @pytest.mark.asyncio
    async def test_prompted_userpass(self):
        fake = FakeVault({("POST", "/v1/auth/userpass/login/carol"): login_response("s.prompt")})
        config = InstanceConfig(url="http://vault:8200")

        async with VaultInstance(config, transport=fake.transport) as vault:
            token = await vault.login(
                prompt_username=lambda _: "carol\n",
                prompt_password=lambda _: "pw",
            )

        assert token == "s.prompt"

    @pytest.mark.asyncio
    async def test_login_rejected(self):
        fake = FakeVault({
            ("POST", "/v1/auth/userpass/login/bob"): httpx.Response(400, json={"errors": ["invalid username or password"]}),
        })
        config = InstanceConfig(url="http://vault:8200", auth=AuthConfig(username="bob", password="bad"))

        async with VaultInstance(config, transport=fake.transport) as vault:
            with pytest.raises(VaultAuthError) as exc_info:
                await vault.login()

        assert "invalid username or password" in str(exc_info.value)
        assert not vault.is_authenticated

    @pytest.mark.asyncio
    async def test_login_without_client_token(self):
        fake = FakeVault({("POST", "/v1/auth/userpass/login/bob"): httpx.Response(200, json={"data": {}})})
        config = InstanceConfig(url="http://vault:8200", auth=AuthConfig(username="bob", password="pw"))

        async with VaultInstance(config, transport=fake.transport) as vault:
            with pytest.raises(VaultAuthError):
                await vault.login()

    @pytest.mark.asyncio
    async def test_no_usable_method(self):
        config = InstanceConfig(url="http://vault:8200", auth=AuthConfig())

        async with VaultInstance(config, transport=FakeVault({}).transport) as vault:
            with pytest.raises(VaultAuthError):
                await vault.login()


class TestResultantACL:
    """Fetching and ingesting the resultant ACL"""

    def setup_method(self):
        self.config = InstanceConfig(
            url="http://vault:8200/",
            namespace="team-a",
            auth=AuthConfig(token="s.token"),
        )

    @pytest.mark.asyncio
    async def test_refresh(self):
        fake = FakeVault({("GET", "/v1/sys/internal/ui/resultant-acl"): acl_response()})

        async with VaultInstance(self.config, transport=fake.transport) as vault:
            await vault.login()
            document = await vault.refresh_acl()

            assert vault.document is document
            assert vault.acl.version == 1

        assert document.query("secret/data/app").allows("read")
        assert document.query("kv/anything").allows("list")
        assert fake.requests[0].headers["X-Vault-Namespace"] == "team-a"

    @pytest.mark.asyncio
    async def test_not_found_is_empty_document(self):
        async with VaultInstance(self.config, transport=FakeVault({}).transport) as vault:
            await vault.login()
            document = await vault.refresh_acl()

        assert document.is_empty
        assert not document.query("secret/data/app").allowed

    @pytest.mark.asyncio
    async def test_malformed_refresh_keeps_previous(self):
        responses = [acl_response(), acl_response({"root": "yes"})]
        fake = FakeVault({("GET", "/v1/sys/internal/ui/resultant-acl"): lambda _: responses.pop(0)})

        async with VaultInstance(self.config, transport=fake.transport) as vault:
            await vault.login()
            first = await vault.refresh_acl()

            with pytest.raises(MalformedACLError):
                await vault.refresh_acl()

            assert vault.document is first
            assert vault.acl.version == 1

    @pytest.mark.asyncio
    async def test_error_status(self):
        fake = FakeVault({
            ("GET", "/v1/sys/internal/ui/resultant-acl"): httpx.Response(403, json={"errors": ["permission denied"]}),
        })

        async with VaultInstance(self.config, transport=fake.transport) as vault:
            await vault.login()
            with pytest.raises(VaultRequestError) as exc_info:
                await vault.refresh_acl()

        assert exc_info.value.status_code == 403
        assert exc_info.value.errors == ["permission denied"]

    @pytest.mark.asyncio
    async def test_connect(self):
        fake = FakeVault({("GET", "/v1/sys/internal/ui/resultant-acl"): acl_response({"root": True})})

        vault = await connect(self.config, transport=fake.transport)
        try:
            assert vault.is_authenticated
            assert vault.document.root
        finally:
            await vault.aclose()

    @pytest.mark.asyncio
    async def test_connect_failure_closes_client(self):
        config = InstanceConfig(url="http://vault:8200", auth=AuthConfig())

        with pytest.raises(VaultAuthError):
            await connect(config, transport=FakeVault({}).transport)


class TestInstanceInfo:

    def test_namespace_label(self):
        assert VaultInstance(InstanceConfig(url="http://v:8200")).namespace == "Default"
        assert VaultInstance(InstanceConfig(url="http://v:8200", namespace="ns1")).namespace == "ns1"

    def test_display_name(self):
        assert VaultInstance(InstanceConfig(url="http://v:8200/")).display_name == "http://v:8200"
        assert VaultInstance(InstanceConfig(url="http://v:8200", namespace="ns1")).display_name == "http://v:8200 [ns1]"
        assert VaultInstance(InstanceConfig(url="http://v:8200", display_name="prod")).display_name == "prod"

    def test_connection_info(self):
        vault = VaultInstance(InstanceConfig(url="http://v:8200"))
        vault.set_token("hvs.abcdefghijkl")

        info = vault.connection_info()

        assert info == {
            "Displayname": "http://v:8200",
            "Token": "hvs....ijkl",
            "Namespace": "Default",
            "Address": "http://v:8200",
            "IsRoot": False,
        }
        assert vault.connection_info(reveal_token=True)["Token"] == "hvs.abcdefghijkl"

    def test_mask_token(self):
        assert mask_token(None) == ""
        assert mask_token("short") == "*****"

    def test_read_password_file_limit(self, tmp_path):
        path = tmp_path / "pw"
        path.write_text("x" * 1500)

        assert len(read_password_file(str(path))) == 1000

    def test_read_password_file_missing(self, tmp_path):
        with pytest.raises(VaultAuthError):
            read_password_file(str(tmp_path / "missing"))


class TestResponseModels:

    def test_unknown_fields_ignored(self):
        secret = VaultSecret.model_validate({
            "request_id": "r1",
            "mount_type": "system",
            "data": {"root": True},
        })

        assert secret.data == {"root": True}
        assert not hasattr(secret, "mount_type")

    def test_schema_example(self):
        example = VaultSecret.model_json_schema()["example"]

        assert "exact_paths" in example["data"]

"""Tests for VaultClient - HashiCorp Vault secrets management."""

import pytest
from unittest.mock import MagicMock, patch

from hvac.exceptions import Forbidden, InvalidPath

import clients.vault_client as vault_module
from clients.vault_client import VaultClient, get_database_url


@pytest.fixture
def vault_env(monkeypatch):
    monkeypatch.setenv("VAULT_ADDR", "https://vault.test:8200")
    monkeypatch.setenv("VAULT_ROLE_ID", "role")
    monkeypatch.setenv("VAULT_SECRET_ID", "secret")
    monkeypatch.delenv("VAULT_NAMESPACE", raising=False)


@pytest.fixture
def hvac_client():
    client = MagicMock()
    client.auth.approle.login.return_value = {"auth": {"client_token": "token"}}
    client.is_authenticated.return_value = True
    client.secrets.kv.v2.read_secret_version.return_value = {
        "data": {"data": {"url": "postgresql://billing@db/billing"}}
    }
    with patch("hvac.Client", return_value=client):
        yield client


@pytest.fixture(autouse=True)
def reset_singleton():
    vault_module._vault_client_instance = None
    vault_module._secret_cache.clear()
    yield
    vault_module._vault_client_instance = None
    vault_module._secret_cache.clear()


class TestVaultClientInit:
    """Initialization and authentication."""

    def test_missing_vault_addr_raises(self, vault_env, monkeypatch):
        monkeypatch.delenv("VAULT_ADDR")

        with pytest.raises(ValueError, match="VAULT_ADDR"):
            VaultClient()

    def test_missing_approle_credentials_raises(self, vault_env, monkeypatch):
        monkeypatch.delenv("VAULT_SECRET_ID")

        with pytest.raises(ValueError, match="VAULT_ROLE_ID"):
            VaultClient()

    def test_failed_login_raises_permission_error(self, vault_env, hvac_client):
        hvac_client.auth.approle.login.side_effect = RuntimeError("invalid role_id")

        with pytest.raises(PermissionError, match="authentication"):
            VaultClient()

    def test_authenticates_with_approle(self, vault_env, hvac_client):
        client = VaultClient()

        hvac_client.auth.approle.login.assert_called_once_with(role_id="role", secret_id="secret")
        assert client.client.token == "token"


class TestGetSecret:
    """Secret retrieval - paths automatically scoped to billing/."""

    def test_returns_field_value(self, vault_env, hvac_client):
        assert VaultClient().get_secret("database", "url") == "postgresql://billing@db/billing"
        assert hvac_client.secrets.kv.v2.read_secret_version.call_args.kwargs["path"] == "billing/database"

    def test_missing_field_raises_key_error(self, vault_env, hvac_client):
        with pytest.raises(KeyError, match="password"):
            VaultClient().get_secret("database", "password")

    @pytest.mark.parametrize("error", [InvalidPath(), Forbidden()])
    def test_inaccessible_path_raises_permission_error(self, vault_env, hvac_client, error):
        hvac_client.secrets.kv.v2.read_secret_version.side_effect = error

        with pytest.raises(PermissionError):
            VaultClient().get_secret("database", "url")


class TestGetDatabaseUrl:

    def test_cached_after_first_read(self, vault_env, hvac_client):
        assert get_database_url() == "postgresql://billing@db/billing"
        assert get_database_url() == "postgresql://billing@db/billing"

        assert hvac_client.secrets.kv.v2.read_secret_version.call_count == 1

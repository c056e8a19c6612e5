"""
HashiCorp Vault access for clinic deployment secrets.

AppRole login from environment variables, KV v2 reads scoped to the
'vetclinic/' mount prefix. Any failure here is fatal at startup: the
application cannot reach its database or email gateway without these values.
"""

import os
import logging
from typing import Dict

import hvac
from hvac import exceptions as hvac_errors

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "vetclinic"

# Fields each secret group must carry
_REQUIRED_FIELDS: Dict[str, tuple[str, ...]] = {
    "database": ("url",),
    "email": ("gateway_url", "api_key", "hmac_secret", "from_email"),
}

_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, Dict[str, str]] = {}


class VaultError(Exception):
    """Vault is misconfigured, unreachable, or missing a required secret."""


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultClient:
    """AppRole-authenticated reader for the vetclinic/ secret tree."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
    ):
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")

        missing = [
            name for name, value in (
                ("VAULT_ADDR", self.vault_addr),
                ("VAULT_ROLE_ID", role_id),
                ("VAULT_SECRET_ID", secret_id),
            )
            if not value
        ]
        if missing:
            raise VaultError(f"Missing environment variables: {', '.join(missing)}")

        client_kwargs = {"url": self.vault_addr}
        if self.vault_namespace:
            client_kwargs["namespace"] = self.vault_namespace
        self.client = hvac.Client(**client_kwargs)

        self._login(role_id, secret_id)
        logger.info(f"Vault client ready: {self.vault_addr}")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            response = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except hvac_errors.VaultError as e:
            logger.error(f"AppRole login rejected: {e}")
            raise VaultError(f"AppRole login rejected: {e}") from e

        self.client.token = response["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise VaultError("Vault did not accept the AppRole token")

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        Read every field of a KV v2 secret under vetclinic/.

        Args:
            path: Secret path relative to vetclinic/ (e.g. 'database')

        Raises:
            VaultError: Secret missing or access denied.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except hvac_errors.InvalidPath as e:
            logger.error(f"Secret not found: {full_path}")
            raise VaultError(f"Secret '{full_path}' not found") from e
        except (hvac_errors.Unauthorized, hvac_errors.Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise VaultError(f"Access denied to secret '{full_path}'") from e

        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """Read a single field of a secret."""
        data = self.read_secret(path)
        if field not in data:
            raise VaultError(
                f"Field '{field}' missing from secret '{_SECRET_PREFIX}/{path}'. "
                f"Available: {', '.join(sorted(data))}"
            )
        return data[field]


def _secret_group(path: str) -> Dict[str, str]:
    # One Vault read per group; required fields checked up front
    if path not in _secret_cache:
        data = _ensure_vault_client().read_secret(path)
        required = _REQUIRED_FIELDS[path]
        missing = [field for field in required if field not in data]
        if missing:
            raise VaultError(
                f"Secret '{_SECRET_PREFIX}/{path}' is missing: {', '.join(missing)}"
            )
        _secret_cache[path] = {field: data[field] for field in required}
    return _secret_cache[path]


def get_database_url() -> str:
    """PostgreSQL connection URL."""
    return _secret_group("database")["url"]


def get_email_config() -> Dict[str, str]:
    """Email gateway settings: gateway_url, api_key, hmac_secret, from_email."""
    return dict(_secret_group("email"))

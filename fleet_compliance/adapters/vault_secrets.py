from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

import requests

from fleet_compliance.adapters.http_retry import PerThreadSession, fetch_json
from fleet_compliance.domain.errors import SecretStoreError
from fleet_compliance.domain.models import ApplicationConfig
from fleet_compliance.ports.secrets import SecretStore

logger = logging.getLogger(__name__)

KV_DATA_PREFIX = "secret/data/"


def _has_text(value: Optional[str]) -> bool:
    return bool((value or "").strip())


def normalize_config_path(path: str) -> str:
    normalized = (path or "").strip().lstrip("/")
    if normalized.startswith(KV_DATA_PREFIX):
        return normalized
    return KV_DATA_PREFIX + normalized


def namespace_path_prefix(namespace: str) -> str:
    normalized = (namespace or "").strip().lstrip("/")
    if not normalized:
        return ""
    return normalized if normalized.endswith("/") else normalized + "/"


@dataclass
class VaultSecretStore(SecretStore):
    """
    Adapter around the Vault HTTP API (AppRole login + KV v2 read).
    All application configs live in a single secret keyed by application name.
    Nothing is cached: secrets may rotate between requests.
    """
    uri: str
    role_id: str
    secret_id: str
    config_path: str = "compliance/config"
    namespace: str = ""
    verify: bool = True
    timeout_seconds: float = 30.0
    session: requests.Session = field(default_factory=PerThreadSession)

    def __post_init__(self) -> None:
        self.uri = (self.uri or "").rstrip("/")
        logger.info(
            "Vault config: uri=%s, namespace=%s, configPath=%s",
            self.uri, self.namespace, self.config_path,
        )
        logger.info(
            "Vault AppRole set: roleIdSet=%s, roleIdLen=%d, secretIdSet=%s, secretIdLen=%d",
            _has_text(self.role_id), len(self.role_id or ""),
            _has_text(self.secret_id), len(self.secret_id or ""),
        )

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if _has_text(self.namespace):
            headers["X-Vault-Namespace"] = self.namespace.strip()
        if token:
            headers["X-Vault-Token"] = token
        return headers

    def _call(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            body = fetch_json(self.session, method, url, self.timeout_seconds, verify=self.verify, **kwargs)
        except (requests.RequestException, ValueError) as e:
            raise SecretStoreError(f"Vault request failed: {e}") from e

        if not isinstance(body, dict):
            raise SecretStoreError("No response from Vault")
        return body

    def _login(self) -> str:
        if not _has_text(self.role_id) or not _has_text(self.secret_id):
            raise SecretStoreError("Missing VAULT_ROLE_ID or VAULT_SECRET_ID")

        url = f"{self.uri}/v1/auth/approle/login"
        logger.info("Vault login URL: %s", url)
        body = self._call(
            "POST",
            url,
            json={"role_id": self.role_id, "secret_id": self.secret_id},
            headers=self._headers(),
        )

        auth = body.get("auth")
        if not isinstance(auth, dict):
            raise SecretStoreError("No auth data returned from Vault login")
        token = auth.get("client_token")
        if not token:
            raise SecretStoreError("No client_token in Vault login response")
        return str(token)

    def _read_secret(self, token: str) -> Dict[str, Any]:
        path = normalize_config_path(self.config_path)
        url = f"{self.uri}/v1/{namespace_path_prefix(self.namespace)}{path}"
        logger.info("Vault read URL: %s", url)
        body = self._call("GET", url, headers=self._headers(token))

        data = body.get("data")
        if not isinstance(data, dict):
            raise SecretStoreError("No data field in Vault response")
        inner = data.get("data")
        if not isinstance(inner, dict):
            raise SecretStoreError("No data.data field in Vault response")
        return inner

    def get_all_configs(self) -> Dict[str, ApplicationConfig]:
        logger.info("Retrieving configurations from Vault path: %s", self.config_path)
        raw = self._read_secret(self._login())

        configs: Dict[str, ApplicationConfig] = {}
        for app_name, value in raw.items():
            if not isinstance(value, dict):
                logger.warning("Ignoring non-object config entry for app: %s", app_name)
                continue
            configs[app_name] = ApplicationConfig.from_mapping(value)

        logger.info("Retrieved %d app configurations from Vault", len(configs))
        return configs

    def get_application_config(self, app_name: str) -> Optional[ApplicationConfig]:
        return self.get_all_configs().get(app_name)

    def list_application_names(self) -> Set[str]:
        return set(self.get_all_configs().keys())

    def test_connection(self) -> bool:
        url = f"{self.uri}/v1/sys/health"
        try:
            resp = self.session.request(
                "GET", url, headers=self._headers(), timeout=self.timeout_seconds, verify=self.verify
            )
        except requests.RequestException:
            logger.exception("Vault health check failed")
            return False
        return resp.status_code < 500

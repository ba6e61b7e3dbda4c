########## ini_config.py

import os
from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fleet_compliance.domain.models import RetryPolicy

INI_DEFAULT_NAME = "fleet_compliance.ini"


@dataclass(frozen=True)
class AppSettings:
    vault_uri: str
    vault_namespace: str
    vault_config_path: str
    vault_role_id: str
    vault_secret_id: str
    vault_skip_verify: bool

    ocs_base_url_template: str

    regions: tuple[str, ...]
    max_workers: int

    retry_policy: RetryPolicy

    flask_host: str
    flask_port: int
    flask_debug: bool

    log_level: str


class IniConfig:
    """
    Adapter around ConfigParser and environment overrides.
    Keeps INI handling out of your app/service code.
    """

    def __init__(self, ini_path: Path, environ: Optional[dict] = None):
        self._ini_path = ini_path
        self._env = os.environ if environ is None else environ
        self._cfg = ConfigParser()
        read_ok = self._cfg.read(str(ini_path), encoding="utf-8-sig")
        if not read_ok:
            raise FileNotFoundError(f"INI file not found or unreadable: {ini_path}")

    @staticmethod
    def from_env_or_default() -> "IniConfig":
        ini_raw = (os.getenv("APP_INI") or "").strip()
        # If APP_INI is not set, default to repo-root-relative ini location
        ini_path = Path(ini_raw) if ini_raw else (Path(__file__).resolve().parents[2] / INI_DEFAULT_NAME)
        return IniConfig(ini_path)

    def _str(self, section: str, key: str, fallback: str = "", env: str = "") -> str:
        """Environment variable (when named and non-empty) wins over the INI value."""
        if env:
            from_env = (self._env.get(env) or "").strip()
            if from_env:
                return from_env
        return (self._cfg.get(section, key, fallback=fallback) or "").strip()

    def load_settings(self) -> AppSettings:
        # Vault (AppRole secrets normally come from the environment)
        vault_uri = self._str("vault", "uri", env="VAULT_ADDR").rstrip("/")
        vault_namespace = self._str("vault", "namespace", env="VAULT_NAMESPACE")
        vault_config_path = self._str("vault", "config_path", fallback="compliance/config") or "compliance/config"
        vault_role_id = self._str("vault", "role_id", env="VAULT_ROLE_ID")
        vault_secret_id = self._str("vault", "secret_id", env="VAULT_SECRET_ID")
        vault_skip_verify = self._cfg.getboolean("vault", "skip_verify", fallback=False)

        # Inventory
        ocs_base_url_template = (
            self._str("ocs", "base_url_template", fallback="https://ocs.eu-fr-{region}.cloud/v0")
            or "https://ocs.eu-fr-{region}.cloud/v0"
        )

        # Evaluation
        regions = tuple(
            r.strip()
            for r in (self._cfg.get("compliance", "regions", fallback="paris, north") or "").split(",")
            if r.strip()
        )
        max_workers = self._cfg.getint("compliance", "max_workers", fallback=4)

        # Outbound retry policy
        retry_policy = RetryPolicy(
            max_retries=self._cfg.getint("retry", "max_retries", fallback=5),
            delay_seconds=self._cfg.getfloat("retry", "delay_seconds", fallback=120.0),
            timeout_seconds=self._cfg.getfloat("retry", "timeout_seconds", fallback=60.0),
        )

        # Flask
        flask_host = (self._cfg.get("flask", "host", fallback="127.0.0.1") or "").strip() or "127.0.0.1"
        flask_port = self._cfg.getint("flask", "port", fallback=5000)
        flask_debug = self._cfg.getboolean("flask", "debug", fallback=False)

        log_level = (self._cfg.get("logging", "level", fallback="INFO") or "").strip().upper() or "INFO"

        # Validate
        if not vault_uri:
            raise ValueError("Missing Vault URI: set [vault] uri or VAULT_ADDR")
        if "{region}" not in ocs_base_url_template:
            raise ValueError(f"ocs.base_url_template must contain {{region}}: {ocs_base_url_template}")
        if not regions:
            raise ValueError("compliance.regions is empty in INI")
        if max_workers < 1:
            raise ValueError("compliance.max_workers must be >= 1")
        if retry_policy.max_retries < 0 or retry_policy.delay_seconds < 0 or retry_policy.timeout_seconds <= 0:
            raise ValueError(f"Invalid [retry] settings: {retry_policy}")

        return AppSettings(
            vault_uri=vault_uri,
            vault_namespace=vault_namespace,
            vault_config_path=vault_config_path,
            vault_role_id=vault_role_id,
            vault_secret_id=vault_secret_id,
            vault_skip_verify=vault_skip_verify,
            ocs_base_url_template=ocs_base_url_template,
            regions=regions,
            max_workers=max_workers,
            retry_policy=retry_policy,
            flask_host=flask_host,
            flask_port=flask_port,
            flask_debug=flask_debug,
            log_level=log_level,
        )

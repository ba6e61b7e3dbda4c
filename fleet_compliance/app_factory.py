from __future__ import annotations

import logging
from typing import Optional

from flask import Flask

from fleet_compliance.adapters.iamaas_tokens import IamaasTokenProvider
from fleet_compliance.adapters.ocs_inventory import OcsInventoryClient
from fleet_compliance.adapters.vault_secrets import VaultSecretStore
from fleet_compliance.config.ini_config import AppSettings, IniConfig
from fleet_compliance.services.compliance_service import ComplianceService
from fleet_compliance.web.routes import create_blueprint, register_error_handlers

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s - %(message)s"


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    compliance_service: Optional[ComplianceService] = None,
    secret_store=None,
) -> Flask:
    if settings is None:
        settings = IniConfig.from_env_or_default().load_settings()

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    if secret_store is None:
        secret_store = VaultSecretStore(
            uri=settings.vault_uri,
            role_id=settings.vault_role_id,
            secret_id=settings.vault_secret_id,
            config_path=settings.vault_config_path,
            namespace=settings.vault_namespace,
            verify=not settings.vault_skip_verify,
        )

    if compliance_service is None:
        compliance_service = ComplianceService(
            secret_store=secret_store,
            token_provider=IamaasTokenProvider(retry_policy=settings.retry_policy),
            inventory=OcsInventoryClient(
                retry_policy=settings.retry_policy,
                base_url_template=settings.ocs_base_url_template,
            ),
            regions=settings.regions,
            max_workers=settings.max_workers,
        )

    app = Flask(__name__)
    app.json.sort_keys = False
    app.register_blueprint(create_blueprint(compliance_service, secret_store))
    register_error_handlers(app)

    app.config["HOST"] = settings.flask_host
    app.config["PORT"] = settings.flask_port
    app.config["DEBUG"] = settings.flask_debug

    return app

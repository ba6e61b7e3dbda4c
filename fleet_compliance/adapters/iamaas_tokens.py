from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

import requests

from fleet_compliance.adapters.http_retry import PerThreadSession, request_json
from fleet_compliance.domain.errors import AuthenticationFailure
from fleet_compliance.domain.models import RetryPolicy
from fleet_compliance.ports.tokens import TokenProvider

logger = logging.getLogger(__name__)


@dataclass
class IamaasTokenProvider(TokenProvider):
    """OAuth client-credentials exchange against an IAMaaS token endpoint."""
    retry_policy: RetryPolicy
    session: requests.Session = field(default_factory=PerThreadSession)
    sleep: Callable[[float], None] = time.sleep

    def get_access_token(self, token_endpoint: str, client_id: str, client_secret: str, scope: str) -> str:
        logger.info("Requesting access token from IAMaaS: %s", token_endpoint)

        try:
            payload = request_json(
                self.session,
                "POST",
                token_endpoint,
                self.retry_policy,
                describe="IAMaaS token request",
                sleep=self.sleep,
                auth=(client_id, client_secret),
                headers={"Accept": "application/json"},
                data={"grant_type": "client_credentials", "scope": scope},
            )
        except requests.RequestException as e:
            logger.error("Failed to obtain access token from IAMaaS: %s", e)
            raise AuthenticationFailure(f"Failed to obtain access token: {e}") from e

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise AuthenticationFailure("Failed to obtain access token: No access_token in IAMaaS response")

        logger.info("Successfully obtained access token")
        return str(token)

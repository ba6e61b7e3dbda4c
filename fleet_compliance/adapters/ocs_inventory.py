from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from fleet_compliance.adapters.http_retry import PerThreadSession, request_json
from fleet_compliance.domain.errors import UpstreamFailure
from fleet_compliance.domain.models import RetryPolicy, ServerRecord
from fleet_compliance.ports.inventory import InventoryClient

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL_TEMPLATE = "https://ocs.eu-fr-{region}.cloud/v0"


def _to_record(raw: Dict[str, Any]) -> ServerRecord:
    image = raw.get("image")
    image_id = image.get("id") if isinstance(image, dict) else None
    return ServerRecord(
        name=raw.get("name"),
        image_id=str(image_id) if image_id else None,
    )


@dataclass
class OcsInventoryClient(InventoryClient):
    retry_policy: RetryPolicy
    base_url_template: str = DEFAULT_BASE_URL_TEMPLATE
    session: requests.Session = field(default_factory=PerThreadSession)
    sleep: Callable[[float], None] = time.sleep

    def _base_url(self, region: str) -> str:
        return self.base_url_template.format(region=region).rstrip("/")

    @staticmethod
    def _headers(token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Accept": "application/json"}

    def list_servers(self, region: str, token: str) -> List[ServerRecord]:
        url = f"{self._base_url(region)}/servers/detail"
        logger.info("Fetching servers from: %s", url)

        try:
            payload = request_json(
                self.session,
                "GET",
                url,
                self.retry_policy,
                describe=f"servers fetch for region {region}",
                sleep=self.sleep,
                headers=self._headers(token),
            )
        except requests.RequestException as e:
            logger.error("Failed to fetch servers from region %s: %s", region, e)
            raise UpstreamFailure(f"Failed to fetch servers: {e}") from e

        servers = payload.get("servers") if isinstance(payload, dict) else None
        if not isinstance(servers, list):
            raise UpstreamFailure("Failed to fetch servers: No servers in response")

        records = [_to_record(s) for s in servers if isinstance(s, dict)]
        logger.info("Fetched %d servers from region %s", len(records), region)
        return records

    def resolve_image_name(self, region: str, image_id: str, token: str) -> Optional[str]:
        url = f"{self._base_url(region)}/images/{image_id}"

        try:
            payload = request_json(
                self.session,
                "GET",
                url,
                self.retry_policy,
                describe=f"image fetch for {image_id}",
                sleep=self.sleep,
                headers=self._headers(token),
            )
        except (requests.RequestException, ValueError) as e:
            logger.warning("Failed to fetch image %s from region %s: %s", image_id, region, e)
            return None

        image = payload.get("image") if isinstance(payload, dict) else None
        if not isinstance(image, dict):
            return None
        name = image.get("name")
        return str(name) if name else None

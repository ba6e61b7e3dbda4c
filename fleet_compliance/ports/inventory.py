from __future__ import annotations

from typing import List, Optional

from fleet_compliance.domain.models import ServerRecord


class InventoryClient:
    """Strategy interface over the regional cloud inventory API."""

    def list_servers(self, region: str, token: str) -> List[ServerRecord]:
        """Raises UpstreamFailure when the listing cannot be obtained."""
        raise NotImplementedError

    def resolve_image_name(self, region: str, image_id: str, token: str) -> Optional[str]:
        """Never raises; returns None when the name cannot be fetched."""
        raise NotImplementedError

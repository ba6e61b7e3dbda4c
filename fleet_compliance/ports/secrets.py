from __future__ import annotations

from typing import Optional, Set

from fleet_compliance.domain.models import ApplicationConfig


class SecretStore:
    """Strategy interface: per-application credentials. Every call is a fresh read."""

    def get_application_config(self, app_name: str) -> Optional[ApplicationConfig]:
        raise NotImplementedError

    def list_application_names(self) -> Set[str]:
        raise NotImplementedError

    def test_connection(self) -> bool:
        raise NotImplementedError

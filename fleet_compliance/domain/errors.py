######## errors.py
########

from __future__ import annotations

from typing import Iterable


class ComplianceError(Exception):
    """Base class for failures the evaluator records as result data."""


class ConfigurationError(ComplianceError):
    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__("Missing required config keys: " + ", ".join(self.missing))


class AuthenticationFailure(ComplianceError):
    pass


class UpstreamFailure(ComplianceError):
    pass


class NotFoundError(ComplianceError):
    pass


class SecretStoreError(ComplianceError):
    pass

######## models.py
########

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Mapping, Optional, TypeVar

T = TypeVar("T")

NO_WEEK_INFO = "No week info or unparsable"
OLDER_THAN_CURRENT = "Older than current week"
FUTURE_WEEK = "Future week/year"

NOT_AVAILABLE = "N/A"

# secret store key -> attribute, in the order missing keys are reported
REQUIRED_CONFIG_KEYS = (
    ("account_id", "account_id"),
    ("client_id", "client_id"),
    ("client_secret", "client_secret"),
    ("iamaas_url", "token_endpoint"),
    ("sgcp_iamaas_scopes", "scope_template"),
)


def compliance_percentage(compliant: int, total: int) -> float:
    """Percentage with two decimals, half-up; 0.0 for an empty population."""
    if total <= 0:
        return 0.0
    return math.floor(compliant / total * 10000.0 + 0.5) / 100.0


def _without_nulls(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass(frozen=True)
class RetryPolicy:
    """One initial attempt plus up to max_retries retries, fixed delay between them."""
    max_retries: int = 5
    delay_seconds: float = 120.0
    timeout_seconds: float = 60.0

    @property
    def attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Tagged result of one unit of evaluation: a value or an error message."""
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @staticmethod
    def success(value: T) -> "Outcome[T]":
        return Outcome(value=value)

    @staticmethod
    def failure(error: BaseException | str) -> "Outcome[T]":
        return Outcome(error=str(error) or type(error).__name__)


@dataclass(frozen=True)
class ApplicationConfig:
    account_id: Optional[str]
    client_id: Optional[str]
    client_secret: Optional[str]
    token_endpoint: Optional[str]
    scope_template: Optional[str]

    @staticmethod
    def from_mapping(raw: Mapping[str, Any]) -> "ApplicationConfig":
        values = {}
        for key, attr in REQUIRED_CONFIG_KEYS:
            v = raw.get(key)
            values[attr] = str(v).strip() if v is not None else None
        return ApplicationConfig(**values)

    def missing_fields(self) -> List[str]:
        return [key for key, attr in REQUIRED_CONFIG_KEYS if not getattr(self, attr)]


@dataclass(frozen=True)
class ServerRecord:
    name: Optional[str]
    image_id: Optional[str]


@dataclass(frozen=True)
class Classification:
    year: Optional[int]
    week: Optional[int]
    reason: Optional[str]

    @property
    def compliant(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class ServerInfo:
    name: Optional[str]
    image_id: str
    image_name: str
    image_year: Optional[int] = None
    image_week: Optional[int] = None
    reason: Optional[str] = None

    @property
    def compliant(self) -> bool:
        return self.reason is None

    def to_dict(self) -> Dict[str, Any]:
        return _without_nulls(
            {
                "name": self.name,
                "image_name": self.image_name,
                "image_id": self.image_id,
                "image_year": self.image_year,
                "image_week": self.image_week,
                "reason": self.reason,
            }
        )


@dataclass(frozen=True)
class RegionResult:
    total_servers: int
    compliant: int
    non_compliant: int
    compliance_percentage: float
    good_servers: List[ServerInfo] = field(default_factory=list)
    bad_servers: List[ServerInfo] = field(default_factory=list)
    error: Optional[str] = None

    @staticmethod
    def from_servers(servers: List[ServerInfo]) -> "RegionResult":
        good = [s for s in servers if s.compliant]
        bad = [s for s in servers if not s.compliant]
        return RegionResult(
            total_servers=len(servers),
            compliant=len(good),
            non_compliant=len(bad),
            compliance_percentage=compliance_percentage(len(good), len(servers)),
            good_servers=good,
            bad_servers=bad,
        )

    @staticmethod
    def failed(error: str) -> "RegionResult":
        return RegionResult(
            total_servers=0,
            compliant=0,
            non_compliant=0,
            compliance_percentage=0.0,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _without_nulls(
            {
                "total_servers": self.total_servers,
                "compliant": self.compliant,
                "non_compliant": self.non_compliant,
                "compliance_percentage": self.compliance_percentage,
                "good_servers": [s.to_dict() for s in self.good_servers],
                "bad_servers": [s.to_dict() for s in self.bad_servers],
                "error": self.error,
            }
        )


@dataclass(frozen=True)
class ApplicationResult:
    app_name: str
    timestamp: Optional[datetime] = None
    current_year: Optional[int] = None
    current_week: Optional[int] = None
    regions: Dict[str, RegionResult] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_nulls(
            {
                "app_name": self.app_name,
                "timestamp": self.timestamp.isoformat() if self.timestamp else None,
                "current_week": self.current_week,
                "current_year": self.current_year,
                "regions": {name: r.to_dict() for name, r in self.regions.items()},
                "error": self.error,
            }
        )


@dataclass(frozen=True)
class ComplianceTotals:
    total_servers: int
    compliant: int
    non_compliant: int

    @property
    def compliance_percentage(self) -> float:
        return compliance_percentage(self.compliant, self.total_servers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_servers": self.total_servers,
            "compliant": self.compliant,
            "non_compliant": self.non_compliant,
            "compliance_percentage": self.compliance_percentage,
        }


@dataclass(frozen=True)
class AppSummary:
    app_name: str
    totals: ComplianceTotals

    def to_dict(self) -> Dict[str, Any]:
        return {"app_name": self.app_name, **self.totals.to_dict()}


@dataclass(frozen=True)
class FleetSummary:
    timestamp: datetime
    overall: ComplianceTotals
    by_app: List[AppSummary]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "overall": self.overall.to_dict(),
            "by_app": [a.to_dict() for a in self.by_app],
        }

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from fleet_compliance.domain.errors import AuthenticationFailure, NotFoundError, UpstreamFailure
from fleet_compliance.domain.models import (
    NO_WEEK_INFO,
    OLDER_THAN_CURRENT,
    ApplicationConfig,
    ServerRecord,
)
from fleet_compliance.services.compliance_service import ComplianceService
from fleet_compliance.services.image_cache import ImageNameCache

# 2025-01-15 is in ISO week 2025-W03
FIXED_NOW = datetime(2025, 1, 15, 10, 30, 0)


# -----------------------------
# Test doubles
# -----------------------------
def make_config(**overrides) -> ApplicationConfig:
    raw = {
        "account_id": "acc-1",
        "client_id": "cid",
        "client_secret": "secret",
        "iamaas_url": "https://iam.example/token",
        "sgcp_iamaas_scopes": "ocs:read ocs:list",
    }
    raw.update(overrides)
    return ApplicationConfig.from_mapping({k: v for k, v in raw.items() if v is not None})


class FakeSecretStore:
    def __init__(self, configs: Dict[str, ApplicationConfig]):
        self.configs = configs
        self.reads = 0

    def get_application_config(self, app_name: str) -> Optional[ApplicationConfig]:
        self.reads += 1
        return self.configs.get(app_name)

    def list_application_names(self):
        return set(self.configs)


class FakeTokenProvider:
    def __init__(self, fail_for: Optional[set] = None):
        self.calls: List[tuple] = []
        self.fail_for = fail_for or set()

    def get_access_token(self, token_endpoint, client_id, client_secret, scope) -> str:
        self.calls.append((token_endpoint, client_id, client_secret, scope))
        if client_id in self.fail_for:
            raise AuthenticationFailure("Failed to obtain access token: 401 Unauthorized")
        return f"token-{client_id}"


class FakeInventory:
    def __init__(
        self,
        servers: Dict[str, List[ServerRecord]],
        names: Dict[str, Optional[str]],
        failing_regions: Optional[set] = None,
    ):
        self.servers = servers
        self.names = names
        self.failing_regions = failing_regions or set()
        self.image_calls: List[tuple] = []
        self.tokens_seen: List[str] = []
        self._lock = threading.Lock()

    def list_servers(self, region: str, token: str) -> List[ServerRecord]:
        with self._lock:
            self.tokens_seen.append(token)
        if region in self.failing_regions:
            raise UpstreamFailure("Failed to fetch servers: 503 Service Unavailable")
        return list(self.servers.get(region, []))

    def resolve_image_name(self, region: str, image_id: str, token: str) -> Optional[str]:
        with self._lock:
            self.image_calls.append((region, image_id))
        return self.names.get(image_id)


# -----------------------------
# Helpers
# -----------------------------
def make_service(inventory, configs=None, tokens=None, clock=None) -> ComplianceService:
    return ComplianceService(
        secret_store=FakeSecretStore(configs if configs is not None else {"shop": make_config()}),
        token_provider=tokens or FakeTokenProvider(),
        inventory=inventory,
        regions=("paris", "north"),
        max_workers=4,
        clock=clock or (lambda: FIXED_NOW),
    )


def standard_inventory(**kwargs) -> FakeInventory:
    return FakeInventory(
        servers={
            "paris": [
                ServerRecord("p-1", "img-current"),
                ServerRecord("p-2", "img-old"),
                ServerRecord("p-3", "img-current"),
                ServerRecord("p-4", None),
            ],
            "north": [
                ServerRecord("n-1", "img-current"),
            ],
        },
        names={"img-current": "base-image_2025_w03", "img-old": "base-image_2024_w52"},
        **kwargs,
    )


# -----------------------------
# Region
# -----------------------------
def test_region_partitions_servers_preserving_order():
    svc = make_service(standard_inventory())
    r = svc.evaluate_region("paris", "tok", 2025, 3)

    assert r.error is None
    assert r.total_servers == 4
    assert [s.name for s in r.good_servers] == ["p-1", "p-3"]
    assert [s.name for s in r.bad_servers] == ["p-2", "p-4"]
    assert r.compliant + r.non_compliant == r.total_servers
    assert r.compliance_percentage == 50.0

    reasons = {s.name: s.reason for s in r.bad_servers}
    assert reasons == {"p-2": OLDER_THAN_CURRENT, "p-4": NO_WEEK_INFO}


def test_region_resolves_each_image_once():
    servers = [ServerRecord(f"s-{i}", "shared-img") for i in range(25)]
    servers.append(ServerRecord("other", "other-img"))
    inv = FakeInventory({"paris": servers}, {"shared-img": "x_2025_w03", "other-img": "y_2025_w03"})
    svc = make_service(inv)

    r = svc.evaluate_region("paris", "tok", 2025, 3)

    assert r.compliant == 26
    assert sorted(inv.image_calls) == [("paris", "other-img"), ("paris", "shared-img")]


def test_region_skips_lookups_already_in_cache():
    inv = FakeInventory({"paris": [ServerRecord("a", "img-1")]}, {"img-1": "should-not-be-used"})
    cache = ImageNameCache()
    cache.put_if_absent("img-1", "cached_2025_w03")
    svc = make_service(inv)

    r = svc.evaluate_region("paris", "tok", 2025, 3, cache=cache)

    assert inv.image_calls == []
    assert r.good_servers[0].image_name == "cached_2025_w03"


def test_region_unresolvable_image_is_unparsable():
    inv = FakeInventory({"paris": [ServerRecord("a", "gone")]}, {"gone": None})
    r = make_service(inv).evaluate_region("paris", "tok", 2025, 3)

    assert r.non_compliant == 1
    info = r.bad_servers[0]
    assert info.image_id == "gone"
    assert info.image_name == "N/A"
    assert info.reason == NO_WEEK_INFO


def test_region_listing_failure_is_captured():
    inv = standard_inventory(failing_regions={"north"})
    r = make_service(inv).evaluate_region("north", "tok", 2025, 3)

    assert r.error == "Failed to fetch servers: 503 Service Unavailable"
    assert (r.total_servers, r.compliant, r.non_compliant) == (0, 0, 0)
    assert r.compliance_percentage == 0.0
    assert r.good_servers == [] and r.bad_servers == []


def test_empty_region_has_zero_percentage():
    inv = FakeInventory({"paris": []}, {})
    r = make_service(inv).evaluate_region("paris", "tok", 2025, 3)
    assert r.total_servers == 0
    assert r.compliance_percentage == 0.0
    assert r.error is None


# -----------------------------
# Application
# -----------------------------
def test_application_uses_one_token_and_reference_week():
    inv = standard_inventory()
    tokens = FakeTokenProvider()
    result = make_service(inv, tokens=tokens).evaluate_application("shop")

    assert result.error is None
    assert (result.current_year, result.current_week) == (2025, 3)
    assert result.timestamp == FIXED_NOW
    assert list(result.regions) == ["paris", "north"]
    assert len(tokens.calls) == 1
    assert set(inv.tokens_seen) == {"token-cid"}
    assert result.regions["north"].compliance_percentage == 100.0


def test_week_is_fixed_once_per_application_even_if_clock_rolls_over():
    # Sunday 2025-W03 on the first reading, Monday 2025-W04 afterwards
    readings = [datetime(2025, 1, 19, 23, 59, 59)]
    later = datetime(2025, 1, 20, 0, 0, 1)
    calls: List[datetime] = []

    def clock() -> datetime:
        now = readings.pop(0) if readings else later
        calls.append(now)
        return now

    result = make_service(standard_inventory(), clock=clock).evaluate_application("shop")

    assert (result.current_year, result.current_week) == (2025, 3)
    assert result.timestamp == datetime(2025, 1, 19, 23, 59, 59)
    assert len(calls) == 1
    assert result.regions["paris"].compliant == 2
    assert result.regions["north"].compliance_percentage == 100.0


def test_application_builds_scope_from_template():
    tokens = FakeTokenProvider()
    make_service(standard_inventory(), tokens=tokens).evaluate_application("shop")

    endpoint, client_id, client_secret, scope = tokens.calls[0]
    assert endpoint == "https://iam.example/token"
    assert (client_id, client_secret) == ("cid", "secret")
    assert scope == "acc-1:sgcp:ocs:read acc-1:sgcp:ocs:list"


def test_failing_region_does_not_affect_sibling():
    inv = standard_inventory(failing_regions={"north"})
    result = make_service(inv).evaluate_application("shop")

    assert result.error is None
    assert result.regions["north"].error is not None
    paris = result.regions["paris"]
    assert paris.error is None
    assert paris.total_servers == 4
    assert paris.compliant == 2


def test_missing_client_secret_is_configuration_error():
    config = make_config(client_secret=None)
    assert config.missing_fields() == ["client_secret"]

    result = make_service(standard_inventory(), configs={"shop": config}).evaluate_application("shop")
    assert result.error == "Missing required config keys: client_secret"
    assert result.regions == {}


def test_all_missing_fields_are_listed():
    config = ApplicationConfig.from_mapping({"client_id": "cid", "sgcp_iamaas_scopes": "  "})
    assert config.missing_fields() == ["account_id", "client_secret", "iamaas_url", "sgcp_iamaas_scopes"]


def test_token_failure_is_application_error():
    tokens = FakeTokenProvider(fail_for={"cid"})
    inv = standard_inventory()
    result = make_service(inv, tokens=tokens).evaluate_application("shop")

    assert result.error.startswith("Failed to obtain access token")
    assert result.regions == {}
    assert inv.tokens_seen == []


def test_check_compliance_unknown_app_raises():
    with pytest.raises(NotFoundError):
        make_service(standard_inventory()).check_compliance("nope")


def test_check_compliance_reads_config_once():
    svc = make_service(standard_inventory())
    svc.check_compliance("shop")
    assert svc.secret_store.reads == 1


# -----------------------------
# Batch
# -----------------------------
def test_batch_isolates_application_failures():
    configs = {
        "billing": make_config(client_id="bad"),
        "shop": make_config(),
        "legacy": make_config(account_id=""),
    }
    svc = make_service(standard_inventory(), configs=configs, tokens=FakeTokenProvider(fail_for={"bad"}))

    results = svc.evaluate_all()

    assert list(results) == ["billing", "legacy", "shop"]
    assert results["billing"].error.startswith("Failed to obtain access token")
    assert results["legacy"].error == "Missing required config keys: account_id"
    assert results["shop"].error is None
    assert results["shop"].regions["paris"].total_servers == 4


def test_batch_with_no_applications():
    assert make_service(standard_inventory(), configs={}).evaluate_all() == {}

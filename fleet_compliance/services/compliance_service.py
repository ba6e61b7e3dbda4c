from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from fleet_compliance.domain.errors import ConfigurationError, NotFoundError
from fleet_compliance.domain.models import (
    ApplicationConfig,
    ApplicationResult,
    Outcome,
    RegionResult,
    ServerInfo,
)
from fleet_compliance.ports import InventoryClient, SecretStore, TokenProvider
from fleet_compliance.services.classification import classify_server, current_iso_week
from fleet_compliance.services.image_cache import ImageNameCache
from fleet_compliance.services.scope_builder import build_scope

logger = logging.getLogger(__name__)

DEFAULT_REGIONS = ("paris", "north")


@dataclass
class ComplianceService:
    """
    Service layer: checks whether fleet servers run an image tagged with the current ISO week.

    Failures are recorded as data, never raised past a unit boundary:
    - a region that cannot be listed gets an error RegionResult, siblings carry on
    - an application whose credentials or token fail gets an error ApplicationResult
    - image-name lookups that fail classify the server as unparsable
    """
    secret_store: SecretStore
    token_provider: TokenProvider
    inventory: InventoryClient
    regions: Sequence[str] = DEFAULT_REGIONS
    max_workers: int = 4
    clock: Callable[[], datetime] = datetime.now

    # -----------------------------
    # Region
    # -----------------------------
    def evaluate_region(
        self,
        region: str,
        token: str,
        current_year: int,
        current_week: int,
        *,
        cache: Optional[ImageNameCache] = None,
        debug: bool = False,
    ) -> RegionResult:
        outcome = self._try_region(
            region,
            token,
            current_year,
            current_week,
            cache if cache is not None else ImageNameCache(),
            debug,
        )
        if outcome.ok:
            return outcome.value
        return RegionResult.failed(outcome.error)

    def _try_region(
        self,
        region: str,
        token: str,
        current_year: int,
        current_week: int,
        cache: ImageNameCache,
        debug: bool,
    ) -> Outcome[RegionResult]:
        logger.info("Checking compliance for region: %s", region)
        try:
            servers = self.inventory.list_servers(region, token)

            # distinct ids, first-seen order
            image_ids = list(dict.fromkeys(s.image_id for s in servers if s.image_id))
            self._resolve_image_names(region, token, image_ids, cache)

            infos: List[ServerInfo] = [
                classify_server(
                    s,
                    cache.get(s.image_id) if s.image_id else None,
                    current_year,
                    current_week,
                )
                for s in servers
            ]
        except Exception as e:
            logger.exception("Error checking compliance for region: %s", region)
            return Outcome.failure(e)

        if debug:
            for info in infos:
                logger.info(
                    "[%s] %s image=%s (%s) year=%s week=%s reason=%s",
                    region, info.name, info.image_name, info.image_id,
                    info.image_year, info.image_week, info.reason or "compliant",
                )

        result = RegionResult.from_servers(infos)
        logger.info(
            "Region %s: %d/%d compliant (%.2f%%)",
            region, result.compliant, result.total_servers, result.compliance_percentage,
        )
        return Outcome.success(result)

    def _resolve_image_names(
        self,
        region: str,
        token: str,
        image_ids: List[str],
        cache: ImageNameCache,
    ) -> None:
        pending = [i for i in image_ids if i not in cache]
        if not pending:
            return

        def lookup(image_id: str) -> Optional[str]:
            return self.inventory.resolve_image_name(region, image_id, token)

        workers = max(1, min(self.max_workers, len(pending)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            # list() surfaces worker exceptions here
            list(pool.map(lambda image_id: cache.resolve(image_id, lookup), pending))

    # -----------------------------
    # Application
    # -----------------------------
    def _try_token(self, app_name: str, config: Optional[ApplicationConfig]) -> Outcome[str]:
        try:
            if config is None:
                config = self.secret_store.get_application_config(app_name)
            if config is None:
                raise NotFoundError(f"App configuration not found: {app_name}")

            missing = config.missing_fields()
            if missing:
                raise ConfigurationError(missing)

            scope = build_scope(config.account_id, config.scope_template)
            token = self.token_provider.get_access_token(
                config.token_endpoint,
                config.client_id,
                config.client_secret,
                scope,
            )
        except Exception as e:
            logger.error("Error preparing compliance check for app %s: %s", app_name, e)
            return Outcome.failure(e)
        return Outcome.success(token)

    def evaluate_application(
        self,
        app_name: str,
        *,
        config: Optional[ApplicationConfig] = None,
        debug: bool = False,
    ) -> ApplicationResult:
        logger.info("Checking compliance for app: %s", app_name)

        # one reference week for every region of this call
        now = self.clock()
        current_year, current_week = current_iso_week(now)
        if debug:
            logger.info("Current ISO week: %d-W%02d", current_year, current_week)

        token = self._try_token(app_name, config)
        if not token.ok:
            return ApplicationResult(
                app_name=app_name,
                timestamp=now,
                current_year=current_year,
                current_week=current_week,
                error=token.error,
            )

        def run(region: str) -> RegionResult:
            return self.evaluate_region(
                region,
                token.value,
                current_year,
                current_week,
                cache=ImageNameCache(),
                debug=debug,
            )

        workers = max(1, min(self.max_workers, len(self.regions)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            region_results = list(pool.map(run, self.regions))

        return ApplicationResult(
            app_name=app_name,
            timestamp=now,
            current_year=current_year,
            current_week=current_week,
            regions=dict(zip(self.regions, region_results)),
        )

    def check_compliance(self, app_name: str, *, debug: bool = False) -> ApplicationResult:
        """Single-application entry point; unknown applications raise NotFoundError."""
        config = self.secret_store.get_application_config(app_name)
        if config is None:
            raise NotFoundError(f"App configuration not found: {app_name}")
        return self.evaluate_application(app_name, config=config, debug=debug)

    # -----------------------------
    # Batch
    # -----------------------------
    def _evaluate_isolated(self, app_name: str, debug: bool) -> ApplicationResult:
        try:
            return self.evaluate_application(app_name, debug=debug)
        except Exception as e:
            logger.exception("Error checking compliance for app: %s", app_name)
            return ApplicationResult(app_name=app_name, error=Outcome.failure(e).error)

    def evaluate_all(self, *, debug: bool = False) -> Dict[str, ApplicationResult]:
        """Every known application, keyed and ordered by name."""
        logger.info("Checking compliance for all applications")
        names = sorted(self.secret_store.list_application_names())
        if not names:
            return {}

        workers = max(1, min(self.max_workers, len(names)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda n: self._evaluate_isolated(n, debug), names))

        return dict(zip(names, results))

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional

from fleet_compliance.domain.models import (
    AppSummary,
    ApplicationResult,
    ComplianceTotals,
    FleetSummary,
)


def application_totals(result: ApplicationResult) -> ComplianceTotals:
    """Sum over regions that evaluated cleanly; failed regions count as zero."""
    total = compliant = non_compliant = 0
    for region in (result.regions or {}).values():
        if region.error is not None:
            continue
        total += region.total_servers
        compliant += region.compliant
        non_compliant += region.non_compliant
    return ComplianceTotals(total_servers=total, compliant=compliant, non_compliant=non_compliant)


def summarize(
    results: Mapping[str, ApplicationResult],
    timestamp: Optional[datetime] = None,
) -> FleetSummary:
    by_app = []
    total = compliant = non_compliant = 0

    for app_name, result in results.items():
        t = application_totals(result)
        by_app.append(AppSummary(app_name=app_name, totals=t))
        total += t.total_servers
        compliant += t.compliant
        non_compliant += t.non_compliant

    return FleetSummary(
        timestamp=timestamp or datetime.now(),
        overall=ComplianceTotals(total_servers=total, compliant=compliant, non_compliant=non_compliant),
        by_app=by_app,
    )

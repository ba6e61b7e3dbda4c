from __future__ import annotations

import re
from datetime import date
from typing import Optional, Tuple

from fleet_compliance.domain.models import (
    FUTURE_WEEK,
    NO_WEEK_INFO,
    NOT_AVAILABLE,
    OLDER_THAN_CURRENT,
    Classification,
    ServerInfo,
    ServerRecord,
)

# e.g. "base-image_2025_w03"; ASCII digits only
WEEK_PATTERN = re.compile(r"_([0-9]{4})_w([0-9]{2})", re.IGNORECASE)


def current_iso_week(today: date) -> Tuple[int, int]:
    """ISO 8601 week-based year and week number (Monday-start weeks)."""
    iso = today.isocalendar()
    return iso[0], iso[1]


def extract_year_week(image_name: Optional[str]) -> Optional[Tuple[int, int]]:
    if image_name is None:
        return None
    m = WEEK_PATTERN.search(image_name)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def classify(image_name: Optional[str], current_year: int, current_week: int) -> Classification:
    year_week = extract_year_week(image_name)
    if year_week is None:
        return Classification(year=None, week=None, reason=NO_WEEK_INFO)

    year, week = year_week
    if (year, week) == (current_year, current_week):
        reason = None
    elif (year, week) < (current_year, current_week):
        reason = OLDER_THAN_CURRENT
    else:
        reason = FUTURE_WEEK
    return Classification(year=year, week=week, reason=reason)


def classify_server(
    server: ServerRecord,
    image_name: Optional[str],
    current_year: int,
    current_week: int,
) -> ServerInfo:
    c = classify(image_name, current_year, current_week)
    return ServerInfo(
        name=server.name,
        image_id=server.image_id if server.image_id is not None else NOT_AVAILABLE,
        image_name=image_name if image_name is not None else NOT_AVAILABLE,
        image_year=c.year,
        image_week=c.week,
        reason=c.reason,
    )

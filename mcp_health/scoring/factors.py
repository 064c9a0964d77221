"""Individual trust factors: each maps one raw signal to a 0-100 score."""

import operator
import re
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..core.models import ServerRecord, utc_now

# (threshold, score) tables, evaluated top to bottom; the first match wins
AVAILABILITY_STEPS = [(99.9, 100), (99.0, 90), (95.0, 70), (90.0, 50), (80.0, 25)]
LATENCY_STEPS = [(500, 100), (1000, 80), (2000, 66), (5000, 33)]
STABILITY_STEPS = [(30, 100), (14, 80), (7, 65), (3, 50), (1, 33)]
FRESHNESS_STEPS = [(30, 100), (90, 80), (180, 50)]
POPULARITY_STEPS = [
    (1000, 100),
    (500, 90),
    (100, 80),
    (50, 70),
    (25, 60),
    (10, 50),
    (5, 40),
    (1, 30),
]

SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+")
METADATA_POINTS = 20
MIN_DESCRIPTION_LENGTH = 10

SECONDS_PER_DAY = 86400


def step_score(
    value: float,
    steps: list[tuple[float, int]],
    compare: Callable[[Any, Any], bool],
    default: int,
) -> int:
    """Score of the first step whose threshold satisfies compare(value, threshold)."""
    for threshold, score in steps:
        if compare(value, threshold):
            return score
    return default


def availability_score(uptime_pct: float | None) -> int:
    if uptime_pct is None:
        return 0
    return step_score(uptime_pct, AVAILABILITY_STEPS, operator.ge, 0)


def latency_score(p95_ms: float | None) -> int:
    if p95_ms is None:
        return 0
    return step_score(p95_ms, LATENCY_STEPS, operator.lt, 0)


def schema_stability_score(days_since_change: float | None) -> int:
    # No recorded change means the tool set has never moved
    if days_since_change is None:
        return 100
    return step_score(days_since_change, STABILITY_STEPS, operator.ge, 25)


def compliance_score(compliance_pass: bool | None) -> int:
    if compliance_pass is None:
        return 50
    return 100 if compliance_pass else 0


def metadata_quality_score(server: ServerRecord) -> int:
    """20 points each for description, repository, icon, website and a semver version."""
    score = 0
    if server.description and len(server.description) > MIN_DESCRIPTION_LENGTH:
        score += METADATA_POINTS
    if server.repo_url:
        score += METADATA_POINTS
    if server.icon_url:
        score += METADATA_POINTS
    if server.website_url:
        score += METADATA_POINTS
    if server.version and SEMVER_PATTERN.match(server.version):
        score += METADATA_POINTS
    return score


def days_since(moment: datetime | None, now: datetime | None = None) -> float | None:
    if moment is None:
        return None
    now = now or utc_now()
    return (now - moment).total_seconds() / SECONDS_PER_DAY


def freshness_score(days_since_update: float | None) -> int:
    if days_since_update is None:
        return 0
    return step_score(days_since_update, FRESHNESS_STEPS, operator.le, 0)


def popularity_score(use_count: int | None) -> int:
    # Unknown usage is neutral; a known zero scores nothing
    if use_count is None:
        return 50
    return step_score(use_count, POPULARITY_STEPS, operator.ge, 0)

"""Composite trust score: weighted sum of factor scores, tiered."""

import math
from dataclasses import dataclass
from datetime import datetime

from ..core.models import ServerRecord, utc_now
from ..core.result import FactorScore, ScoreBreakdown, ServerStats
from .factors import (
    availability_score,
    compliance_score,
    days_since,
    freshness_score,
    latency_score,
    metadata_quality_score,
    popularity_score,
    schema_stability_score,
)

WEIGHTS = {
    "availability": 0.30,
    "latency": 0.15,
    "schema_stability": 0.18,
    "protocol_compliance": 0.12,
    "metadata_quality": 0.10,
    "freshness": 0.05,
    "popularity": 0.10,
}

# Local-only servers cannot be probed, so only catalog signals count and the total is capped
LOCAL_WEIGHTS = {
    "metadata_quality": 0.50,
    "freshness": 0.25,
    "popularity": 0.25,
}
LOCAL_SCORE_CAP = 60


@dataclass(frozen=True)
class ScoreTier:
    name: str
    min_score: int
    max_score: int
    label: str
    emoji: str


SCORE_TIERS = [
    ScoreTier("excellent", 90, 100, "Excellent", "🟢"),
    ScoreTier("good", 70, 89, "Good", "🟡"),
    ScoreTier("fair", 50, 69, "Fair", "🟠"),
    ScoreTier("poor", 0, 49, "Poor", "🔴"),
]


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def clamp_score(value: int) -> int:
    return max(0, min(100, value))


def tier_for(score: int) -> ScoreTier:
    """First tier whose lower bound the score reaches."""
    for tier in SCORE_TIERS:
        if score >= tier.min_score:
            return tier
    return SCORE_TIERS[-1]


def _factor(name: str, score: int, weights: dict[str, float], raw=None) -> FactorScore:
    weight = weights[name]
    return FactorScore(name=name, score=score, weight=weight, weighted=score * weight, raw=raw)


def calculate_score(
    server: ServerRecord, stats: ServerStats | None = None, now: datetime | None = None
) -> ScoreBreakdown:
    """Score a server from its catalog metadata and check-history stats.

    Pure: the same inputs and ``now`` always give the same breakdown.
    """
    now = now or utc_now()
    stats = stats or ServerStats()
    days_since_update = days_since(server.registry_updated_at, now)

    catalog_factors = [
        ("metadata_quality", metadata_quality_score(server), None),
        ("freshness", freshness_score(days_since_update), days_since_update),
        ("popularity", popularity_score(server.external_use_count), server.external_use_count),
    ]

    if server.is_local_only:
        factors = {
            name: _factor(name, score, LOCAL_WEIGHTS, raw) for name, score, raw in catalog_factors
        }
        local = sum(factor.weighted for factor in factors.values())
        total = min(round_half_up(local * LOCAL_SCORE_CAP / 100), LOCAL_SCORE_CAP)
    else:
        uptime = stats.best_uptime
        remote_factors = [
            ("availability", availability_score(uptime), uptime),
            ("latency", latency_score(stats.latency_p95), stats.latency_p95),
            (
                "schema_stability",
                schema_stability_score(stats.days_since_schema_change),
                stats.days_since_schema_change,
            ),
            ("protocol_compliance", compliance_score(stats.compliance_pass), stats.compliance_pass),
        ]
        factors = {
            name: _factor(name, score, WEIGHTS, raw)
            for name, score, raw in remote_factors + catalog_factors
        }
        total = round_half_up(sum(factor.weighted for factor in factors.values()))

    total = clamp_score(total)
    tier = tier_for(total)

    return ScoreBreakdown(
        server_id=server.id,
        total_score=total,
        tier=tier.name,
        tier_label=tier.label,
        tier_emoji=tier.emoji,
        is_local_only=server.is_local_only,
        factors=factors,
        stats=stats,
        scored_at=now,
    )

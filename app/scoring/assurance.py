"""
Assurance haircut

Coverage level per provider → coverage ratio (Comprehensive 0.95,
Moderate 0.50, Limited 0.15). The haircut is the blend-weighted average of
the two providers' ratios; a provider with no coverage record counts as
Limited. Output lies in [0, 1]: the fraction of inherent risk considered
mitigated by assurance activity.
"""
from __future__ import annotations

from typing import Mapping, Optional, Union

from app.schemas.risk_request import CoverageLevel, ProviderType
from app.scoring.factors import SCORE_PRECISION, parse_coverage_level, parse_provider_type
from app.scoring.weights import COVERAGE_BLEND_KEYS, COVERAGE_RATIO_KEYS, WeightConfig, get_weight_config


def coverage_ratio(level: Union[str, CoverageLevel, None], weights: Optional[WeightConfig] = None) -> float:
    cfg = weights or get_weight_config()
    resolved = CoverageLevel.LIMITED if level is None else parse_coverage_level(level)
    return cfg.weight(COVERAGE_RATIO_KEYS[resolved])


def calculate_haircut(
    coverage: Mapping[Union[str, ProviderType], Union[str, CoverageLevel, None]],
    weights: Optional[WeightConfig] = None,
) -> float:
    """
    Args:
        coverage: provider type → coverage level; either provider may be absent.
    """
    cfg = weights or get_weight_config()
    levels = {parse_provider_type(p): lvl for p, lvl in coverage.items()}

    blend = {provider: max(cfg.weight(key), 0.0) for provider, key in COVERAGE_BLEND_KEYS.items()}
    blend_total = sum(blend.values())
    if blend_total <= 0:
        # Degenerate config: treat providers equally rather than divide by zero.
        blend = {provider: 1.0 for provider in COVERAGE_BLEND_KEYS}
        blend_total = float(len(blend))

    weighted = sum(
        coverage_ratio(levels.get(provider), cfg) * share
        for provider, share in blend.items()
    )
    haircut = weighted / blend_total
    return round(min(max(haircut, 0.0), 1.0), SCORE_PRECISION)


def coverage_of(coverage_rows) -> dict[ProviderType, str]:
    """AssuranceCoverage rows → {provider_type: coverage_level}."""
    return {parse_provider_type(row.provider_type): row.coverage_level for row in coverage_rows}

"""
Residual risk

Two sequential steps, on two different scales:

  1. Internal-audit residual = inherent × (1 − haircut)
     classified on the weighted-factor scale (0-2.5): >= 1.8 High, >= 1.0 Medium
  2. Combined residual = ia_blend × ordinal(ia_level) + erm_blend × ordinal(erm)
     with ordinal Low 1 / Medium 3 / High 5, classified on the
     level-severity scale (1-5): >= 3.6 High, >= 2.1 Medium

Pure: never touches storage.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from app.schemas.risk_request import RiskLevel
from app.scoring.factors import SCORE_PRECISION, parse_risk_level
from app.scoring.weights import (
    COMBINED_HIGH, COMBINED_MEDIUM, ERM_RESIDUAL_WEIGHT, IA_RESIDUAL_WEIGHT,
    WEIGHTED_HIGH, WEIGHTED_MEDIUM, WeightConfig, get_weight_config,
)


LEVEL_ORDINALS: dict[RiskLevel, int] = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 3,
    RiskLevel.HIGH: 5,
}


@dataclass(frozen=True)
class ResidualResult:
    ia_residual_score: float
    ia_residual_level: RiskLevel
    combined_score: float
    combined_level: RiskLevel


def _classify(score: float, high: float, medium: float) -> RiskLevel:
    if score >= high:
        return RiskLevel.HIGH
    if score >= medium:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify_weighted_score(score: float, weights: Optional[WeightConfig] = None) -> RiskLevel:
    """Inherent / internal-audit residual scale."""
    cfg = weights or get_weight_config()
    return _classify(score, cfg.threshold(WEIGHTED_HIGH), cfg.threshold(WEIGHTED_MEDIUM))


def classify_combined_score(score: float, weights: Optional[WeightConfig] = None) -> RiskLevel:
    """Combined residual (1-5) scale."""
    cfg = weights or get_weight_config()
    return _classify(score, cfg.threshold(COMBINED_HIGH), cfg.threshold(COMBINED_MEDIUM))


def level_to_ordinal(level: Union[str, RiskLevel]) -> int:
    return LEVEL_ORDINALS[parse_risk_level(level)]


def calculate_ia_residual(inherent_risk: float, haircut: float) -> float:
    return round(inherent_risk * (1.0 - haircut), SCORE_PRECISION)


def combine(
    inherent_risk: float,
    haircut: float,
    erm_residual: Union[str, RiskLevel],
    weights: Optional[WeightConfig] = None,
) -> ResidualResult:
    cfg = weights or get_weight_config()
    erm_level = parse_risk_level(erm_residual, field="erm_residual_risk")

    ia_score = calculate_ia_residual(inherent_risk, haircut)
    ia_level = classify_weighted_score(ia_score, cfg)

    combined = (
        cfg.weight(IA_RESIDUAL_WEIGHT) * LEVEL_ORDINALS[ia_level]
        + cfg.weight(ERM_RESIDUAL_WEIGHT) * LEVEL_ORDINALS[erm_level]
    )
    combined = round(combined, SCORE_PRECISION)

    return ResidualResult(
        ia_residual_score=ia_score,
        ia_residual_level=ia_level,
        combined_score=combined,
        combined_level=classify_combined_score(combined, cfg),
    )

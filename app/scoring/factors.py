"""
Inherent Risk — 7 qualitative factors

Each factor:
  1. Takes a Low / Medium / High rating
  2. Maps it to a fixed multiplier (Low 0.5, Medium 1.5, High 2.5)
  3. Contributes multiplier × weight to the inherent risk score

Weights come from WeightConfig, not from here. Under default weights the
score lies in [0.5, 2.5].

Convention: HIGHER score = HIGHER risk.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Union

from app.core.exceptions import ValidationError
from app.schemas.risk_request import RISK_FACTOR_FIELDS, CoverageLevel, ProviderType, RiskLevel
from app.scoring.weights import WeightConfig, get_weight_config


RATING_MULTIPLIERS: dict[RiskLevel, float] = {
    RiskLevel.LOW: 0.5,
    RiskLevel.MEDIUM: 1.5,
    RiskLevel.HIGH: 2.5,
}

SCORE_PRECISION = 4


@dataclass(frozen=True)
class FactorResult:
    factor_name: str
    rating: RiskLevel
    multiplier: float
    weight: float

    @property
    def weighted_score(self) -> float:
        return self.multiplier * self.weight


# ═══════════════════════════════════════════════════════════════
# Boundary validation: unknown values never reach the calculators
# ═══════════════════════════════════════════════════════════════

def parse_risk_level(value: Union[str, RiskLevel, None], field: str = "rating") -> RiskLevel:
    if isinstance(value, RiskLevel):
        return value
    try:
        return RiskLevel(value)
    except ValueError:
        raise ValidationError(
            f"Unrecognised risk rating {value!r} for {field}; expected Low, Medium or High",
            field=field, value=value,
        ) from None


def parse_coverage_level(value: Union[str, CoverageLevel, None], field: str = "coverage_level") -> CoverageLevel:
    if isinstance(value, CoverageLevel):
        return value
    try:
        return CoverageLevel(value)
    except ValueError:
        raise ValidationError(
            f"Unrecognised coverage level {value!r}; expected Comprehensive, Moderate or Limited",
            field=field, value=value,
        ) from None


def parse_provider_type(value: Union[str, ProviderType, None]) -> ProviderType:
    if isinstance(value, ProviderType):
        return value
    try:
        return ProviderType(value)
    except ValueError:
        raise ValidationError(
            f"Unrecognised provider type {value!r}; expected InternalAudit or ThirdParty",
            field="provider_type", value=value,
        ) from None


# ═══════════════════════════════════════════════════════════════
# Scoring
# ═══════════════════════════════════════════════════════════════

def score_factor(factor_name: str, rating: Union[str, RiskLevel], weights: WeightConfig) -> FactorResult:
    level = parse_risk_level(rating, field=factor_name)
    return FactorResult(
        factor_name=factor_name,
        rating=level,
        multiplier=RATING_MULTIPLIERS[level],
        weight=weights.weight(factor_name),
    )


def score_factors(ratings: Mapping[str, Union[str, RiskLevel]], weights: Optional[WeightConfig] = None) -> list[FactorResult]:
    """Score all seven factors. A missing rating is a validation error."""
    cfg = weights or get_weight_config()
    missing = [name for name in RISK_FACTOR_FIELDS if name not in ratings]
    if missing:
        raise ValidationError(f"Missing risk ratings: {', '.join(missing)}", field=missing[0])
    return [score_factor(name, ratings[name], cfg) for name in RISK_FACTOR_FIELDS]


def calculate_inherent_risk(ratings: Mapping[str, Union[str, RiskLevel]], weights: Optional[WeightConfig] = None) -> float:
    """Σ multiplier(rating_i) × weight_i over the seven factors."""
    total = sum(result.weighted_score for result in score_factors(ratings, weights))
    return round(total, SCORE_PRECISION)


def ratings_of(risk_factor) -> dict[str, str]:
    """Pull the seven ratings off a RiskFactor row (or any object with those attributes)."""
    return {name: getattr(risk_factor, name) for name in RISK_FACTOR_FIELDS}

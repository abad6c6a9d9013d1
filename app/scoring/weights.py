"""
Weight & threshold configuration

Process-wide, read-only from the calculators' point of view. Backed by the
risk_weights table; any key without a row falls back to the documented
default below. Weight edits are an administrative operation: they change the
backing rows and `reload_weight_config()` swaps in a fresh instance with a
bumped version. Already-stored scores are not recomputed until the area is
next touched (or recompute-all runs).
"""
from __future__ import annotations

import threading
import warnings
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

import structlog
from sqlalchemy import select

from app.core.config import get_settings
from app.core.exceptions import ConfigurationWarning
from app.models.risk_weight import RiskWeight
from app.schemas.risk_request import RISK_FACTOR_FIELDS, CoverageLevel, ProviderType, WeightCategory

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════
# Default factor weights (must sum to 1.0)
# ═══════════════════════════════════════════════════════════════
DEFAULT_FACTOR_WEIGHTS: dict[str, float] = {
    "financial_impact": 0.15,
    "legal_compliance_impact": 0.15,
    "strategic_significance": 0.20,
    "technological_cyber_impact": 0.15,
    "new_process_system": 0.10,
    "stakeholder_impact": 0.10,
    "c_level_concerns": 0.15,
}

# ═══════════════════════════════════════════════════════════════
# Assurance coverage
#   blend weights per provider, and coverage level → haircut ratio.
#   Limited counts as 0.15 (not zero); override Coverage_Limited to change.
# ═══════════════════════════════════════════════════════════════
COVERAGE_BLEND_KEYS: dict[ProviderType, str] = {
    ProviderType.INTERNAL_AUDIT: "Assurance_InternalAudit",
    ProviderType.THIRD_PARTY: "Assurance_ThirdParty",
}
COVERAGE_RATIO_KEYS: dict[CoverageLevel, str] = {
    CoverageLevel.COMPREHENSIVE: "Coverage_Comprehensive",
    CoverageLevel.MODERATE: "Coverage_Moderate",
    CoverageLevel.LIMITED: "Coverage_Limited",
}
DEFAULT_COVERAGE_WEIGHTS: dict[str, float] = {
    "Assurance_InternalAudit": 0.50,
    "Assurance_ThirdParty": 0.50,
    "Coverage_Comprehensive": 0.95,
    "Coverage_Moderate": 0.50,
    "Coverage_Limited": 0.15,
}

# ═══════════════════════════════════════════════════════════════
# Residual blend: internal-audit residual vs. ERM residual
# ═══════════════════════════════════════════════════════════════
IA_RESIDUAL_WEIGHT = "InternalAudit_ResidualWeight"
ERM_RESIDUAL_WEIGHT = "ERM_ResidualWeight"
DEFAULT_RESIDUAL_WEIGHTS: dict[str, float] = {
    IA_RESIDUAL_WEIGHT: 0.80,
    ERM_RESIDUAL_WEIGHT: 0.20,
}

# ═══════════════════════════════════════════════════════════════
# Classification thresholds on two distinct scales
#   combined residual (1-5 level severity):  >= 3.6 High, >= 2.1 Medium
#   weighted factor score (0-2.5):           >= 1.8 High, >= 1.0 Medium
# Plus audit-year offsets per priority level.
# ═══════════════════════════════════════════════════════════════
COMBINED_HIGH = "combined_high"
COMBINED_MEDIUM = "combined_medium"
WEIGHTED_HIGH = "weighted_high"
WEIGHTED_MEDIUM = "weighted_medium"
DEFAULT_THRESHOLDS: dict[str, float] = {
    COMBINED_HIGH: 3.6,
    COMBINED_MEDIUM: 2.1,
    WEIGHTED_HIGH: 1.8,
    WEIGHTED_MEDIUM: 1.0,
    "priority_year_offset_1": 1,
    "priority_year_offset_2": 2,
    "priority_year_offset_3": 3,
    "priority_year_offset_4": 4,
}

DEFAULT_WEIGHTS: dict[str, float] = {
    **DEFAULT_FACTOR_WEIGHTS,
    **DEFAULT_COVERAGE_WEIGHTS,
    **DEFAULT_RESIDUAL_WEIGHTS,
}

DEFAULT_CATEGORIES: dict[str, WeightCategory] = {
    **{k: WeightCategory.RISK_FACTOR for k in DEFAULT_FACTOR_WEIGHTS},
    **{k: WeightCategory.ASSURANCE_COVERAGE for k in DEFAULT_COVERAGE_WEIGHTS},
    **{k: WeightCategory.RESIDUAL_RISK for k in DEFAULT_RESIDUAL_WEIGHTS},
    **{k: WeightCategory.THRESHOLD for k in DEFAULT_THRESHOLDS},
}

assert set(DEFAULT_FACTOR_WEIGHTS) == set(RISK_FACTOR_FIELDS)
assert abs(sum(DEFAULT_FACTOR_WEIGHTS.values()) - 1.0) < 1e-9, "Weights must sum to 1.0"


@dataclass(frozen=True)
class WeightConfig:
    """Immutable snapshot of weights + thresholds. Overrides win over defaults."""
    weights: Mapping[str, float] = field(default_factory=dict)
    thresholds: Mapping[str, float] = field(default_factory=dict)
    version: int = 0
    issues: tuple[str, ...] = ()

    def weight(self, factor_name: str) -> float:
        if factor_name in self.weights:
            return float(self.weights[factor_name])
        if factor_name in DEFAULT_WEIGHTS:
            return DEFAULT_WEIGHTS[factor_name]
        logger.warning("unknown_weight_requested", factor_name=factor_name)
        return 0.0

    def threshold(self, name: str) -> float:
        if name in self.thresholds:
            return float(self.thresholds[name])
        if name in DEFAULT_THRESHOLDS:
            return float(DEFAULT_THRESHOLDS[name])
        logger.warning("unknown_threshold_requested", threshold=name)
        return 0.0

    def is_default(self, name: str) -> bool:
        return name not in self.weights and name not in self.thresholds

    @property
    def factor_weights(self) -> dict[str, float]:
        return {name: self.weight(name) for name in RISK_FACTOR_FIELDS}

    @property
    def factor_weight_sum(self) -> float:
        return round(sum(self.factor_weights.values()), 6)

    @classmethod
    def from_rows(cls, rows: Iterable, version: int = 0, tolerance: Optional[float] = None) -> "WeightConfig":
        """
        Build from RiskWeight rows (anything with factor_name / weight / category).
        Known names are routed by name; the stored category only decides for
        names outside the defaults. Problems are reported as configuration
        warnings, never raised.
        """
        weights: dict[str, float] = {}
        thresholds: dict[str, float] = {}
        issues: list[str] = []
        for row in rows:
            category = getattr(row, "category", None)
            category = category.value if isinstance(category, WeightCategory) else category
            expected = DEFAULT_CATEGORIES.get(row.factor_name)
            if expected is not None and category is not None and category != expected.value:
                issues.append(f"{row.factor_name} is stored under category {category}, expected {expected.value}")

            if row.factor_name in DEFAULT_THRESHOLDS:
                thresholds[row.factor_name] = float(row.weight)
            elif row.factor_name in DEFAULT_WEIGHTS:
                weights[row.factor_name] = float(row.weight)
            elif category == WeightCategory.THRESHOLD.value:
                thresholds[row.factor_name] = float(row.weight)
            else:
                weights[row.factor_name] = float(row.weight)

        missing = [name for name in DEFAULT_WEIGHTS if name not in weights]
        missing += [name for name in DEFAULT_THRESHOLDS if name not in thresholds]
        if missing:
            issues.append(f"Weights without a stored row fall back to defaults: {', '.join(missing)}")

        issues += cls(weights=weights, thresholds=thresholds, version=version).validate(tolerance)
        report_configuration_issues(issues, version=version)
        return cls(weights=weights, thresholds=thresholds, version=version, issues=tuple(issues))

    def validate(self, tolerance: Optional[float] = None) -> list[str]:
        tol = tolerance if tolerance is not None else get_settings().weight_sum_tolerance
        issues: list[str] = []

        total = sum(self.factor_weights.values())
        if abs(total - 1.0) > tol:
            issues.append(f"Risk factor weights sum to {total:.4f}, expected 1.0")

        blend = sum(self.weight(key) for key in COVERAGE_BLEND_KEYS.values())
        if blend <= 0:
            issues.append("Coverage blend weights sum to 0; haircut falls back to equal weighting")

        if self.threshold(COMBINED_MEDIUM) > self.threshold(COMBINED_HIGH):
            issues.append("combined_medium threshold is above combined_high")
        if self.threshold(WEIGHTED_MEDIUM) > self.threshold(WEIGHTED_HIGH):
            issues.append("weighted_medium threshold is above weighted_high")
        return issues


def report_configuration_issues(issues: list[str], version: int = 0) -> None:
    for issue in issues:
        logger.warning("weight_configuration_warning", issue=issue, weights_version=version)
        warnings.warn(issue, ConfigurationWarning, stacklevel=3)


# ═══════════════════════════════════════════════════════════════
# Process-wide instance
# ═══════════════════════════════════════════════════════════════

_lock = threading.Lock()
_current = WeightConfig()


def get_weight_config() -> WeightConfig:
    return _current


def _install(config: WeightConfig, version: int) -> WeightConfig:
    """Caller holds _lock."""
    global _current
    _current = WeightConfig(
        weights=dict(config.weights),
        thresholds=dict(config.thresholds),
        version=version,
        issues=config.issues,
    )
    return _current


def set_weight_config(config: WeightConfig) -> WeightConfig:
    """Swap in a new config, assigning it the next version number."""
    with _lock:
        versioned = _install(config, _current.version + 1)
    logger.info("weight_config_applied", weights_version=versioned.version, overrides=len(versioned.weights) + len(versioned.thresholds))
    return versioned


def reload_weight_config(session) -> WeightConfig:
    """Re-read the risk_weights table and make it the active config."""
    rows = session.execute(select(RiskWeight)).scalars().all()
    with _lock:
        version = _current.version + 1
        versioned = _install(WeightConfig.from_rows(rows, version=version), version)
    logger.info("weight_config_applied", weights_version=versioned.version, overrides=len(versioned.weights) + len(versioned.thresholds))
    return versioned


def reset_weight_config() -> None:
    """Back to pure defaults (version 0). Used at shutdown and by tests."""
    global _current
    with _lock:
        _current = WeightConfig()

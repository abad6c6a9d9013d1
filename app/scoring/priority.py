"""
Audit priority banding

Monotonic step function of (combined residual level, regulatory flag).
Lower number = more urgent. Within a level the regulatory flag wins the tie:

    High   + regulatory → 1
    High                → 2
    Medium + regulatory → 2
    Medium              → 3
    Low    + regulatory → 3
    Low                 → 4

Proposed audit year = current year + priority_year_offset_<level>
(defaults 1 / 2 / 3 / 4).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from app.schemas.risk_request import RiskLevel
from app.scoring.factors import parse_risk_level
from app.scoring.weights import WeightConfig, get_weight_config


PRIORITY_BANDS: dict[tuple[RiskLevel, bool], int] = {
    (RiskLevel.HIGH, True): 1,
    (RiskLevel.HIGH, False): 2,
    (RiskLevel.MEDIUM, True): 2,
    (RiskLevel.MEDIUM, False): 3,
    (RiskLevel.LOW, True): 3,
    (RiskLevel.LOW, False): 4,
}

MOST_URGENT = min(PRIORITY_BANDS.values())
LEAST_URGENT = max(PRIORITY_BANDS.values())


@dataclass(frozen=True)
class PriorityAssignment:
    priority_level: int
    proposed_audit_year: int
    justification: str


def priority_level_for(combined_level: Union[str, RiskLevel], regulatory_requirement: bool) -> int:
    level = parse_risk_level(combined_level, field="combined_residual_risk_level")
    return PRIORITY_BANDS[(level, bool(regulatory_requirement))]


def proposed_year_for(priority_level: int, current_year: int, weights: Optional[WeightConfig] = None) -> int:
    cfg = weights or get_weight_config()
    offset = int(cfg.threshold(f"priority_year_offset_{priority_level}"))
    return current_year + max(offset, 0)


def assign_priority(
    combined_level: Union[str, RiskLevel],
    combined_score: float,
    regulatory_requirement: bool,
    current_year: int,
    weights: Optional[WeightConfig] = None,
) -> PriorityAssignment:
    level = parse_risk_level(combined_level, field="combined_residual_risk_level")
    priority = priority_level_for(level, regulatory_requirement)
    year = proposed_year_for(priority, current_year, weights)

    reason = f"Combined residual risk {level.value} ({combined_score:.2f})"
    if regulatory_requirement:
        reason += " with regulatory requirement"
    return PriorityAssignment(
        priority_level=priority,
        proposed_audit_year=year,
        justification=f"{reason} → priority {priority}, audit in {year}",
    )

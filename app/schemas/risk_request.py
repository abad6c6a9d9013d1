"""
Inbound payloads for the recalculation engine.

The UI layer, bulk actions and import tools send one mutation per call:
a partial set of risk ratings, one coverage rating, the manual ERM rating,
or the regulatory flag. Unknown option values are rejected here, before any
computation runs.
"""
from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ── Enums matching the audit-planning domain ──

class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class CoverageLevel(str, Enum):
    COMPREHENSIVE = "Comprehensive"
    MODERATE = "Moderate"
    LIMITED = "Limited"


class ProviderType(str, Enum):
    INTERNAL_AUDIT = "InternalAudit"
    THIRD_PARTY = "ThirdParty"


class AreaCategory(str, Enum):
    OPERATIONAL = "Operational"
    FINANCIAL = "Financial"
    IT = "IT"
    COMPLIANCE = "Compliance"
    HR = "HR"


class LastAuditResult(str, Enum):
    NONE = "None"
    NO_FINDINGS = "No findings"
    MEDIUM_FINDINGS = "Medium findings"
    HIGH_FINDINGS = "High findings"


class WeightCategory(str, Enum):
    RISK_FACTOR = "RiskFactor"
    ASSURANCE_COVERAGE = "AssuranceCoverage"
    RESIDUAL_RISK = "ResidualRisk"
    THRESHOLD = "Threshold"


# The seven qualitative inputs to inherent risk, in display order.
RISK_FACTOR_FIELDS: tuple[str, ...] = (
    "financial_impact",
    "legal_compliance_impact",
    "strategic_significance",
    "technological_cyber_impact",
    "new_process_system",
    "stakeholder_impact",
    "c_level_concerns",
)


# ── Mutations ──

class RiskRatingUpdate(BaseModel):
    """Partial update of the seven qualitative ratings. Unset fields keep their stored value."""
    model_config = ConfigDict(extra="forbid")

    financial_impact: Optional[RiskLevel] = None
    legal_compliance_impact: Optional[RiskLevel] = None
    strategic_significance: Optional[RiskLevel] = None
    technological_cyber_impact: Optional[RiskLevel] = None
    new_process_system: Optional[RiskLevel] = None
    stakeholder_impact: Optional[RiskLevel] = None
    c_level_concerns: Optional[RiskLevel] = None

    @model_validator(mode="after")
    def _at_least_one_rating(self) -> "RiskRatingUpdate":
        if not self.changed_ratings():
            raise ValueError("at least one risk rating must be supplied")
        return self

    def changed_ratings(self) -> dict[str, RiskLevel]:
        return {k: v for k, v in self.model_dump(exclude_none=True).items()}


class CoverageUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    coverage_level: CoverageLevel
    last_assurance_date: Optional[date] = None
    comments: Optional[str] = Field(None, max_length=2000)


class EnterpriseResidualUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    erm_residual_risk: RiskLevel


class RegulatoryRequirementUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    regulatory_requirement: bool
    regulation: Optional[str] = None


class PriorityOverride(BaseModel):
    """A human-set priority that bulk recomputation must preserve."""
    model_config = ConfigDict(extra="forbid")

    priority_level: int = Field(ge=1, le=4)
    proposed_audit_year: int = Field(ge=2000, le=2100)
    justification: str = Field(min_length=1, max_length=2000)


class WeightUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    weight: float = Field(ge=0.0)
    category: Optional[WeightCategory] = None
    description: Optional[str] = None

"""
Payloads returned to the UI layer and batch callers.

RiskFactorSnapshot is the post-mutation view of one area: inputs and every
derived field, all consistent with each other.
"""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.risk_request import CoverageLevel, ProviderType, RiskLevel


class OutcomeStatus(str, Enum):
    UPDATED = "UPDATED"
    PRESERVED_OVERRIDE = "PRESERVED_OVERRIDE"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class PriorityResultResponse(BaseModel):
    auditable_area_id: str
    priority_level: int = Field(description="1 = most urgent")
    proposed_audit_year: int
    justification: Optional[str] = None
    overridden: bool = False
    updated_at: Optional[datetime] = None


class CoverageSnapshot(BaseModel):
    provider_type: ProviderType
    coverage_level: CoverageLevel
    last_assurance_date: Optional[date] = None
    comments: Optional[str] = None


class RiskFactorSnapshot(BaseModel):
    auditable_area_id: str
    regulatory_requirement: bool

    # ── Inputs ──
    financial_impact: RiskLevel
    legal_compliance_impact: RiskLevel
    strategic_significance: RiskLevel
    technological_cyber_impact: RiskLevel
    new_process_system: RiskLevel
    stakeholder_impact: RiskLevel
    c_level_concerns: RiskLevel
    erm_residual_risk: RiskLevel
    coverage: list[CoverageSnapshot] = []

    # ── Derived ──
    inherent_risk_score: float
    assurance_haircut: float = Field(ge=0.0, le=1.0)
    internal_audit_residual_score: float
    internal_audit_residual_risk: RiskLevel
    combined_residual_risk: float = Field(description="1-5 level severity scale")
    combined_residual_risk_level: RiskLevel
    priority: Optional[PriorityResultResponse] = None

    weights_version: int
    updated_at: Optional[datetime] = None


class RecomputeOutcome(BaseModel):
    """Per-area entry of a recompute-all run, so callers can retry only the failures."""
    auditable_area_id: str
    status: OutcomeStatus
    priority: Optional[PriorityResultResponse] = None
    error_code: Optional[str] = None
    error: Optional[str] = None


class RecomputeAllResponse(BaseModel):
    total: int
    updated: int
    preserved: int
    failed: int
    skipped: int
    elapsed_seconds: float
    outcomes: list[RecomputeOutcome]


class WeightResponse(BaseModel):
    factor_name: str
    category: str
    weight: float
    is_default: bool
    description: Optional[str] = None


class WeightConfigResponse(BaseModel):
    version: int
    factor_weight_sum: float
    warnings: list[str] = []
    weights: list[WeightResponse]

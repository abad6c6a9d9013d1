"""
Risk chain pipeline

Orchestrates, in order:
  1. Inherent risk from the seven ratings        (skippable: reuse stored score)
  2. Assurance haircut from coverage records     (skippable: reuse stored haircut)
  3. Internal-audit residual + combined residual
  4. Audit priority + proposed year

Pure and synchronous; the RecalculationOrchestrator decides which stages a
mutation needs and persists the result.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Mapping, Optional, Union

import structlog

from app.schemas.risk_request import CoverageLevel, ProviderType, RiskLevel
from app.scoring.assurance import calculate_haircut
from app.scoring.factors import calculate_inherent_risk, parse_risk_level
from app.scoring.priority import PriorityAssignment, assign_priority
from app.scoring.residual import combine
from app.scoring.weights import WeightConfig, get_weight_config

logger = structlog.get_logger()


@dataclass(frozen=True)
class RiskChainResult:
    inherent_risk_score: float
    assurance_haircut: float
    ia_residual_score: float
    ia_residual_level: RiskLevel
    combined_score: float
    combined_level: RiskLevel
    priority: PriorityAssignment
    weights_version: int


def evaluate(
    ratings: Mapping[str, Union[str, RiskLevel]],
    coverage: Mapping[Union[str, ProviderType], Union[str, CoverageLevel, None]],
    erm_residual: Union[str, RiskLevel],
    regulatory_requirement: bool,
    current_year: int,
    weights: Optional[WeightConfig] = None,
    *,
    inherent_risk_score: Optional[float] = None,
    assurance_haircut: Optional[float] = None,
) -> RiskChainResult:
    """
    Full chain. Passing `inherent_risk_score` / `assurance_haircut` skips the
    corresponding stage and reuses the given (last-known) value.
    """
    t0 = time.perf_counter_ns()
    cfg = weights or get_weight_config()

    # ── Step 1: Inherent risk ──
    inherent = (
        inherent_risk_score if inherent_risk_score is not None
        else calculate_inherent_risk(ratings, cfg)
    )

    # ── Step 2: Haircut ──
    haircut = (
        assurance_haircut if assurance_haircut is not None
        else calculate_haircut(coverage, cfg)
    )

    # ── Step 3: Residual ──
    residual = combine(inherent, haircut, parse_risk_level(erm_residual, field="erm_residual_risk"), cfg)

    # ── Step 4: Priority ──
    priority = assign_priority(
        residual.combined_level, residual.combined_score, regulatory_requirement, current_year, cfg,
    )

    elapsed_us = int((time.perf_counter_ns() - t0) / 1_000)
    logger.debug(
        "risk_chain_evaluated",
        inherent=inherent,
        haircut=haircut,
        ia_residual=residual.ia_residual_score,
        combined=residual.combined_score,
        combined_level=residual.combined_level.value,
        priority=priority.priority_level,
        weights_version=cfg.version,
        elapsed_us=elapsed_us,
    )

    return RiskChainResult(
        inherent_risk_score=inherent,
        assurance_haircut=haircut,
        ia_residual_score=residual.ia_residual_score,
        ia_residual_level=residual.ia_residual_level,
        combined_score=residual.combined_score,
        combined_level=residual.combined_level,
        priority=priority,
        weights_version=cfg.version,
    )

"""
/v1/areas/{area_id}/…

Thin adapter over the RecalculationOrchestrator, called by the UI layer.
Synchronous request → mutate → recompute → snapshot response. The
orchestrator owns locking and transactions; nothing here touches the DB.
"""
from __future__ import annotations

from typing import NoReturn

import structlog
from fastapi import APIRouter, Depends, HTTPException

from app.core.exceptions import NotFoundError, PersistenceError, RiskEngineError, ValidationError
from app.schemas.risk_request import (
    CoverageUpdate,
    EnterpriseResidualUpdate,
    PriorityOverride,
    ProviderType,
    RegulatoryRequirementUpdate,
    RiskRatingUpdate,
)
from app.schemas.risk_response import PriorityResultResponse, RiskFactorSnapshot
from app.services.recalculation import RecalculationOrchestrator

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/areas", tags=["risk"])

_STATUS_CODES = {
    ValidationError: 422,
    NotFoundError: 404,
    PersistenceError: 503,
}


def get_orchestrator() -> RecalculationOrchestrator:
    return RecalculationOrchestrator()


def raise_http(error: RiskEngineError) -> NoReturn:
    status = next((code for cls, code in _STATUS_CODES.items() if isinstance(error, cls)), 500)
    logger.info("risk_request_rejected", status=status, **error.to_dict())
    raise HTTPException(status_code=status, detail=error.to_dict())


@router.get("/{area_id}/risk", response_model=RiskFactorSnapshot)
def get_risk(area_id: str, orchestrator: RecalculationOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.get_snapshot(area_id)
    except RiskEngineError as e:
        raise_http(e)


@router.put(
    "/{area_id}/risk-ratings",
    response_model=RiskFactorSnapshot,
    summary="Update one or more of the seven qualitative risk ratings",
)
def set_risk_ratings(
    area_id: str,
    update: RiskRatingUpdate,
    orchestrator: RecalculationOrchestrator = Depends(get_orchestrator),
):
    try:
        return orchestrator.set_risk_ratings(area_id, update)
    except RiskEngineError as e:
        raise_http(e)


@router.put(
    "/{area_id}/coverage/{provider_type}",
    response_model=RiskFactorSnapshot,
    summary="Create or update the assurance coverage rating of one provider",
)
def set_coverage(
    area_id: str,
    provider_type: ProviderType,
    update: CoverageUpdate,
    orchestrator: RecalculationOrchestrator = Depends(get_orchestrator),
):
    try:
        return orchestrator.set_coverage(area_id, provider_type, update)
    except RiskEngineError as e:
        raise_http(e)


@router.put("/{area_id}/enterprise-residual", response_model=RiskFactorSnapshot)
def set_enterprise_residual(
    area_id: str,
    update: EnterpriseResidualUpdate,
    orchestrator: RecalculationOrchestrator = Depends(get_orchestrator),
):
    try:
        return orchestrator.set_enterprise_residual(area_id, update)
    except RiskEngineError as e:
        raise_http(e)


@router.put("/{area_id}/regulatory-requirement", response_model=RiskFactorSnapshot)
def set_regulatory_requirement(
    area_id: str,
    update: RegulatoryRequirementUpdate,
    orchestrator: RecalculationOrchestrator = Depends(get_orchestrator),
):
    try:
        return orchestrator.set_regulatory_requirement(area_id, update.regulatory_requirement, update.regulation)
    except RiskEngineError as e:
        raise_http(e)


@router.post("/{area_id}/priority/recompute", response_model=PriorityResultResponse)
def recompute_priority(area_id: str, orchestrator: RecalculationOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.recompute_one(area_id)
    except RiskEngineError as e:
        raise_http(e)


@router.put("/{area_id}/priority/override", response_model=PriorityResultResponse)
def override_priority(
    area_id: str,
    override: PriorityOverride,
    orchestrator: RecalculationOrchestrator = Depends(get_orchestrator),
):
    try:
        return orchestrator.set_priority_override(area_id, override)
    except RiskEngineError as e:
        raise_http(e)


@router.delete("/{area_id}/priority/override", response_model=PriorityResultResponse)
def clear_priority_override(area_id: str, orchestrator: RecalculationOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.clear_priority_override(area_id)
    except RiskEngineError as e:
        raise_http(e)

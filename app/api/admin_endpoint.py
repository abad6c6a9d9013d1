"""
Admin API — weight configuration + batch job trigger.

Endpoints:
  GET  /v1/admin/weights
    → Active weight config (defaults merged with stored rows)

  PUT  /v1/admin/weights/{factor_name}
    → Upsert one weight row and reload the active config. Stored scores are
      NOT recomputed; they refresh when an area is next edited or on
      recompute-all.

  POST /v1/admin/weights/reload
    → Re-read risk_weights into the process-wide config

  POST /v1/admin/recompute-all
    → Recompute risk chain + priority for every area (continue-on-error)
"""
from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.risk_endpoint import get_orchestrator
from app.models.database import get_db
from app.models.risk_weight import RiskWeight
from app.schemas.risk_request import WeightCategory, WeightUpdate
from app.schemas.risk_response import RecomputeAllResponse, WeightConfigResponse, WeightResponse
from app.scoring.weights import (
    DEFAULT_CATEGORIES, DEFAULT_THRESHOLDS, DEFAULT_WEIGHTS, WeightConfig, get_weight_config, reload_weight_config,
)
from app.services.priority_refresh import run_refresh
from app.services.recalculation import RecalculationOrchestrator

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/admin", tags=["admin"])


def _describe(config: WeightConfig, descriptions: dict[str, str]) -> WeightConfigResponse:
    names = list(DEFAULT_WEIGHTS) + list(DEFAULT_THRESHOLDS)
    names += sorted((set(config.weights) | set(config.thresholds)) - set(names))
    weights = []
    for name in names:
        category = DEFAULT_CATEGORIES.get(name, WeightCategory.RISK_FACTOR)
        value = config.threshold(name) if category == WeightCategory.THRESHOLD else config.weight(name)
        weights.append(WeightResponse(
            factor_name=name,
            category=category.value,
            weight=value,
            is_default=config.is_default(name),
            description=descriptions.get(name),
        ))
    return WeightConfigResponse(
        version=config.version,
        factor_weight_sum=config.factor_weight_sum,
        warnings=list(config.issues),
        weights=weights,
    )


def _descriptions(db: Session) -> dict[str, str]:
    rows = db.execute(select(RiskWeight.factor_name, RiskWeight.description))
    return {name: desc for name, desc in rows if desc}


@router.get("/weights", response_model=WeightConfigResponse)
def list_weights(db: Session = Depends(get_db)):
    return _describe(get_weight_config(), _descriptions(db))


@router.put("/weights/{factor_name}", response_model=WeightConfigResponse)
def update_weight(factor_name: str, update: WeightUpdate, db: Session = Depends(get_db)):
    known = DEFAULT_CATEGORIES.get(factor_name)
    if known is not None and update.category is not None and update.category != known:
        raise HTTPException(
            422, f"{factor_name!r} belongs to category {known.value}, not {update.category.value}",
        )
    category = known or update.category
    if category is None:
        raise HTTPException(422, f"Unknown weight {factor_name!r}; supply a category to create it")

    row = db.execute(select(RiskWeight).where(RiskWeight.factor_name == factor_name)).scalar_one_or_none()
    old_value = row.weight if row else None
    if row is None:
        row = RiskWeight(factor_name=factor_name, category=category.value, weight=update.weight)
        db.add(row)
    else:
        row.weight = update.weight
        row.category = category.value
    if update.description is not None:
        row.description = update.description
    db.commit()

    logger.info("weight_updated", factor_name=factor_name, old=old_value, new=update.weight)
    config = reload_weight_config(db)
    return _describe(config, _descriptions(db))


@router.post("/weights/reload", response_model=WeightConfigResponse)
def reload_weights(db: Session = Depends(get_db)):
    config = reload_weight_config(db)
    return _describe(config, _descriptions(db))


@router.post("/recompute-all", response_model=RecomputeAllResponse)
def recompute_all(orchestrator: RecalculationOrchestrator = Depends(get_orchestrator)):
    return run_refresh(orchestrator)

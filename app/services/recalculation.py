"""
Recalculation orchestrator
──────────────────────────
Single entry point for every mutation that feeds the risk chain. Each call:

  1. takes the per-area lock
  2. opens one transaction and loads the area (SELECT … FOR UPDATE where supported)
  3. applies the mutation
  4. re-runs exactly the affected stages of app.scoring.engine
  5. writes all derived fields + the PriorityResult, then commits

    RatingsChanged            → inherent → residual (stored haircut) → priority
    CoverageChanged           → haircut  → residual (stored inherent) → priority
    EnterpriseResidualChanged → residual (stored inherent + haircut)  → priority
    RegulatoryFlagChanged     → priority only
    FullRecompute             → everything (recompute-one / recompute-all)

Either everything is committed or nothing is. A PriorityResult marked
`overridden` is never rewritten by these transitions; only
set_priority_override / clear_priority_override touch it.

Usage:
  orchestrator = RecalculationOrchestrator()
  orchestrator.set_risk_ratings(area_id, {"financial_impact": "High"})
"""
from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from enum import Enum
import threading
from typing import Callable, Iterator, Optional, Union

import structlog
from prometheus_client import Counter
from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import NotFoundError, PersistenceError, RiskEngineError, ValidationError
from app.models.auditable_area import AssuranceCoverage, AuditableArea, PriorityResult, RiskFactor
from app.models.database import get_session_factory
from app.schemas.risk_request import (
    RISK_FACTOR_FIELDS,
    CoverageLevel,
    CoverageUpdate,
    EnterpriseResidualUpdate,
    PriorityOverride,
    ProviderType,
    RiskLevel,
    RiskRatingUpdate,
)
from app.schemas.risk_response import (
    CoverageSnapshot,
    OutcomeStatus,
    PriorityResultResponse,
    RecomputeOutcome,
    RiskFactorSnapshot,
)
from app.scoring.assurance import coverage_of
from app.scoring.engine import RiskChainResult, evaluate
from app.scoring.factors import parse_coverage_level, parse_provider_type, parse_risk_level, ratings_of
from app.scoring.weights import WeightConfig, get_weight_config
from app.services.area_locks import AreaLockRegistry, get_area_locks

logger = structlog.get_logger()

RECALCULATIONS = Counter(
    "risk_recalculations_total",
    "Orchestrator transitions by mutation and outcome",
    ["mutation", "status"],
)


class Mutation(str, Enum):
    RATINGS_CHANGED = "RATINGS_CHANGED"
    COVERAGE_CHANGED = "COVERAGE_CHANGED"
    ENTERPRISE_RESIDUAL_CHANGED = "ENTERPRISE_RESIDUAL_CHANGED"
    REGULATORY_FLAG_CHANGED = "REGULATORY_FLAG_CHANGED"
    FULL_RECOMPUTE = "FULL_RECOMPUTE"


# Which stored stage outputs each mutation may reuse.
_REUSES_INHERENT = {
    Mutation.COVERAGE_CHANGED,
    Mutation.ENTERPRISE_RESIDUAL_CHANGED,
    Mutation.REGULATORY_FLAG_CHANGED,
}
_REUSES_HAIRCUT = {
    Mutation.RATINGS_CHANGED,
    Mutation.ENTERPRISE_RESIDUAL_CHANGED,
    Mutation.REGULATORY_FLAG_CHANGED,
}


def _coerce(model: type[BaseModel], value) -> BaseModel:
    """Accept either the pydantic model or a plain mapping; reject unknown values."""
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except SchemaValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        raise ValidationError(f"Invalid {model.__name__}: {first.get('msg')}", field=field, value=first.get("input")) from None


def _check_stored_inputs(area: AuditableArea, risk_factor: RiskFactor) -> None:
    """Stored inputs are checked on every transition, whichever stages are reused."""
    try:
        for name in RISK_FACTOR_FIELDS:
            parse_risk_level(getattr(risk_factor, name), field=name)
        parse_risk_level(risk_factor.erm_residual_risk, field="erm_residual_risk")
        for row in area.coverage:
            parse_provider_type(row.provider_type)
            parse_coverage_level(row.coverage_level)
    except ValidationError as e:
        e.area_id = area.id
        raise


def priority_response(area_id: str, result: PriorityResult) -> PriorityResultResponse:
    return PriorityResultResponse(
        auditable_area_id=area_id,
        priority_level=result.priority_level,
        proposed_audit_year=result.proposed_audit_year,
        justification=result.justification,
        overridden=bool(result.overridden),
        updated_at=result.updated_at,
    )


class RecalculationOrchestrator:

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        locks: Optional[AreaLockRegistry] = None,
        weights_provider: Callable[[], WeightConfig] = get_weight_config,
        clock: Callable[[], date] = date.today,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._locks = locks or get_area_locks()
        self._weights = weights_provider
        self._clock = clock

    # ─── Public mutations ─────────────────────────────────────────

    def set_risk_ratings(self, area_id: str, update: Union[RiskRatingUpdate, dict]) -> RiskFactorSnapshot:
        update = _coerce(RiskRatingUpdate, update)
        changed = update.changed_ratings()

        with self._transition(area_id, Mutation.RATINGS_CHANGED) as (session, area):
            risk_factor, _ = self._ensure_risk_factor(session, area)
            for name, level in changed.items():
                setattr(risk_factor, name, level.value)
            result = self._recalculate(session, area, risk_factor, Mutation.RATINGS_CHANGED)
            snapshot = self._snapshot(area, risk_factor)

        logger.info(
            "risk_ratings_updated",
            area_id=area_id,
            changed=sorted(changed),
            inherent=result.inherent_risk_score,
            combined_level=result.combined_level.value,
            priority=snapshot.priority.priority_level if snapshot.priority else None,
        )
        return snapshot

    def set_coverage(
        self,
        area_id: str,
        provider_type: Union[str, ProviderType],
        coverage: Union[CoverageUpdate, dict, str, CoverageLevel],
    ) -> RiskFactorSnapshot:
        provider = parse_provider_type(provider_type)
        if isinstance(coverage, (str, CoverageLevel)):
            coverage = {"coverage_level": coverage}
        update = _coerce(CoverageUpdate, coverage)

        with self._transition(area_id, Mutation.COVERAGE_CHANGED) as (session, area):
            row = area.coverage_for(provider.value)
            if row is None:
                row = AssuranceCoverage(auditable_area_id=area.id, provider_type=provider.value)
                area.coverage.append(row)
            row.coverage_level = update.coverage_level.value
            if update.last_assurance_date is not None:
                row.last_assurance_date = update.last_assurance_date
            if update.comments is not None:
                row.comments = update.comments

            risk_factor, created = self._ensure_risk_factor(session, area)
            # A brand-new risk factor has no stored inherent score to reuse.
            mutation = Mutation.RATINGS_CHANGED if created else Mutation.COVERAGE_CHANGED
            result = self._recalculate(session, area, risk_factor, mutation, recompute_haircut=True)
            snapshot = self._snapshot(area, risk_factor)

        logger.info(
            "assurance_coverage_updated",
            area_id=area_id,
            provider_type=provider.value,
            coverage_level=update.coverage_level.value,
            haircut=result.assurance_haircut,
            combined_level=result.combined_level.value,
        )
        return snapshot

    def set_enterprise_residual(
        self, area_id: str, level: Union[EnterpriseResidualUpdate, dict, str, RiskLevel],
    ) -> RiskFactorSnapshot:
        if isinstance(level, (str, RiskLevel)):
            level = {"erm_residual_risk": level}
        update = _coerce(EnterpriseResidualUpdate, level)

        with self._transition(area_id, Mutation.ENTERPRISE_RESIDUAL_CHANGED) as (session, area):
            risk_factor, created = self._ensure_risk_factor(session, area)
            risk_factor.erm_residual_risk = update.erm_residual_risk.value
            mutation = Mutation.RATINGS_CHANGED if created else Mutation.ENTERPRISE_RESIDUAL_CHANGED
            result = self._recalculate(session, area, risk_factor, mutation)
            snapshot = self._snapshot(area, risk_factor)

        logger.info(
            "enterprise_residual_updated",
            area_id=area_id,
            erm_residual=update.erm_residual_risk.value,
            combined=result.combined_score,
            combined_level=result.combined_level.value,
        )
        return snapshot

    def set_regulatory_requirement(
        self, area_id: str, regulatory_requirement: bool, regulation: Optional[str] = None,
    ) -> RiskFactorSnapshot:
        with self._transition(area_id, Mutation.REGULATORY_FLAG_CHANGED) as (session, area):
            area.regulatory_requirement = bool(regulatory_requirement)
            if regulation is not None:
                area.regulation = regulation
            risk_factor, created = self._ensure_risk_factor(session, area)
            mutation = Mutation.RATINGS_CHANGED if created else Mutation.REGULATORY_FLAG_CHANGED
            self._recalculate(session, area, risk_factor, mutation)
            snapshot = self._snapshot(area, risk_factor)

        logger.info("regulatory_requirement_updated", area_id=area_id, regulatory=bool(regulatory_requirement))
        return snapshot

    def recompute_one(self, area_id: str) -> PriorityResultResponse:
        """Full recompute of one area. An overridden priority is returned unchanged."""
        priority, _ = self._recompute(area_id)
        return priority

    def recompute_all(self, stop_event: Optional[threading.Event] = None) -> list[RecomputeOutcome]:
        """
        Recompute every area, one lock + transaction per area. Failures are
        recorded per area and never abort the batch or roll back other areas.
        If `stop_event` is set, areas not yet started are reported SKIPPED.
        """
        area_ids = self._list_area_ids()
        outcomes: list[RecomputeOutcome] = []

        for area_id in area_ids:
            if stop_event is not None and stop_event.is_set():
                outcomes.append(RecomputeOutcome(
                    auditable_area_id=area_id, status=OutcomeStatus.SKIPPED, error="Batch stopped before this area",
                ))
                continue
            try:
                priority, preserved = self._recompute(area_id)
            except RiskEngineError as e:
                logger.warning("priority_recompute_failed", area_id=area_id, error_code=e.code, error=e.message)
                outcomes.append(RecomputeOutcome(
                    auditable_area_id=area_id, status=OutcomeStatus.FAILED, error_code=e.code, error=e.message,
                ))
            except Exception as e:
                logger.exception("priority_recompute_crashed", area_id=area_id)
                outcomes.append(RecomputeOutcome(
                    auditable_area_id=area_id, status=OutcomeStatus.FAILED,
                    error_code="UNEXPECTED_ERROR", error=str(e),
                ))
            else:
                outcomes.append(RecomputeOutcome(
                    auditable_area_id=area_id,
                    status=OutcomeStatus.PRESERVED_OVERRIDE if preserved else OutcomeStatus.UPDATED,
                    priority=priority,
                ))
        return outcomes

    def set_priority_override(self, area_id: str, override: Union[PriorityOverride, dict]) -> PriorityResultResponse:
        override = _coerce(PriorityOverride, override)

        with self._transition(area_id, Mutation.FULL_RECOMPUTE, metric=False) as (session, area):
            result = area.priority_result
            if result is None:
                result = PriorityResult(auditable_area_id=area.id)
                area.priority_result = result
            result.priority_level = override.priority_level
            result.proposed_audit_year = override.proposed_audit_year
            result.justification = override.justification
            result.overridden = True
            area.priority_level = override.priority_level
            area.proposed_audit_year = override.proposed_audit_year
            session.flush()
            response = priority_response(area.id, result)

        logger.info(
            "priority_overridden",
            area_id=area_id,
            priority=override.priority_level,
            year=override.proposed_audit_year,
        )
        return response

    def clear_priority_override(self, area_id: str) -> PriorityResultResponse:
        """Release a manual priority and recompute it from the current risk chain."""
        with self._transition(area_id, Mutation.FULL_RECOMPUTE) as (session, area):
            if area.priority_result is not None:
                area.priority_result.overridden = False
            risk_factor, _ = self._ensure_risk_factor(session, area)
            self._recalculate(session, area, risk_factor, Mutation.FULL_RECOMPUTE)
            response = priority_response(area.id, area.priority_result)

        logger.info("priority_override_cleared", area_id=area_id, priority=response.priority_level)
        return response

    def get_snapshot(self, area_id: str) -> RiskFactorSnapshot:
        session = self._session_factory()
        try:
            area = session.get(AuditableArea, area_id)
            if area is None:
                raise NotFoundError(f"Auditable area {area_id} not found", area_id=area_id)
            risk_factor = area.risk_factor
            if risk_factor is None or risk_factor.inherent_risk_score is None:
                raise NotFoundError(f"Auditable area {area_id} has no scored risk factors", area_id=area_id)
            _check_stored_inputs(area, risk_factor)
            return self._snapshot(area, risk_factor)
        finally:
            session.close()

    # ─── Internals ────────────────────────────────────────────────

    @contextmanager
    def _transition(self, area_id: str, mutation: Mutation, metric: bool = True) -> Iterator[tuple[Session, AuditableArea]]:
        with self._locks.hold(area_id):
            session = self._session_factory()
            try:
                area = session.execute(
                    select(AuditableArea).where(AuditableArea.id == area_id).with_for_update()
                ).scalar_one_or_none()
                if area is None:
                    raise NotFoundError(f"Auditable area {area_id} not found", area_id=area_id)
                yield session, area
                session.commit()
            except RiskEngineError:
                session.rollback()
                if metric:
                    RECALCULATIONS.labels(mutation.value, "failed").inc()
                raise
            except SQLAlchemyError as e:
                session.rollback()
                if metric:
                    RECALCULATIONS.labels(mutation.value, "failed").inc()
                logger.error("recalculation_persist_failed", area_id=area_id, mutation=mutation.value, error=str(e))
                raise PersistenceError(f"Could not persist recalculation for area {area_id}: {e}", area_id=area_id) from e
            except Exception:
                session.rollback()
                raise
            else:
                if metric:
                    RECALCULATIONS.labels(mutation.value, "success").inc()
            finally:
                session.close()

    def _ensure_risk_factor(self, session: Session, area: AuditableArea) -> tuple[RiskFactor, bool]:
        """First-time data entry: create the record with Medium for every unset rating."""
        if area.risk_factor is not None:
            return area.risk_factor, False
        risk_factor = RiskFactor(auditable_area_id=area.id, erm_residual_risk=RiskLevel.MEDIUM.value)
        for name in RISK_FACTOR_FIELDS:
            setattr(risk_factor, name, RiskLevel.MEDIUM.value)
        area.risk_factor = risk_factor
        logger.info("risk_factor_created", area_id=area.id)
        return risk_factor, True

    def _recompute(self, area_id: str) -> tuple[PriorityResultResponse, bool]:
        with self._transition(area_id, Mutation.FULL_RECOMPUTE) as (session, area):
            risk_factor, _ = self._ensure_risk_factor(session, area)
            self._recalculate(session, area, risk_factor, Mutation.FULL_RECOMPUTE)
            result = area.priority_result
            response = priority_response(area.id, result)
            preserved = bool(result.overridden)
        return response, preserved

    def _recalculate(
        self,
        session: Session,
        area: AuditableArea,
        risk_factor: RiskFactor,
        mutation: Mutation,
        recompute_haircut: bool = False,
    ) -> RiskChainResult:
        cfg = self._weights()
        _check_stored_inputs(area, risk_factor)

        reuse_inherent = mutation in _REUSES_INHERENT and risk_factor.inherent_risk_score is not None
        reuse_haircut = (
            not recompute_haircut
            and mutation in _REUSES_HAIRCUT
            and risk_factor.assurance_haircut is not None
        )

        result = evaluate(
            ratings=ratings_of(risk_factor),
            coverage=coverage_of(area.coverage),
            erm_residual=parse_risk_level(risk_factor.erm_residual_risk, field="erm_residual_risk"),
            regulatory_requirement=bool(area.regulatory_requirement),
            current_year=self._clock().year,
            weights=cfg,
            inherent_risk_score=risk_factor.inherent_risk_score if reuse_inherent else None,
            assurance_haircut=risk_factor.assurance_haircut if reuse_haircut else None,
        )

        # All derived fields are written together.
        risk_factor.inherent_risk_score = result.inherent_risk_score
        risk_factor.assurance_haircut = result.assurance_haircut
        risk_factor.internal_audit_residual_score = result.ia_residual_score
        risk_factor.internal_audit_residual_risk = result.ia_residual_level.value
        risk_factor.combined_residual_risk = result.combined_score
        risk_factor.combined_residual_risk_level = result.combined_level.value
        # Oldest weights version any stored figure may derive from.
        stored_version = risk_factor.weights_version
        if (reuse_inherent or reuse_haircut) and stored_version is not None:
            risk_factor.weights_version = min(stored_version, result.weights_version)
        else:
            risk_factor.weights_version = result.weights_version

        self._apply_priority(area, result)
        session.flush()
        return result

    def _apply_priority(self, area: AuditableArea, result: RiskChainResult) -> None:
        priority = area.priority_result
        if priority is not None and priority.overridden:
            logger.debug("priority_override_preserved", area_id=area.id, priority=priority.priority_level)
            return
        if priority is None:
            priority = PriorityResult(auditable_area_id=area.id, overridden=False)
            area.priority_result = priority
        priority.priority_level = result.priority.priority_level
        priority.proposed_audit_year = result.priority.proposed_audit_year
        priority.justification = result.priority.justification
        area.priority_level = priority.priority_level
        area.proposed_audit_year = priority.proposed_audit_year

    def _list_area_ids(self) -> list[str]:
        session = self._session_factory()
        try:
            rows = session.execute(select(AuditableArea.id).order_by(AuditableArea.name, AuditableArea.id))
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not list auditable areas: {e}") from e
        finally:
            session.close()

    def _snapshot(self, area: AuditableArea, risk_factor: RiskFactor) -> RiskFactorSnapshot:
        coverage = sorted(area.coverage, key=lambda c: c.provider_type)
        return RiskFactorSnapshot(
            auditable_area_id=area.id,
            regulatory_requirement=bool(area.regulatory_requirement),
            **{name: getattr(risk_factor, name) for name in RISK_FACTOR_FIELDS},
            erm_residual_risk=risk_factor.erm_residual_risk,
            coverage=[
                CoverageSnapshot(
                    provider_type=c.provider_type,
                    coverage_level=c.coverage_level,
                    last_assurance_date=c.last_assurance_date,
                    comments=c.comments,
                )
                for c in coverage
            ],
            inherent_risk_score=risk_factor.inherent_risk_score,
            assurance_haircut=risk_factor.assurance_haircut,
            internal_audit_residual_score=risk_factor.internal_audit_residual_score,
            internal_audit_residual_risk=risk_factor.internal_audit_residual_risk,
            combined_residual_risk=risk_factor.combined_residual_risk,
            combined_residual_risk_level=risk_factor.combined_residual_risk_level,
            priority=priority_response(area.id, area.priority_result) if area.priority_result else None,
            weights_version=risk_factor.weights_version or 0,
            updated_at=risk_factor.updated_at,
        )

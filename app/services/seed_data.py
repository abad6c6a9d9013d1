"""
seed_data.py
────────────
Seeds the default weight rows and a sample auditable area for local
development and logic validation. Idempotent: existing weights and an
existing sample area are left untouched.

Usage:
  python -m app.services.seed_data
"""
from __future__ import annotations

import logging
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.auditable_area import AuditableArea
from app.models.risk_weight import RiskWeight
from app.schemas.risk_request import AreaCategory, CoverageLevel, ProviderType, RiskLevel
from app.schemas.risk_response import RiskFactorSnapshot
from app.scoring.weights import DEFAULT_CATEGORIES, DEFAULT_THRESHOLDS, DEFAULT_WEIGHTS
from app.services.recalculation import RecalculationOrchestrator

logger = structlog.get_logger(__name__)

WEIGHT_DESCRIPTIONS: dict[str, str] = {
    "financial_impact": "Financial impact weight",
    "legal_compliance_impact": "Legal compliance weight",
    "strategic_significance": "Strategic significance weight",
    "technological_cyber_impact": "Tech/cyber impact weight",
    "new_process_system": "New process/system weight",
    "stakeholder_impact": "Stakeholder impact weight",
    "c_level_concerns": "C-level concerns weight",
    "Assurance_InternalAudit": "Internal audit assurance weight",
    "Assurance_ThirdParty": "Third party assurance weight",
    "Coverage_Comprehensive": "Haircut ratio for comprehensive coverage",
    "Coverage_Moderate": "Haircut ratio for moderate coverage",
    "Coverage_Limited": "Haircut ratio for limited coverage",
    "InternalAudit_ResidualWeight": "Internal audit residual weight",
    "ERM_ResidualWeight": "ERM residual weight",
}

SAMPLE_AREA_NAME = "Online Casino Operations"
SAMPLE_RATINGS = {
    "financial_impact": RiskLevel.HIGH,
    "legal_compliance_impact": RiskLevel.MEDIUM,
    "strategic_significance": RiskLevel.HIGH,
    "technological_cyber_impact": RiskLevel.MEDIUM,
    "new_process_system": RiskLevel.LOW,
    "stakeholder_impact": RiskLevel.HIGH,
    "c_level_concerns": RiskLevel.HIGH,
}
SAMPLE_COVERAGE = {
    ProviderType.INTERNAL_AUDIT: CoverageLevel.COMPREHENSIVE,
    ProviderType.THIRD_PARTY: CoverageLevel.MODERATE,
}


def seed_default_weights(session: Session) -> int:
    """Insert a row for every default weight/threshold that has none. Returns rows inserted."""
    existing = set(session.execute(select(RiskWeight.factor_name)).scalars())
    inserted = 0
    for name, value in {**DEFAULT_WEIGHTS, **DEFAULT_THRESHOLDS}.items():
        if name in existing:
            continue
        session.add(RiskWeight(
            factor_name=name,
            category=DEFAULT_CATEGORIES[name].value,
            weight=float(value),
            description=WEIGHT_DESCRIPTIONS.get(name),
        ))
        inserted += 1
    session.commit()
    logger.info("default_weights_seeded", inserted=inserted, existing=len(existing))
    return inserted


def seed_sample_area(session: Session, orchestrator: RecalculationOrchestrator) -> Optional[RiskFactorSnapshot]:
    """Create the sample area and drive its inputs through the orchestrator."""
    existing = session.execute(
        select(AuditableArea).where(AuditableArea.name == SAMPLE_AREA_NAME)
    ).scalar_one_or_none()
    if existing is not None:
        logger.info("sample_area_exists", area_id=existing.id)
        return None

    area = AuditableArea(
        name=SAMPLE_AREA_NAME,
        business_unit="Online",
        category=AreaCategory.OPERATIONAL.value,
        regulatory_requirement=False,
        comments="Test area for logic validation.",
    )
    session.add(area)
    session.commit()

    orchestrator.set_risk_ratings(area.id, SAMPLE_RATINGS)
    for provider, level in SAMPLE_COVERAGE.items():
        orchestrator.set_coverage(area.id, provider, level)
    snapshot = orchestrator.set_enterprise_residual(area.id, RiskLevel.MEDIUM)

    logger.info(
        "sample_area_seeded",
        area_id=area.id,
        inherent=snapshot.inherent_risk_score,
        combined_level=snapshot.combined_residual_risk_level.value,
    )
    return snapshot


if __name__ == "__main__":
    import sys

    from app.models.auditable_area import Base
    from app.models.database import get_engine, get_session_factory
    from app.scoring.weights import reload_weight_config

    logging.basicConfig(level=logging.INFO)

    try:
        Base.metadata.create_all(get_engine())
        session = get_session_factory()()
        try:
            seed_default_weights(session)
            reload_weight_config(session)
            seed_sample_area(session, RecalculationOrchestrator())
        finally:
            session.close()
        print("✓ Seed data loaded")
    except Exception as e:
        print(f"✗ Seeding failed: {e}", file=sys.stderr)
        sys.exit(1)

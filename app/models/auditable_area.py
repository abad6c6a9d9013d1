"""
Auditable area aggregate: the area itself plus the records it owns.

  auditable_areas      aggregate root, created by the area-management workflow
  risk_factors         1:1, seven ratings + ERM rating + derived risk fields
  assurance_coverage   0..2, one row per provider type
  priority_results     0..1, derived audit priority / proposed year

Children have no lifecycle of their own; deleting an area cascades.
Rating columns are plain strings; values are validated by the engine.
Area category and last audit result are checked against their enums on
assignment.
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship, validates

from app.core.exceptions import ValidationError
from app.schemas.risk_request import AreaCategory, LastAuditResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class AuditableArea(Base):
    __tablename__ = "auditable_areas"

    id = Column(String(36), primary_key=True, default=_uuid)
    entity_id = Column(String(36), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    business_unit = Column(String(200), nullable=False)
    category = Column(String(20), nullable=False)  # Operational | Financial | IT | Compliance | HR

    # ── Regulatory ──
    regulatory_requirement = Column(Boolean, nullable=False, default=False)
    regulation = Column(String(200), nullable=True)
    responsible_c_level = Column(String(200), nullable=True)

    # ── Last audit ──
    last_audit_date = Column(Date, nullable=True)
    last_audit_result = Column(String(20), nullable=True)
    comments = Column(Text, nullable=True)

    # ── Mirrors of the current PriorityResult (for listing / sorting) ──
    priority_level = Column(Integer, nullable=True, index=True)
    proposed_audit_year = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    risk_factor = relationship(
        "RiskFactor", back_populates="area", uselist=False, cascade="all, delete-orphan",
    )
    coverage = relationship(
        "AssuranceCoverage", back_populates="area", cascade="all, delete-orphan",
    )
    priority_result = relationship(
        "PriorityResult", back_populates="area", uselist=False, cascade="all, delete-orphan",
    )

    @validates("category", "last_audit_result")
    def _check_option(self, key, value):
        options = AreaCategory if key == "category" else LastAuditResult
        if value is None and key == "last_audit_result":
            return None
        if isinstance(value, options):
            return value.value
        if value not in {o.value for o in options}:
            allowed = ", ".join(o.value for o in options)
            raise ValidationError(f"Unknown {key} {value!r}; expected one of {allowed}", field=key, value=value)
        return value

    def coverage_for(self, provider_type: str):
        return next((c for c in self.coverage if c.provider_type == provider_type), None)

    def __repr__(self):
        return f"<AuditableArea {self.id} name={self.name!r}>"


class RiskFactor(Base):
    __tablename__ = "risk_factors"

    id = Column(String(36), primary_key=True, default=_uuid)
    auditable_area_id = Column(
        String(36), ForeignKey("auditable_areas.id", ondelete="CASCADE"), nullable=False, unique=True,
    )

    # ── Qualitative ratings: Low | Medium | High ──
    financial_impact = Column(String(10), nullable=False, default="Medium")
    legal_compliance_impact = Column(String(10), nullable=False, default="Medium")
    strategic_significance = Column(String(10), nullable=False, default="Medium")
    technological_cyber_impact = Column(String(10), nullable=False, default="Medium")
    new_process_system = Column(String(10), nullable=False, default="Medium")
    stakeholder_impact = Column(String(10), nullable=False, default="Medium")
    c_level_concerns = Column(String(10), nullable=False, default="Medium")

    # ── Manually maintained ERM rating ──
    erm_residual_risk = Column(String(10), nullable=False, default="Medium")

    # ── Derived (always written together) ──
    inherent_risk_score = Column(Float, nullable=True)
    assurance_haircut = Column(Float, nullable=True)
    internal_audit_residual_score = Column(Float, nullable=True)
    internal_audit_residual_risk = Column(String(10), nullable=True)
    combined_residual_risk = Column(Float, nullable=True)
    combined_residual_risk_level = Column(String(10), nullable=True)
    weights_version = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    area = relationship("AuditableArea", back_populates="risk_factor")

    def __repr__(self):
        return (
            f"<RiskFactor area={self.auditable_area_id} inherent={self.inherent_risk_score} "
            f"combined={self.combined_residual_risk_level}>"
        )


class AssuranceCoverage(Base):
    __tablename__ = "assurance_coverage"
    __table_args__ = (
        UniqueConstraint("auditable_area_id", "provider_type", name="uq_coverage_area_provider"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    auditable_area_id = Column(
        String(36), ForeignKey("auditable_areas.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    provider_type = Column(String(20), nullable=False)    # InternalAudit | ThirdParty
    coverage_level = Column(String(20), nullable=False)   # Comprehensive | Moderate | Limited
    last_assurance_date = Column(Date, nullable=True)
    comments = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    area = relationship("AuditableArea", back_populates="coverage")

    def __repr__(self):
        return f"<AssuranceCoverage area={self.auditable_area_id} {self.provider_type}={self.coverage_level}>"


class PriorityResult(Base):
    __tablename__ = "priority_results"

    id = Column(String(36), primary_key=True, default=_uuid)
    auditable_area_id = Column(
        String(36), ForeignKey("auditable_areas.id", ondelete="CASCADE"), nullable=False, unique=True,
    )
    priority_level = Column(Integer, nullable=False)
    proposed_audit_year = Column(Integer, nullable=False)
    justification = Column(Text, nullable=True)
    overridden = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    area = relationship("AuditableArea", back_populates="priority_result")

    def __repr__(self):
        return f"<PriorityResult area={self.auditable_area_id} level={self.priority_level} year={self.proposed_audit_year}>"

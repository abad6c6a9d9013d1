"""
Weight configuration table — one row per named factor / blend weight / threshold.
Missing rows fall back to the defaults in app.scoring.weights.
"""
from sqlalchemy import Column, DateTime, Float, String, Text

from app.models.auditable_area import Base, _utcnow, _uuid


class RiskWeight(Base):
    __tablename__ = "risk_weights"

    id = Column(String(36), primary_key=True, default=_uuid)
    factor_name = Column(String(100), nullable=False, unique=True)
    category = Column(String(30), nullable=False)  # RiskFactor | AssuranceCoverage | ResidualRisk | Threshold
    weight = Column(Float, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<RiskWeight {self.category}/{self.factor_name}={self.weight}>"

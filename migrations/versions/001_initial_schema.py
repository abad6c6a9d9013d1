"""
001 — Initial schema: auditable areas and the records they own

Tables:
  - auditable_areas: aggregate root
  - risk_factors: 1:1 ratings + derived risk fields
  - assurance_coverage: one row per (area, provider type)
  - priority_results: derived (or overridden) audit priority
  - risk_weights: weight / threshold configuration

Revision ID: 001
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:

    # ── Auditable Areas ──
    op.create_table(
        "auditable_areas",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("entity_id", sa.String(36), nullable=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("business_unit", sa.String(200), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),  # Operational | Financial | IT | Compliance | HR
        sa.Column("regulatory_requirement", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("regulation", sa.String(200), nullable=True),
        sa.Column("responsible_c_level", sa.String(200), nullable=True),
        sa.Column("last_audit_date", sa.Date, nullable=True),
        sa.Column("last_audit_result", sa.String(20), nullable=True),
        sa.Column("comments", sa.Text, nullable=True),
        sa.Column("priority_level", sa.Integer, nullable=True),
        sa.Column("proposed_audit_year", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_auditable_areas_entity_id", "auditable_areas", ["entity_id"])
    op.create_index("ix_auditable_areas_priority_level", "auditable_areas", ["priority_level"])

    # ── Risk Factors (1:1) ──
    op.create_table(
        "risk_factors",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "auditable_area_id", sa.String(36),
            sa.ForeignKey("auditable_areas.id", ondelete="CASCADE"), nullable=False, unique=True,
        ),
        sa.Column("financial_impact", sa.String(10), nullable=False, server_default="Medium"),
        sa.Column("legal_compliance_impact", sa.String(10), nullable=False, server_default="Medium"),
        sa.Column("strategic_significance", sa.String(10), nullable=False, server_default="Medium"),
        sa.Column("technological_cyber_impact", sa.String(10), nullable=False, server_default="Medium"),
        sa.Column("new_process_system", sa.String(10), nullable=False, server_default="Medium"),
        sa.Column("stakeholder_impact", sa.String(10), nullable=False, server_default="Medium"),
        sa.Column("c_level_concerns", sa.String(10), nullable=False, server_default="Medium"),
        sa.Column("erm_residual_risk", sa.String(10), nullable=False, server_default="Medium"),
        sa.Column("inherent_risk_score", sa.Float, nullable=True),
        sa.Column("assurance_haircut", sa.Float, nullable=True),
        sa.Column("internal_audit_residual_score", sa.Float, nullable=True),
        sa.Column("internal_audit_residual_risk", sa.String(10), nullable=True),
        sa.Column("combined_residual_risk", sa.Float, nullable=True),
        sa.Column("combined_residual_risk_level", sa.String(10), nullable=True),
        sa.Column("weights_version", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── Assurance Coverage ──
    op.create_table(
        "assurance_coverage",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "auditable_area_id", sa.String(36),
            sa.ForeignKey("auditable_areas.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("provider_type", sa.String(20), nullable=False),   # InternalAudit | ThirdParty
        sa.Column("coverage_level", sa.String(20), nullable=False),  # Comprehensive | Moderate | Limited
        sa.Column("last_assurance_date", sa.Date, nullable=True),
        sa.Column("comments", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("auditable_area_id", "provider_type", name="uq_coverage_area_provider"),
    )
    op.create_index("ix_assurance_coverage_auditable_area_id", "assurance_coverage", ["auditable_area_id"])

    # ── Priority Results ──
    op.create_table(
        "priority_results",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "auditable_area_id", sa.String(36),
            sa.ForeignKey("auditable_areas.id", ondelete="CASCADE"), nullable=False, unique=True,
        ),
        sa.Column("priority_level", sa.Integer, nullable=False),
        sa.Column("proposed_audit_year", sa.Integer, nullable=False),
        sa.Column("justification", sa.Text, nullable=True),
        sa.Column("overridden", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── Weight Configuration ──
    op.create_table(
        "risk_weights",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("factor_name", sa.String(100), nullable=False, unique=True),
        sa.Column("category", sa.String(30), nullable=False),  # RiskFactor | AssuranceCoverage | ResidualRisk | Threshold
        sa.Column("weight", sa.Float, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("risk_weights")
    op.drop_table("priority_results")
    op.drop_table("assurance_coverage")
    op.drop_table("risk_factors")
    op.drop_table("auditable_areas")

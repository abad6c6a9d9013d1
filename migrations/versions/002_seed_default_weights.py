"""
002 — Seed default weights and thresholds

Baseline rows for risk_weights. Values match the documented defaults in
app.scoring.weights and can be adjusted via PUT /v1/admin/weights/{name}.

Revision ID: 002
Create Date: 2026-10-17
"""
import uuid

from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

WEIGHTS = [
    # (factor_name, category, weight, description)
    ("financial_impact", "RiskFactor", 0.15, "Financial impact weight"),
    ("legal_compliance_impact", "RiskFactor", 0.15, "Legal compliance weight"),
    ("strategic_significance", "RiskFactor", 0.20, "Strategic significance weight"),
    ("technological_cyber_impact", "RiskFactor", 0.15, "Tech/cyber impact weight"),
    ("new_process_system", "RiskFactor", 0.10, "New process/system weight"),
    ("stakeholder_impact", "RiskFactor", 0.10, "Stakeholder impact weight"),
    ("c_level_concerns", "RiskFactor", 0.15, "C-level concerns weight"),
    ("Assurance_InternalAudit", "AssuranceCoverage", 0.50, "Internal audit assurance weight"),
    ("Assurance_ThirdParty", "AssuranceCoverage", 0.50, "Third party assurance weight"),
    ("Coverage_Comprehensive", "AssuranceCoverage", 0.95, "Haircut ratio for comprehensive coverage"),
    ("Coverage_Moderate", "AssuranceCoverage", 0.50, "Haircut ratio for moderate coverage"),
    ("Coverage_Limited", "AssuranceCoverage", 0.15, "Haircut ratio for limited coverage"),
    ("InternalAudit_ResidualWeight", "ResidualRisk", 0.80, "Internal audit residual weight"),
    ("ERM_ResidualWeight", "ResidualRisk", 0.20, "ERM residual weight"),
    ("combined_high", "Threshold", 3.6, "Combined residual (1-5) High threshold"),
    ("combined_medium", "Threshold", 2.1, "Combined residual (1-5) Medium threshold"),
    ("weighted_high", "Threshold", 1.8, "Weighted score (0-2.5) High threshold"),
    ("weighted_medium", "Threshold", 1.0, "Weighted score (0-2.5) Medium threshold"),
    ("priority_year_offset_1", "Threshold", 1, "Years until audit for priority 1"),
    ("priority_year_offset_2", "Threshold", 2, "Years until audit for priority 2"),
    ("priority_year_offset_3", "Threshold", 3, "Years until audit for priority 3"),
    ("priority_year_offset_4", "Threshold", 4, "Years until audit for priority 4"),
]


def upgrade() -> None:
    risk_weights = sa.table(
        "risk_weights",
        sa.column("id", sa.String),
        sa.column("factor_name", sa.String),
        sa.column("category", sa.String),
        sa.column("weight", sa.Float),
        sa.column("description", sa.Text),
    )
    op.bulk_insert(risk_weights, [
        {"id": str(uuid.uuid4()), "factor_name": name, "category": category, "weight": weight, "description": desc}
        for name, category, weight, desc in WEIGHTS
    ])


def downgrade() -> None:
    names = ", ".join(f"'{name}'" for name, *_ in WEIGHTS)
    op.execute(f"DELETE FROM risk_weights WHERE factor_name IN ({names})")

"""
Integration tests for the full risk chain.
Tests end-to-end evaluation with realistic audit-planning scenarios.
"""
import pytest

from app.core.exceptions import ValidationError
from app.schemas.risk_request import RISK_FACTOR_FIELDS, RiskLevel
from app.scoring.engine import evaluate
from app.scoring.weights import WeightConfig


def _evaluate(**overrides):
    """Baseline: the casino-operations area, well covered, ERM Medium."""
    kwargs = {
        "ratings": {
            "financial_impact": "High",
            "legal_compliance_impact": "Medium",
            "strategic_significance": "High",
            "technological_cyber_impact": "Medium",
            "new_process_system": "Low",
            "stakeholder_impact": "High",
            "c_level_concerns": "High",
        },
        "coverage": {"InternalAudit": "Comprehensive", "ThirdParty": "Moderate"},
        "erm_residual": "Medium",
        "regulatory_requirement": False,
        "current_year": 2026,
    }
    kwargs.update(overrides)
    return evaluate(**kwargs)


class TestScenarios:
    def test_well_covered_area(self):
        r = _evaluate()
        assert r.inherent_risk_score == pytest.approx(2.0)
        assert r.assurance_haircut == pytest.approx(0.725)
        assert r.ia_residual_score == pytest.approx(0.55)
        assert r.ia_residual_level is RiskLevel.LOW
        assert r.combined_score == pytest.approx(1.4)
        assert r.combined_level is RiskLevel.LOW
        assert r.priority.priority_level == 4
        assert r.priority.proposed_audit_year == 2030

    def test_no_coverage_high_erm(self):
        r = _evaluate(coverage={}, erm_residual="High")
        assert r.assurance_haircut == pytest.approx(0.15)
        assert r.ia_residual_score == pytest.approx(1.7)
        assert r.ia_residual_level is RiskLevel.MEDIUM
        assert r.combined_score == pytest.approx(3.4)
        assert r.combined_level is RiskLevel.MEDIUM
        assert r.priority.priority_level == 3
        assert r.priority.proposed_audit_year == 2029

    def test_everything_high_and_regulated(self):
        r = _evaluate(
            ratings={name: "High" for name in RISK_FACTOR_FIELDS},
            coverage={},
            erm_residual="High",
            regulatory_requirement=True,
        )
        assert r.combined_level is RiskLevel.HIGH
        assert r.priority.priority_level == 1
        assert r.priority.proposed_audit_year == 2027

    def test_regulatory_flag_raises_urgency(self):
        assert _evaluate(regulatory_requirement=True).priority.priority_level == 3

    def test_reports_weights_version(self):
        assert _evaluate(weights=WeightConfig(version=7)).weights_version == 7


class TestStageReuse:
    def test_stored_inherent_is_reused(self):
        # ratings would give 2.0; the stored score wins
        r = _evaluate(inherent_risk_score=1.2)
        assert r.inherent_risk_score == 1.2
        assert r.ia_residual_score == pytest.approx(1.2 * 0.275)

    def test_stored_haircut_is_reused(self):
        r = _evaluate(assurance_haircut=0.0)
        assert r.assurance_haircut == 0.0
        assert r.ia_residual_score == pytest.approx(2.0)
        assert r.ia_residual_level is RiskLevel.HIGH

    def test_reused_stage_skips_rating_validation(self):
        r = _evaluate(ratings={}, inherent_risk_score=2.0)
        assert r.inherent_risk_score == 2.0

    def test_zero_is_a_valid_stored_value(self):
        r = _evaluate(inherent_risk_score=0.0)
        assert r.ia_residual_score == 0.0


class TestInvalidInputs:
    def test_bad_rating(self):
        ratings = {name: "Medium" for name in RISK_FACTOR_FIELDS}
        ratings["stakeholder_impact"] = "Severe"
        with pytest.raises(ValidationError):
            _evaluate(ratings=ratings)

    def test_bad_erm(self):
        with pytest.raises(ValidationError) as exc:
            _evaluate(erm_residual="Unknown")
        assert exc.value.field == "erm_residual_risk"

    def test_bad_coverage(self):
        with pytest.raises(ValidationError):
            _evaluate(coverage={"InternalAudit": "Full"})

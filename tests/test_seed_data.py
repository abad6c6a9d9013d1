"""
Sample data seeding.
"""
import pytest

from app.schemas.risk_request import RiskLevel
from app.services.seed_data import SAMPLE_AREA_NAME, seed_sample_area


class TestSampleArea:
    def test_sample_area_scores(self, db_session, orchestrator):
        snap = seed_sample_area(db_session, orchestrator)
        assert snap.inherent_risk_score == pytest.approx(2.0)
        assert snap.assurance_haircut == pytest.approx(0.725)
        assert snap.combined_residual_risk_level is RiskLevel.LOW
        assert snap.priority.priority_level == 4

    def test_second_run_is_a_no_op(self, db_session, orchestrator, load_area):
        first = seed_sample_area(db_session, orchestrator)
        assert seed_sample_area(db_session, orchestrator) is None
        assert load_area(first.auditable_area_id).name == SAMPLE_AREA_NAME

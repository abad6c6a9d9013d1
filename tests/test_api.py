"""
HTTP surface: area routes, admin routes and error mapping.
"""
import pytest
from sqlalchemy import select

from app.models.auditable_area import RiskFactor


RATINGS = {
    "financial_impact": "High",
    "legal_compliance_impact": "Medium",
    "strategic_significance": "High",
    "technological_cyber_impact": "Medium",
    "new_process_system": "Low",
    "stakeholder_impact": "High",
    "c_level_concerns": "High",
}


class TestAreaRoutes:
    def test_ratings_then_coverage(self, client, make_area):
        area_id = make_area()
        r = client.put(f"/v1/areas/{area_id}/risk-ratings", json=RATINGS)
        assert r.status_code == 200
        assert r.json()["inherent_risk_score"] == pytest.approx(2.0)

        client.put(f"/v1/areas/{area_id}/coverage/InternalAudit", json={"coverage_level": "Comprehensive"})
        r = client.put(f"/v1/areas/{area_id}/coverage/ThirdParty", json={"coverage_level": "Moderate"})
        body = r.json()
        assert r.status_code == 200
        assert body["assurance_haircut"] == pytest.approx(0.725)
        assert body["combined_residual_risk_level"] == "Low"
        assert body["priority"]["priority_level"] == 4

    def test_get_risk(self, client, make_area):
        area_id = make_area()
        client.put(f"/v1/areas/{area_id}/enterprise-residual", json={"erm_residual_risk": "High"})
        r = client.get(f"/v1/areas/{area_id}/risk")
        assert r.status_code == 200
        assert r.json()["erm_residual_risk"] == "High"

    def test_regulatory_requirement(self, client, make_area):
        area_id = make_area()
        r = client.put(
            f"/v1/areas/{area_id}/regulatory-requirement",
            json={"regulatory_requirement": True, "regulation": "AML Directive"},
        )
        assert r.status_code == 200
        assert r.json()["regulatory_requirement"] is True
        assert r.json()["priority"]["priority_level"] == 2

    def test_override_cycle(self, client, make_area):
        area_id = make_area()
        client.post(f"/v1/areas/{area_id}/priority/recompute")
        r = client.put(
            f"/v1/areas/{area_id}/priority/override",
            json={"priority_level": 1, "proposed_audit_year": 2026, "justification": "Fraud incident"},
        )
        assert r.status_code == 200
        assert r.json()["overridden"] is True

        r = client.post(f"/v1/areas/{area_id}/priority/recompute")
        assert r.json()["priority_level"] == 1

        r = client.delete(f"/v1/areas/{area_id}/priority/override")
        assert r.status_code == 200
        assert r.json()["overridden"] is False
        assert r.json()["priority_level"] == 3


class TestErrorMapping:
    def test_unknown_area_is_404(self, client):
        r = client.put("/v1/areas/nope/risk-ratings", json={"financial_impact": "High"})
        assert r.status_code == 404
        assert r.json()["detail"]["code"] == "NOT_FOUND"

    def test_unscored_area_is_404(self, client, make_area):
        assert client.get(f"/v1/areas/{make_area()}/risk").status_code == 404

    def test_unknown_rating_is_422(self, client, make_area):
        r = client.put(f"/v1/areas/{make_area()}/risk-ratings", json={"financial_impact": "Extreme"})
        assert r.status_code == 422

    def test_unknown_provider_is_422(self, client, make_area):
        r = client.put(f"/v1/areas/{make_area()}/coverage/Regulator", json={"coverage_level": "Moderate"})
        assert r.status_code == 422

    def test_malformed_stored_rating_is_422(self, client, make_area, session_factory):
        area_id = make_area()
        client.put(f"/v1/areas/{area_id}/risk-ratings", json=RATINGS)
        session = session_factory()
        try:
            rf = session.execute(select(RiskFactor).where(RiskFactor.auditable_area_id == area_id)).scalar_one()
            rf.financial_impact = "Extreme"
            session.commit()
        finally:
            session.close()
        r = client.put(f"/v1/areas/{area_id}/enterprise-residual", json={"erm_residual_risk": "High"})
        assert r.status_code == 422
        assert r.json()["detail"]["code"] == "VALIDATION_ERROR"
        assert r.json()["detail"]["field"] == "financial_impact"
        assert client.get(f"/v1/areas/{area_id}/risk").status_code == 422


class TestAdminRoutes:
    def test_list_weights(self, client):
        r = client.get("/v1/admin/weights")
        body = r.json()
        assert r.status_code == 200
        assert body["version"] == 0
        assert body["factor_weight_sum"] == pytest.approx(1.0)
        names = {w["factor_name"] for w in body["weights"]}
        assert {"financial_impact", "Coverage_Limited", "combined_high"} <= names
        assert all(w["is_default"] for w in body["weights"])

    def test_update_weight_reloads_config(self, client):
        r = client.put("/v1/admin/weights/Coverage_Limited", json={"weight": 0.0})
        body = r.json()
        assert r.status_code == 200
        assert body["version"] > 0
        limited = next(w for w in body["weights"] if w["factor_name"] == "Coverage_Limited")
        assert limited["weight"] == 0.0
        assert limited["is_default"] is False

    def test_update_weight_with_bad_sum_reports_warning(self, client):
        r = client.put("/v1/admin/weights/financial_impact", json={"weight": 0.9})
        assert r.status_code == 200
        assert any("sum to" in w for w in r.json()["warnings"])

    def test_contradicting_category_rejected(self, client):
        r = client.put("/v1/admin/weights/financial_impact", json={"weight": 0.5, "category": "Threshold"})
        assert r.status_code == 422
        assert client.get("/v1/admin/weights").json()["version"] == 0

    def test_matching_category_accepted(self, client):
        r = client.put("/v1/admin/weights/combined_high", json={"weight": 4.0, "category": "Threshold"})
        assert r.status_code == 200
        high = next(w for w in r.json()["weights"] if w["factor_name"] == "combined_high")
        assert high["weight"] == 4.0

    def test_unknown_weight_needs_category(self, client):
        assert client.put("/v1/admin/weights/mystery", json={"weight": 0.1}).status_code == 422

    def test_recompute_all(self, client, make_area):
        make_area("Claims")
        make_area("Payroll")
        r = client.post("/v1/admin/recompute-all")
        body = r.json()
        assert r.status_code == 200
        assert body["total"] == 2
        assert body["updated"] == 2

    def test_health(self, client):
        r = client.get("/v1/risk/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"

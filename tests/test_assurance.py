"""
Assurance haircut: coverage ratios, provider blending, missing providers.
"""
import pytest

from app.core.exceptions import ValidationError
from app.schemas.risk_request import CoverageLevel, ProviderType
from app.scoring.assurance import calculate_haircut, coverage_of, coverage_ratio
from app.scoring.weights import WeightConfig

LEVELS = ("Limited", "Moderate", "Comprehensive")


class TestCoverageRatio:
    def test_defaults(self):
        assert coverage_ratio("Comprehensive") == 0.95
        assert coverage_ratio("Moderate") == 0.50
        assert coverage_ratio("Limited") == 0.15

    def test_missing_counts_as_limited(self):
        assert coverage_ratio(None) == coverage_ratio(CoverageLevel.LIMITED)

    def test_limited_ratio_is_configurable(self):
        assert coverage_ratio("Limited", WeightConfig(weights={"Coverage_Limited": 0.0})) == 0.0


class TestHaircut:
    def test_comprehensive_and_moderate(self):
        haircut = calculate_haircut({"InternalAudit": "Comprehensive", "ThirdParty": "Moderate"})
        assert haircut == pytest.approx(0.725)

    def test_no_coverage_records(self):
        assert calculate_haircut({}) == pytest.approx(0.15)

    def test_one_provider_missing(self):
        haircut = calculate_haircut({ProviderType.INTERNAL_AUDIT: CoverageLevel.COMPREHENSIVE})
        assert haircut == pytest.approx((0.95 + 0.15) / 2)

    def test_ordering_by_coverage(self):
        limited = calculate_haircut({"InternalAudit": "Limited", "ThirdParty": "Limited"})
        moderate = calculate_haircut({"InternalAudit": "Moderate", "ThirdParty": "Moderate"})
        comprehensive = calculate_haircut({"InternalAudit": "Comprehensive", "ThirdParty": "Comprehensive"})
        assert limited < moderate < comprehensive

    def test_monotonic_per_provider(self):
        for other in LEVELS:
            haircuts = [calculate_haircut({"InternalAudit": lvl, "ThirdParty": other}) for lvl in LEVELS]
            assert haircuts == sorted(haircuts)

    def test_always_in_unit_interval(self):
        for ia in LEVELS:
            for tp in LEVELS:
                assert 0.0 <= calculate_haircut({"InternalAudit": ia, "ThirdParty": tp}) <= 1.0

    def test_clamped_when_ratios_exceed_one(self):
        weights = WeightConfig(weights={"Coverage_Comprehensive": 1.4})
        assert calculate_haircut({"InternalAudit": "Comprehensive", "ThirdParty": "Comprehensive"}, weights) == 1.0

    def test_blend_weights_shift_the_average(self):
        weights = WeightConfig(weights={"Assurance_InternalAudit": 0.75, "Assurance_ThirdParty": 0.25})
        haircut = calculate_haircut({"InternalAudit": "Comprehensive", "ThirdParty": "Limited"}, weights)
        assert haircut == pytest.approx(0.75 * 0.95 + 0.25 * 0.15)

    def test_zero_blend_falls_back_to_equal_weighting(self):
        weights = WeightConfig(weights={"Assurance_InternalAudit": 0.0, "Assurance_ThirdParty": 0.0})
        haircut = calculate_haircut({"InternalAudit": "Comprehensive", "ThirdParty": "Moderate"}, weights)
        assert haircut == pytest.approx(0.725)

    def test_unknown_level_rejected(self):
        with pytest.raises(ValidationError):
            calculate_haircut({"InternalAudit": "Excellent"})

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError):
            calculate_haircut({"Regulator": "Moderate"})


class TestCoverageOf:
    def test_rows_to_map(self):
        class Row:
            def __init__(self, provider_type, coverage_level):
                self.provider_type = provider_type
                self.coverage_level = coverage_level

        mapping = coverage_of([Row("InternalAudit", "Moderate"), Row("ThirdParty", "Limited")])
        assert mapping == {ProviderType.INTERNAL_AUDIT: "Moderate", ProviderType.THIRD_PARTY: "Limited"}

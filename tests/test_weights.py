"""
Weight configuration: defaults, overrides from stored rows, validation
warnings and versioning of the process-wide instance.
"""
import threading
import warnings

import pytest

from app.core.exceptions import ConfigurationWarning
from app.models.risk_weight import RiskWeight
from app.scoring.weights import (
    DEFAULT_CATEGORIES, DEFAULT_FACTOR_WEIGHTS, DEFAULT_THRESHOLDS, DEFAULT_WEIGHTS, WeightConfig, get_weight_config,
    reload_weight_config, reset_weight_config, set_weight_config,
)
from app.services.seed_data import seed_default_weights


def _row(name, weight, category=None):
    if category is None:
        category = DEFAULT_CATEGORIES[name].value if name in DEFAULT_CATEGORIES else "RiskFactor"
    return RiskWeight(factor_name=name, category=category, weight=weight)


def _full_rows(**overrides):
    values = {**DEFAULT_WEIGHTS, **DEFAULT_THRESHOLDS, **overrides}
    return [_row(name, value) for name, value in values.items()]


class TestDefaults:
    def test_factor_weights_sum_to_one(self):
        assert sum(DEFAULT_FACTOR_WEIGHTS.values()) == pytest.approx(1.0)

    def test_empty_config_uses_defaults(self):
        cfg = WeightConfig()
        assert cfg.weight("strategic_significance") == 0.20
        assert cfg.weight("Coverage_Limited") == 0.15
        assert cfg.threshold("combined_high") == 3.6
        assert cfg.is_default("financial_impact")
        assert cfg.validate() == []

    def test_unknown_name_is_zero(self):
        cfg = WeightConfig()
        assert cfg.weight("no_such_factor") == 0.0
        assert cfg.threshold("no_such_threshold") == 0.0

    def test_starts_at_version_zero(self):
        assert get_weight_config().version == 0


class TestFromRows:
    def test_full_default_rows_raise_no_warning(self):
        rows = _full_rows()
        with warnings.catch_warnings():
            warnings.simplefilter("error", ConfigurationWarning)
            cfg = WeightConfig.from_rows(rows)
        assert cfg.issues == ()
        assert cfg.factor_weight_sum == pytest.approx(1.0)

    def test_threshold_rows_are_routed(self):
        cfg = WeightConfig.from_rows([_row("combined_high", 4.0, "Threshold")])
        assert cfg.threshold("combined_high") == 4.0
        assert "combined_high" not in cfg.weights

    def test_override_wins_over_default(self):
        rows = [_row(name, value) for name, value in DEFAULT_FACTOR_WEIGHTS.items()]
        rows.append(_row("Coverage_Limited", 0.0, "AssuranceCoverage"))
        cfg = WeightConfig.from_rows(rows)
        assert cfg.weight("Coverage_Limited") == 0.0
        assert not cfg.is_default("Coverage_Limited")
        assert cfg.is_default("Coverage_Moderate")

    def test_bad_sum_warns_but_builds(self):
        rows = [_row(name, value) for name, value in DEFAULT_FACTOR_WEIGHTS.items()]
        rows[0] = _row("financial_impact", 0.5)
        with pytest.warns(ConfigurationWarning, match="sum to"):
            cfg = WeightConfig.from_rows(rows)
        assert cfg.factor_weight_sum == pytest.approx(1.35)
        assert any("sum to" in issue for issue in cfg.issues)

    def test_missing_factor_weight_warns(self):
        with pytest.warns(ConfigurationWarning, match="fall back to defaults"):
            cfg = WeightConfig.from_rows([_row("financial_impact", 0.15)])
        assert cfg.weight("c_level_concerns") == 0.15

    def test_missing_non_factor_rows_warn(self):
        rows = [_row(name, value) for name, value in DEFAULT_FACTOR_WEIGHTS.items()]
        with pytest.warns(ConfigurationWarning, match="fall back to defaults"):
            cfg = WeightConfig.from_rows(rows)
        missing = next(issue for issue in cfg.issues if "fall back to defaults" in issue)
        for name in ("Assurance_InternalAudit", "Coverage_Limited", "ERM_ResidualWeight", "combined_high", "priority_year_offset_4"):
            assert name in missing
        assert "financial_impact" not in missing

    def test_single_missing_threshold_warns(self):
        rows = [row for row in _full_rows() if row.factor_name != "weighted_medium"]
        with pytest.warns(ConfigurationWarning, match="weighted_medium"):
            cfg = WeightConfig.from_rows(rows)
        assert cfg.threshold("weighted_medium") == 1.0

    def test_known_name_routed_by_name_not_category(self):
        rows = _full_rows()
        rows = [row for row in rows if row.factor_name != "financial_impact"]
        rows.append(_row("financial_impact", 0.5, "Threshold"))
        with pytest.warns(ConfigurationWarning, match="expected RiskFactor"):
            cfg = WeightConfig.from_rows(rows)
        assert cfg.weight("financial_impact") == 0.5
        assert "financial_impact" not in cfg.thresholds

    def test_unknown_name_routed_by_category(self):
        cfg = WeightConfig.from_rows(_full_rows() + [_row("review_cutoff", 2.5, "Threshold")])
        assert cfg.threshold("review_cutoff") == 2.5

    def test_inverted_thresholds_warn(self):
        with pytest.warns(ConfigurationWarning, match="combined_medium"):
            WeightConfig.from_rows([_row("combined_medium", 4.0, "Threshold")])

    def test_tolerance(self):
        cfg = WeightConfig(weights={**DEFAULT_FACTOR_WEIGHTS, "financial_impact": 0.15005})
        assert cfg.validate(tolerance=1e-3) == []
        assert cfg.validate(tolerance=1e-6) != []


class TestVersioning:
    def test_set_bumps_version(self):
        first = set_weight_config(WeightConfig(weights={"Coverage_Limited": 0.1}))
        second = set_weight_config(WeightConfig())
        assert first.version == 1
        assert second.version == 2
        assert get_weight_config() is second

    def test_reset(self):
        set_weight_config(WeightConfig(weights={"Coverage_Limited": 0.1}))
        reset_weight_config()
        assert get_weight_config().version == 0
        assert get_weight_config().weight("Coverage_Limited") == 0.15

    def test_reload_from_table(self, db_session):
        assert seed_default_weights(db_session) == len(DEFAULT_WEIGHTS) + len(DEFAULT_THRESHOLDS)
        row = db_session.query(RiskWeight).filter_by(factor_name="Coverage_Limited").one()
        row.weight = 0.05
        db_session.commit()

        cfg = reload_weight_config(db_session)
        assert cfg.version > 0
        assert cfg.weight("Coverage_Limited") == 0.05
        assert get_weight_config() is cfg

    def test_seeding_is_idempotent(self, db_session):
        seed_default_weights(db_session)
        assert seed_default_weights(db_session) == 0

    def test_reload_assigns_exactly_the_next_version(self, db_session):
        seed_default_weights(db_session)
        set_weight_config(WeightConfig())
        cfg = reload_weight_config(db_session)
        assert cfg.version == 2
        assert get_weight_config().version == 2

    def test_concurrent_reloads_get_distinct_versions(self):
        rows = _full_rows()

        class _Rows:
            def scalars(self):
                return self

            def all(self):
                return rows

        class _Session:
            def execute(self, statement):
                return _Rows()

        versions = []

        def reload():
            versions.append(reload_weight_config(_Session()).version)

        threads = [threading.Thread(target=reload) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(versions) == list(range(1, 9))
        assert get_weight_config().version == 8

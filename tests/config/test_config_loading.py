"""
Tests for costing_config: loading, merging, validation and kernel bridges.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from costing_config import DATABASE_URL_ENV, get_active_settings
from costing_config.bridges import build_engine_policy, create_costing_engine
from costing_config.loader import merge_documents, parse_settings
from costing_config.schema import DatabaseSettings, EngineSettings
from costing_kernel.db.engine import drop_tables, reset_engine
from costing_kernel.db.immutability import unregister_immutability_listeners
from costing_kernel.domain.types import CostTiming, ItemKind, UnitOfMeasure


@pytest.fixture(autouse=True)
def _no_database_env(monkeypatch):
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


@pytest.fixture
def user_config(tmp_path):
    def _write(text: str):
        path = tmp_path / "costing.yaml"
        path.write_text(text)
        return path

    return _write


class TestGetActiveSettings:
    def test_bundled_defaults(self):
        settings = get_active_settings()

        assert settings.database.url == "sqlite:///costing.db"
        assert settings.transactions.max_attempts == 3
        assert settings.costing.sale_cost_timing == "live"
        assert settings.costing.standard_unit_multipliers["grams"] == Decimal("1000")
        assert settings.alerts.raw_material_low == Decimal("100")
        assert len(settings.sources) == 1

    def test_user_file_merged_over_defaults(self, user_config):
        path = user_config(
            "costing:\n"
            "  sale_cost_timing: frozen\n"
            "alerts:\n"
            "  finished_good_low: '50'\n"
        )

        settings = get_active_settings(path)

        assert settings.costing.sale_cost_timing == "frozen"
        assert settings.costing.clamp_raw_material_shortfall is True
        assert settings.alerts.finished_good_low == Decimal("50")
        assert settings.alerts.finished_good_critical == Decimal("5")
        assert settings.sources[-1] == str(path)

    def test_environment_overrides_database_url(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://costing@localhost/costing")

        settings = get_active_settings()

        assert settings.database.url == "postgresql://costing@localhost/costing"
        assert settings.sources[-1] == f"env:{DATABASE_URL_ENV}"

    def test_checksum_changes_with_content(self, user_config):
        default = get_active_settings()
        custom = get_active_settings(user_config("transactions:\n  max_attempts: 5\n"))

        assert default.checksum != custom.checksum
        assert default.checksum == get_active_settings().checksum

    def test_trace_logged(self, captured_logs):
        get_active_settings()

        traces = [r for r in captured_logs() if r["message"] == "COSTING_CONFIG_TRACE"]
        assert traces[0]["sale_cost_timing"] == "live"
        assert traces[0]["max_attempts"] == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "absent.yaml")


class TestValidation:
    @pytest.mark.parametrize(
        "document,message",
        [
            ({"costing": {"sale_cost_timng": "live"}}, "unknown keys"),
            ({"reporting": {}}, "Unknown configuration sections"),
            ({"costing": {"sale_cost_timing": "yesterday"}}, "sale_cost_timing"),
            ({"transactions": {"max_attempts": 0}}, "max_attempts"),
            ({"database": {"echo": "yes"}}, "database.echo"),
            ({"alerts": {"raw_material_critical": "200"}}, "critical <= low"),
            ({"costing": {"standard_unit_multipliers": {"pounds": "1"}}}, "unknown unit"),
            ({"costing": {"standard_unit_multipliers": {"grams": "0"}}}, "must be > 0"),
        ],
    )
    def test_invalid_documents(self, document, message):
        with pytest.raises(ValueError, match=message):
            parse_settings(document)

    def test_merge_replaces_scalars_only(self):
        merged = merge_documents(
            {"costing": {"a": 1, "b": {"x": 1}}},
            {"costing": {"b": {"y": 2}}},
        )
        assert merged == {"costing": {"a": 1, "b": {"x": 1, "y": 2}}}


class TestBridges:
    def test_build_engine_policy(self, user_config):
        settings = get_active_settings(
            user_config(
                "transactions:\n"
                "  max_attempts: 7\n"
                "costing:\n"
                "  clamp_raw_material_shortfall: false\n"
                "  sale_cost_timing: frozen\n"
                "  standard_unit_multipliers:\n"
                "    grams: '100'\n"
            )
        )

        policy = build_engine_policy(settings)

        assert policy.max_attempts == 7
        assert policy.clamp_raw_material_shortfall is False
        assert policy.sale_cost_timing is CostTiming.FROZEN
        assert policy.standard_unit_multipliers[UnitOfMeasure.GRAMS] == Decimal("100")
        assert policy.standard_unit_multipliers[UnitOfMeasure.UNITS] == Decimal("1")
        assert policy.alert_thresholds()[ItemKind.RAW_MATERIAL] == (
            Decimal("10"),
            Decimal("100"),
        )

    def test_create_costing_engine(self, deterministic_clock):
        settings = replace(EngineSettings(), database=DatabaseSettings(url="sqlite://"))
        reset_engine()
        try:
            engine = create_costing_engine(settings, clock=deterministic_clock)
            milk = engine.create_raw_material("Milk").entity
            engine.register_purchase(milk.id, Decimal("100"), Decimal("2"))

            assert engine.recompute_raw_material(milk.id).unit_cost == Decimal("0.02")
            assert engine.policy.max_attempts == 3
        finally:
            unregister_immutability_listeners()
            drop_tables()
            reset_engine()

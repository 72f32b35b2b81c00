# =============================================================================
# ELV COMPLIANCE ENGINE - REPORT ENGINE TESTS
# =============================================================================
# Tests for the orchestrated report tables.
# =============================================================================

import copy
from datetime import date

import pytest

from compliance.catalog import load_catalog
from compliance.filters import ALL, FilterState
from compliance.report import ReportCache, build_report, cost_by_material
from compliance.targets import CustomTarget, TargetOverlay


class TestPartRows:
    """Tests for part-level CBAM rows."""

    def test_statuses(self, sample_report):
        statuses = {r["part_id"]: r["status"] for r in sample_report.part_rows}
        assert statuses == {"p1": "Compliant", "p2": "Non-Compliant", "p3": "Warning"}

    def test_cbam_amounts(self, sample_report):
        amounts = {r["part_id"]: r["cbam_amount"] for r in sample_report.part_rows}
        assert amounts["p1"] == pytest.approx(0.8 * 85 * 1000)
        assert amounts["p2"] == pytest.approx(2.2 * 85 * 500)
        assert amounts["p3"] == pytest.approx(3.6 * 85 * 200)
        assert sample_report.total_projected_cost == pytest.approx(68000 + 93500 + 61200)

    def test_breakdown(self, sample_report):
        assert sample_report.part_status.total == 3
        assert sample_report.part_status.at_risk == 2

    def test_cost_by_material(self, sample_report):
        costs = cost_by_material(sample_report)
        assert list(costs) == ["Steel", "Plastic", "Aluminum"]
        assert costs["Plastic"] == pytest.approx(93500)

    def test_no_errors_or_warnings(self, sample_report):
        assert sample_report.errors == []
        assert sample_report.warnings == []


class TestModelRows:
    """Tests for model readiness and EPR rows."""

    def test_legacy_model_uses_recovery(self, sample_report):
        m1 = sample_report.model_rows[0]
        assert m1["epr_regime"] == "epr_recovery"
        assert m1["epr_status"] == "Compliant"
        assert m1["status"] == "Compliant"
        assert m1["cbam_amount"] == pytest.approx(68000 + 61200)

    def test_new_model_uses_recycling(self, sample_report):
        m2 = sample_report.model_rows[1]
        assert m2["epr_regime"] == "epr_recycling"
        assert m2["epr_status"] == "Warning"
        assert m2["cbam_readiness"] == pytest.approx(40.0)
        assert m2["status"] == "Non-Compliant"

    def test_market_split(self, catalog_data, base_config, full_year_filter):
        data = copy.deepcopy(catalog_data)
        data["models"][0]["target_market"] = "Export"
        data["models"][1]["target_market"] = "Domestic"
        report = build_report(load_catalog(data), base_config, full_year_filter)
        assert report.market_split == {"Domestic": 1, "Export": 1}
        assert report.model_rows[0]["target_market"] == "Export"

    def test_market_split_without_markets(self, sample_report):
        assert sample_report.market_split == {"Domestic": 0, "Export": 0}

    def test_unknown_model_reported(self, catalog_data, base_config, full_year_filter):
        data = copy.deepcopy(catalog_data)
        data["parts"].append({"id": "p9", "name": "Orphan", "material": "Steel",
                              "model_ids": ["ghost"], "export_qty": 10,
                              "emissions": 2.0, "free_allowance": 1.0})
        report = build_report(load_catalog(data), base_config, full_year_filter)
        assert "Part p9 references unknown model ghost" in report.warnings
        assert [r["part_id"] for r in report.part_rows][-1] == "p9"
        assert len(report.model_rows) == 2


class TestSelections:
    """Tests for secondary selections."""

    def test_material_selection(self, catalog, base_config, full_year_filter):
        report = build_report(catalog, base_config, full_year_filter, {"material": "Plastic"})
        assert [r["part_id"] for r in report.part_rows] == ["p2"]
        assert [r["part_id"] for r in report.recovery_rows] == ["r2"]
        assert report.recycling_rows == []
        assert report.options["model"] == [ALL, "m2"]

    def test_filter_state_materials(self, catalog, base_config):
        state = FilterState(date(2025, 4, 1), date(2026, 3, 31), materials=("Aluminum",))
        report = build_report(catalog, base_config, state)
        assert [r["part_id"] for r in report.part_rows] == ["p3"]

    def test_epr_rows(self, sample_report):
        assert [r["status"] for r in sample_report.recovery_rows] == ["Compliant", "Warning"]
        assert sample_report.recycling_rows[0]["status"] == "Non-Compliant"
        assert sample_report.recovery_status.compliant == 1


class TestRegulatoryRows:
    """Tests for CBAM declaration and EPR obligation rows."""

    def test_cbam_rows(self, sample_report):
        row = sample_report.cbam_rows[0]
        assert row["projected_cost"] == pytest.approx(850000)
        assert row["carbon_price"] == 85.0

    def test_epr_obligations(self, sample_report):
        row = sample_report.epr_rows[0]
        assert row["gap"] == pytest.approx(1.5)
        assert row["status"] == "Warning"


class TestTargets:
    """Tests for prorated targets in the report."""

    def test_full_year(self, sample_report):
        assert sample_report.fiscal_year == "2025-26"
        assert sample_report.proration_factor == 1.0
        steel = sample_report.material_rows[0]
        assert steel["prorated_target"] == 1000.0
        assert steel["progress_pct"] == pytest.approx(40.0)
        assert sample_report.rvsf_targets == {"vehicles_scrapped": 500, "recovery_rate": 85.0}

    def test_half_year(self, catalog, base_config):
        state = FilterState(date(2025, 4, 1), date(2025, 9, 30))
        report = build_report(catalog, base_config, state)
        assert report.proration_factor == pytest.approx(183 / 365)
        assert report.material_rows[0]["prorated_target"] == pytest.approx(1000 * 183 / 365)
        assert report.rvsf_targets["vehicles_scrapped"] == 251
        assert report.rvsf_targets["recovery_rate"] == 85.0

    def test_window_spanning_fiscal_years(self, catalog, base_config):
        state = FilterState(date(2025, 4, 1), date(2026, 9, 30))
        report = build_report(catalog, base_config, state)
        assert report.fiscal_year == "2025-26"
        assert report.fiscal_years == ["2025-26", "2026-27"]
        assert report.proration_factor == pytest.approx(1 + 183 / 365)
        plastic = report.material_rows[1]
        assert plastic["prorated_target"] == pytest.approx(800 * (1 + 183 / 365))
        assert report.rvsf_targets["vehicles_scrapped"] == round(500 * (1 + 183 / 365))
        assert report.warnings == []

    def test_rvsf_overlay_per_year(self, catalog, base_config):
        overlay = TargetOverlay()
        overlay.add(CustomTarget("rvsf", "vehicles_scrapped", "2026-27", 1000))
        state = FilterState(date(2025, 4, 1), date(2026, 9, 30))
        report = build_report(catalog, base_config, state, overlay=overlay)
        assert report.rvsf_targets["vehicles_scrapped"] == round(500 + 1000 * 183 / 365)

    def test_overlay_overrides_defaults(self, catalog, base_config, full_year_filter):
        overlay = TargetOverlay()
        overlay.add(CustomTarget("material", "Steel", "2025-26", 2000, "MT"))
        overlay.add(CustomTarget("rvsf", "vehicles_scrapped", "2025-26", 800))
        report = build_report(catalog, base_config, full_year_filter, overlay=overlay)
        assert report.material_rows[0]["progress_pct"] == pytest.approx(20.0)
        assert report.rvsf_targets["vehicles_scrapped"] == 800

    def test_config_errors_reported(self, catalog, base_config, full_year_filter):
        bad = copy.deepcopy(base_config)
        bad["tolerance_bands"]["kpi"] = 2.0
        report = build_report(catalog, bad, full_year_filter)
        assert any("kpi" in e for e in report.errors)

    def test_unknown_regime_reported(self, catalog, base_config, full_year_filter):
        bad = copy.deepcopy(base_config)
        bad["tolerance_bands"]["generic"] = 0.1
        report = build_report(catalog, bad, full_year_filter)
        assert "Unknown tolerance band regime: generic" in report.errors
        assert len(report.part_rows) == 3

    def test_missing_carbon_prices_reported(self, catalog, base_config, full_year_filter):
        bad = copy.deepcopy(base_config)
        del bad["carbon_prices"]
        report = build_report(catalog, bad, full_year_filter)
        assert "Missing required section: carbon_prices" in report.errors
        assert report.carbon_price == 0.0
        assert report.total_projected_cost == 0.0

    def test_non_numeric_settings_reported(self, catalog, base_config, full_year_filter):
        bad = copy.deepcopy(base_config)
        bad["proration"]["variation_amplitude"] = "high"
        bad["fiscal_year"]["start_month"] = 13
        report = build_report(catalog, bad, full_year_filter)
        assert any("variation_amplitude" in e for e in report.errors)
        assert any("start_month" in e for e in report.errors)
        assert report.proration_factor == 1.0


class TestReportCache:
    """Tests for report memoisation."""

    def test_same_selection_reused(self, catalog, base_config, full_year_filter):
        cache = ReportCache(catalog, base_config)
        first = cache.get(full_year_filter, {"material": ["Steel", "Plastic"]})
        second = cache.get(full_year_filter, {"material": ["Plastic", "Steel"]})
        assert first is second
        assert len(cache) == 1

    def test_different_selection_rebuilt(self, catalog, base_config, full_year_filter):
        cache = ReportCache(catalog, base_config)
        cache.get(full_year_filter)
        cache.get(full_year_filter, {"model": "m1"})
        assert len(cache) == 2

    def test_overlay_changes_key(self, catalog, base_config, full_year_filter):
        cache = ReportCache(catalog, base_config)
        overlay = TargetOverlay()
        before = cache.get(full_year_filter, overlay=overlay)
        overlay.add(CustomTarget("material", "Steel", "2025-26", 2000))
        after = cache.get(full_year_filter, overlay=overlay)
        assert before is not after

    def test_deterministic(self, catalog, base_config, full_year_filter):
        a = build_report(catalog, base_config, full_year_filter, {"supplier": "S1"})
        b = build_report(catalog, base_config, full_year_filter, {"supplier": "S1"})
        assert a == b


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

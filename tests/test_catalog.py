# =============================================================================
# ELV COMPLIANCE ENGINE - CATALOG TESTS
# =============================================================================

import copy

import pytest

from compliance.catalog import (
    Generation, Material, load_catalog, load_catalog_file, normalize_score,
    validate_catalog,
)
from compliance.classifier import ComplianceStatus


class TestMaterialParsing:
    """Tests for material label normalisation."""

    @pytest.mark.parametrize("text", ["Cast Iron", "CastIron", "cast iron", "cast_iron", "Cast-Iron"])
    def test_cast_iron_aliases(self, text):
        assert Material.parse(text) == Material.CAST_IRON

    def test_aluminium_spelling(self):
        assert Material.parse("Aluminium") == Material.ALUMINUM

    def test_unknown_material_rejected(self):
        with pytest.raises(ValueError):
            Material.parse("Glass")

    def test_generation_parse(self):
        assert Generation.parse("legacy") == Generation.LEGACY
        with pytest.raises(ValueError):
            Generation.parse("Vintage")


class TestLoadCatalog:
    """Tests for building the typed catalog."""

    def test_collections_loaded(self, catalog):
        assert len(catalog.parts) == 3
        assert len(catalog.recovery_parts) == 2
        assert len(catalog.recycling_parts) == 1
        assert len(catalog.models) == 2
        assert set(catalog.rankings) == {"recyclers", "suppliers"}

    def test_part_fields(self, catalog):
        part = catalog.parts[0]
        assert part.part_id == "p1"
        assert part.material == Material.STEEL
        assert part.model_ids == ("m1", "m2")
        assert part.export_qty == 1000.0

    def test_epr_part_rate(self, catalog):
        assert catalog.recovery_parts[1].rate == 92.0

    def test_model_counts(self, catalog):
        m2 = catalog.model("m2")
        assert m2.generation == Generation.NEW
        assert m2.part_count == 2
        assert m2.compliant_part_count == 1
        assert m2.cbam_readiness is None
        assert m2.epr_recycling.status == ComplianceStatus.WARNING

    def test_models_by_generation(self, catalog):
        assert [m.model_id for m in catalog.models_by_generation("Legacy")] == ["m1"]

    def test_missing_model_returns_none(self, catalog):
        assert catalog.model("ghost") is None

    def test_missing_ranking_set(self, catalog):
        with pytest.raises(KeyError):
            catalog.ranking_set("dealers")

    def test_scores_on_canonical_scale(self, catalog):
        suppliers = catalog.ranking_set("suppliers")
        assert suppliers.entity_scores[0].score_for("Q") == pytest.approx(8.0)

        recyclers = catalog.ranking_set("recyclers")
        assert recyclers.entity_scores[0].score_for("A") == 8.0
        assert recyclers.entity_scores[2].score_for("B") is None

    def test_kpis_flattened(self, catalog):
        assert [k.kpi_id for k in catalog.kpis] == ["A", "B", "Q"]

    def test_kpi_lookup(self, catalog):
        assert catalog.kpi("Q").name == "Quality"
        assert catalog.kpi("A", ranking="recyclers").default_weight == 60.0
        assert catalog.kpi("Q", ranking="recyclers") is None
        assert catalog.kpi("missing") is None

    def test_bad_status_rejected(self, catalog_data):
        data = copy.deepcopy(catalog_data)
        data["models"][0]["epr_recovery"]["status"] = "Pending"
        with pytest.raises(ValueError):
            load_catalog(data)

    def test_empty_mapping(self):
        catalog = load_catalog({})
        assert catalog.parts == ()
        assert catalog.kpis == []

    def test_load_from_file(self, project_root):
        catalog = load_catalog_file(project_root / "data" / "catalog.yaml")
        assert catalog.model("evitara") is not None
        assert validate_catalog(catalog) == []


class TestNormalizeScore:
    """Tests for score rescaling."""

    def test_percentage_scale(self):
        assert normalize_score(85, 100) == pytest.approx(8.5)

    def test_canonical_scale_unchanged(self):
        assert normalize_score(7, 10) == 7.0

    def test_invalid_scale_passthrough(self):
        assert normalize_score(7, 0) == 7.0


class TestValidateCatalog:
    """Tests for referential integrity checks."""

    def test_valid_catalog(self, catalog):
        assert validate_catalog(catalog) == []

    def test_unknown_model_reference(self, catalog_data):
        data = copy.deepcopy(catalog_data)
        data["parts"][0]["model_ids"].append("ghost")
        errors = validate_catalog(load_catalog(data))
        assert "Part p1 in parts references unknown model ghost" in errors

    def test_duplicate_part_id(self, catalog_data):
        data = copy.deepcopy(catalog_data)
        data["parts"][1]["id"] = "p1"
        errors = validate_catalog(load_catalog(data))
        assert any("Duplicate part id in parts: p1" in e for e in errors)

    def test_duplicate_model_id(self, catalog_data):
        data = copy.deepcopy(catalog_data)
        data["models"][1]["id"] = "m1"
        errors = validate_catalog(load_catalog(data))
        assert "Duplicate model ids in catalog" in errors

    def test_default_weights_must_sum_to_100(self, catalog_data):
        data = copy.deepcopy(catalog_data)
        data["rankings"]["recyclers"]["kpis"][1]["default_weight"] = 30
        errors = validate_catalog(load_catalog(data))
        assert "Default KPI weights for recyclers sum to 90 (must equal 100)" in errors

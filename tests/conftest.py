# =============================================================================
# ELV COMPLIANCE ENGINE - PYTEST CONFIGURATION
# =============================================================================
# Shared fixtures and configuration for all tests.
# =============================================================================

import pytest
import sys
import os
from datetime import date
from pathlib import Path

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture
def project_root():
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root):
    """Get configuration directory."""
    return project_root / "config"


@pytest.fixture
def base_config():
    """Engine configuration for testing."""
    return {
        "carbon_prices": {"projection": 85.0, "reference_average": 93.0},
        "tolerance_bands": {
            "cbam_readiness": 0.20,
            "cbam_emissions": 0.05,
            "epr_recovery": 0.05,
            "epr_recycling": 0.05,
            "kpi": 0.20,
        },
        "fiscal_year": {"start_month": 4},
        "targets": {"cbam_readiness": 90},
        "proration": {"variation_amplitude": 0.0, "seed": 0},
        "defaults": {
            "rvsf_targets": {"vehicles_scrapped": 500},
            "rate_targets": {"recovery_rate": 85},
        },
    }


@pytest.fixture
def catalog_data():
    """Small catalog mapping for testing."""
    return {
        "parts": [
            {"id": "p1", "name": "Body Panel", "material": "Steel", "grade": "G1",
             "hs_code": "7308", "model_ids": ["m1", "m2"], "export_qty": 1000,
             "emissions": 1.6, "benchmark": 1.9, "free_allowance": 0.8,
             "supplier": "S1", "action": "None"},
            {"id": "p2", "name": "Bumper", "material": "Plastic", "grade": "G2",
             "hs_code": "3926", "model_ids": ["m2"], "export_qty": 500,
             "emissions": 3.2, "benchmark": 3.0, "free_allowance": 1.0,
             "supplier": "S2", "action": "Increase Recycled Content"},
            {"id": "p3", "name": "Knuckle", "material": "Aluminum", "grade": "G3",
             "hs_code": "7601", "model_ids": ["m1"], "export_qty": 200,
             "emissions": 4.1, "benchmark": 4.0, "free_allowance": 0.5,
             "supplier": "S1", "action": "Monitor"},
        ],
        "recovery_parts": [
            {"id": "r1", "name": "Body Panel", "material": "Steel", "grade": "G1",
             "model_ids": ["m1"], "rate": 98, "benchmark": 95},
            {"id": "r2", "name": "Bumper", "material": "Plastic", "grade": "G2",
             "model_ids": ["m1"], "rate": 92, "benchmark": 95},
        ],
        "recycling_parts": [
            {"id": "c1", "name": "Knuckle", "material": "Aluminum", "grade": "G3",
             "model_ids": ["m2"], "rate": 75, "benchmark": 85},
        ],
        "models": [
            {"id": "m1", "name": "Model One", "generation": "Legacy", "type": "ICE",
             "export_vehicles": 1000, "cbam_readiness": 92,
             "materials": {"Steel": {"parts": 2, "compliant_parts": 2,
                                     "compliant_volume": 800, "total_volume": 1000}},
             "epr_recovery": {"target": 95, "actual": 96, "status": "Compliant"}},
            {"id": "m2", "name": "Model Two", "generation": "New", "type": "EV",
             "export_vehicles": 500,
             "materials": {
                 "Steel": {"parts": 1, "compliant_parts": 1,
                           "compliant_volume": 600, "total_volume": 1000},
                 "Plastic": {"parts": 1, "compliant_parts": 0,
                             "compliant_volume": 0, "total_volume": 500},
             },
             "epr_recycling": {"target": 85, "actual": 82, "status": "Warning"}},
        ],
        "rankings": {
            "recyclers": {
                "score_scale": 10,
                "kpis": [
                    {"id": "A", "name": "KPI A", "default_weight": 60},
                    {"id": "B", "name": "KPI B", "default_weight": 40},
                ],
                "entities": [
                    {"name": "X", "scores": {"A": 8, "B": 5}},
                    {"name": "Y", "scores": {"A": 6, "B": 9}},
                    {"name": "Z", "scores": {"A": 7}},
                ],
            },
            "suppliers": {
                "score_scale": 100,
                "kpis": [{"id": "Q", "name": "Quality", "default_weight": 100}],
                "entities": [{"name": "S1", "scores": {"Q": 80}}],
            },
        },
        "cbam_items": [
            {"hs_code": "7308", "description": "Structures of Steel",
             "export_quantity": 12500, "embedded_emissions": 1.6,
             "carbon_price_paid": 15, "free_allowance": 0.8},
        ],
        "epr_items": [
            {"id": "epr-steel", "category": "Steel", "regulation": "ELV Rules",
             "metric": "Steel Recovery", "target": 8.0, "achieved": 6.5, "unit": "%"},
        ],
        "material_targets": [
            {"material": "Steel", "target": 1000, "achieved": 400, "unit": "MT",
             "fiscal_year": "2025-26"},
            {"material": "Plastic", "target": 800, "achieved": 900, "unit": "MT"},
        ],
    }


@pytest.fixture
def catalog(catalog_data):
    """Typed catalog built from the sample mapping."""
    from compliance.catalog import load_catalog
    return load_catalog(catalog_data)


@pytest.fixture
def full_year_filter():
    """Filter state covering fiscal year 2025-26."""
    from compliance.filters import FilterState
    return FilterState(date_from=date(2025, 4, 1), date_to=date(2026, 3, 31))


@pytest.fixture
def sample_report(catalog, base_config, full_year_filter):
    """Report over the full fiscal year with no secondary selections."""
    from compliance.report import build_report
    return build_report(catalog, base_config, full_year_filter)

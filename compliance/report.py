# =============================================================================
# ELV COMPLIANCE ENGINE - REPORT ENGINE
# =============================================================================
# Orchestrates the engines into the derived tables the dashboard renders.
#
# KEY PRINCIPLES:
# - Pure functions of (catalog, config, filter state, selections)
# - Deterministic: same inputs -> same outputs, so results can be memoised
# - Bad records are clamped or reported as warnings, never raised
#
# EXECUTION ORDER:
# 1. Resolve filter options and filter parts
# 2. CBAM liability and emission status per part
# 3. Model readiness and EPR status per model
# 4. EPR recovery / recycling part rates
# 5. CBAM declaration lines and EPR obligations
# 6. Material and RVSF targets, prorated per fiscal year and summed
# =============================================================================

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .aggregation import StatusBreakdown, clamp_pct, count_by, status_breakdown, sum_by
from .catalog import Catalog, EprItem, Generation, Part, VehicleModel
from .cbam import compute_liability, liability_table, model_readiness, price_for
from .classifier import Regime, ToleranceBands, classify_for
from .config import validate_config
from .filters import PART_DIMENSIONS, FilterState, apply_filters, resolve_options, selection_key
from .proration import (
    DateWindow, fiscal_years_between, prorate, proration_factor, seeded_variation, split_by_fiscal_year,
)
from .targets import TargetOverlay, effective_target, material_target_rows

logger = logging.getLogger(__name__)


@dataclass
class ComplianceReport:
    """Ready-to-render tables for one selection."""
    selection: str = ""
    fiscal_year: str = ""
    fiscal_years: List[str] = field(default_factory=list)
    proration_factor: float = 1.0
    carbon_price: float = 0.0

    options: Dict[str, List[Any]] = field(default_factory=dict)
    part_rows: List[Dict] = field(default_factory=list)
    model_rows: List[Dict] = field(default_factory=list)
    recovery_rows: List[Dict] = field(default_factory=list)
    recycling_rows: List[Dict] = field(default_factory=list)
    cbam_rows: List[Dict] = field(default_factory=list)
    material_rows: List[Dict] = field(default_factory=list)
    epr_rows: List[Dict] = field(default_factory=list)
    rvsf_targets: Dict[str, float] = field(default_factory=dict)
    market_split: Dict[str, int] = field(default_factory=dict)

    part_status: StatusBreakdown = field(default_factory=StatusBreakdown)
    recovery_status: StatusBreakdown = field(default_factory=StatusBreakdown)
    recycling_status: StatusBreakdown = field(default_factory=StatusBreakdown)

    total_projected_cost: float = 0.0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _part_selections(filter_state: Optional[FilterState], selections: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(selections or {})
    if filter_state is not None and filter_state.materials and not merged.get("material"):
        merged["material"] = list(filter_state.materials)
    return merged


def part_row(part: Part, carbon_price: float, bands: ToleranceBands) -> Dict:
    """CBAM row for one part; status derived from emissions vs benchmark."""
    liability = compute_liability(part, carbon_price)
    status = classify_for(Regime.CBAM_EMISSIONS, part.emissions, part.benchmark, bands)
    return {
        "part_id": part.part_id,
        "name": part.name,
        "material": part.material.value,
        "grade": part.grade,
        "hs_code": part.hs_code,
        "model_ids": list(part.model_ids),
        "supplier": part.supplier,
        "export_qty": part.export_qty,
        "emissions": part.emissions,
        "benchmark": part.benchmark,
        "taxable_emissions": liability.taxable_emissions,
        "cbam_amount": liability.projected_cost,
        "status": status.value,
        "action": part.action,
    }


def epr_part_row(part: Part, regime: Regime, bands: ToleranceBands) -> Dict:
    """EPR row for one part; rate and benchmark are percentages."""
    rate = clamp_pct(part.rate)
    benchmark = clamp_pct(part.benchmark)
    status = classify_for(regime, rate, benchmark, bands)
    return {
        "part_id": part.part_id,
        "name": part.name,
        "material": part.material.value,
        "grade": part.grade,
        "model_ids": list(part.model_ids),
        "rate": rate,
        "benchmark": benchmark,
        "status": status.value,
        "action": part.action,
    }


def epr_obligation_row(item: EprItem, bands: ToleranceBands) -> Dict:
    """Regulatory EPR obligation with its shortfall; status via the KPI band."""
    return {
        "item_id": item.item_id,
        "category": item.category,
        "regulation": item.regulation,
        "metric": item.metric,
        "target": item.target,
        "achieved": item.achieved,
        "unit": item.unit,
        "gap": max(0.0, item.target - item.achieved),
        "status": classify_for(Regime.KPI, item.achieved, item.target, bands).value,
    }


def build_model_rows(
    catalog: Catalog,
    parts: List[Part],
    part_rows: List[Dict],
    bands: ToleranceBands,
    warnings: List[str],
    readiness_target: float = 90.0,
) -> List[Dict]:
    """
    One row per vehicle model.

    Parts referencing unknown models are skipped for model aggregates and
    reported in `warnings`; they stay in the part table.
    """
    known = {m.model_id for m in catalog.models}
    amount_by_model: Dict[str, float] = {m.model_id: 0.0 for m in catalog.models}
    for part, row in zip(parts, part_rows):
        for model_id in part.model_ids:
            if model_id not in known:
                warnings.append(f"Part {part.part_id} references unknown model {model_id}")
                continue
            amount_by_model[model_id] += row["cbam_amount"]

    rows = []
    for model in catalog.models:
        readiness = model_readiness(model)
        epr = model.epr_recovery if model.generation == Generation.LEGACY else model.epr_recycling
        regime = Regime.EPR_RECOVERY if model.generation == Generation.LEGACY else Regime.EPR_RECYCLING
        epr_status = None
        if epr is not None:
            epr_status = classify_for(regime, epr.actual, epr.target, bands).value
        rows.append({
            "model_id": model.model_id,
            "name": model.name,
            "generation": model.generation.value,
            "type": model.vehicle_type,
            "target_market": model.target_market,
            "export_vehicles": model.export_vehicles,
            "part_count": model.part_count,
            "compliant_part_count": model.compliant_part_count,
            "cbam_readiness": readiness,
            "cbam_amount": amount_by_model[model.model_id],
            "status": classify_for(Regime.CBAM_READINESS, readiness, readiness_target, bands).value,
            "epr_regime": regime.value,
            "epr_target": clamp_pct(epr.target) if epr else None,
            "epr_actual": clamp_pct(epr.actual) if epr else None,
            "epr_status": epr_status,
        })
    return rows


MARKETS = ("Domestic", "Export")


def market_split(models: Sequence[VehicleModel]) -> Dict[str, int]:
    """Vehicle models per target market; models without a market are left out."""
    split = {market: 0 for market in MARKETS}
    split.update(count_by((m for m in models if m.target_market), lambda m: m.target_market))
    return split


def _number(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def rvsf_targets(
    config: Dict,
    window: DateWindow,
    start_month: int = 4,
    overlay: Optional[TargetOverlay] = None,
) -> Dict[str, float]:
    """
    Default RVSF targets for the window.

    Annual counts (`defaults.rvsf_targets`) are prorated per fiscal year,
    summed and rounded to whole units; overlay entries apply to their own
    fiscal year. Rates (`defaults.rate_targets`) apply as-is, taking the
    overlay of the fiscal year the window starts in.
    """
    defaults = config.get("defaults", {})
    labels = list(split_by_fiscal_year(window, start_month))
    result: Dict[str, float] = {}
    for name, annual in defaults.get("rvsf_targets", {}).items():
        by_year = {label: effective_target(overlay, "rvsf", name, label, annual) for label in labels}
        result[name] = int(round(prorate(by_year, window, start_month)))
    for name, rate in defaults.get("rate_targets", {}).items():
        result[name] = clamp_pct(effective_target(overlay, "rvsf", name, labels[0], rate))
    return result


def build_report(
    catalog: Catalog,
    config: Dict,
    filter_state: FilterState,
    selections: Optional[Mapping[str, Any]] = None,
    overlay: Optional[TargetOverlay] = None,
) -> ComplianceReport:
    """
    Build every derived table for one selection.

    Args:
        catalog: Read-only catalog
        config: Engine configuration (carbon prices, bands, fiscal year)
        filter_state: Global date window and market selection
        selections: Secondary part selections {material, model, supplier, ...}
        overlay: Session target overlay

    Returns:
        ComplianceReport
    """
    selections = _part_selections(filter_state, selections or {})
    report = ComplianceReport(selection=selection_key(filter_state, selections))

    # 0. Configuration; invalid settings are reported and replaced by defaults
    report.errors.extend(validate_config(config))
    bands = ToleranceBands.from_config(config)
    start_month = config.get("fiscal_year", {}).get("start_month", 4)
    if not isinstance(start_month, int) or not 1 <= start_month <= 12:
        start_month = 4
    try:
        carbon_price = price_for(config, "projection")
    except (KeyError, ValueError):
        carbon_price = 0.0
    report.carbon_price = carbon_price

    # 1. Filters
    report.options = resolve_options(catalog.parts, PART_DIMENSIONS, selections)
    parts = apply_filters(catalog.parts, PART_DIMENSIONS, selections)

    # 2. Parts
    report.part_rows = [part_row(p, carbon_price, bands) for p in parts]
    report.part_status = status_breakdown(r["status"] for r in report.part_rows)
    report.total_projected_cost = sum(r["cbam_amount"] for r in report.part_rows)

    # 3. Models
    readiness_target = _number(config.get("targets", {}).get("cbam_readiness", 90.0), 90.0)
    report.model_rows = build_model_rows(
        catalog, parts, report.part_rows, bands, report.warnings, readiness_target
    )
    report.market_split = market_split(catalog.models)

    # 4. EPR parts (material / model selections only)
    epr_selections = {k: v for k, v in selections.items() if k in ("material", "model")}
    recovery = apply_filters(catalog.recovery_parts, PART_DIMENSIONS, epr_selections)
    recycling = apply_filters(catalog.recycling_parts, PART_DIMENSIONS, epr_selections)
    report.recovery_rows = [epr_part_row(p, Regime.EPR_RECOVERY, bands) for p in recovery]
    report.recycling_rows = [epr_part_row(p, Regime.EPR_RECYCLING, bands) for p in recycling]
    report.recovery_status = status_breakdown(r["status"] for r in report.recovery_rows)
    report.recycling_status = status_breakdown(r["status"] for r in report.recycling_rows)

    # 5. CBAM declaration lines and EPR obligations
    report.cbam_rows = liability_table(list(catalog.cbam_items), carbon_price)
    report.epr_rows = [epr_obligation_row(item, bands) for item in catalog.epr_items]

    # 6. Material and RVSF targets, prorated per fiscal year and summed
    window = DateWindow.of(filter_state.date_from, filter_state.date_to)
    fiscal_years = fiscal_years_between(window, start_month)
    proration = config.get("proration", {})
    amplitude = _number(proration.get("variation_amplitude", 0.0), 0.0)
    if not 0.0 <= amplitude < 1.0:
        amplitude = 0.0
    variation = seeded_variation(window, amplitude, proration.get("seed", 0))
    report.fiscal_year = fiscal_years[0].label
    report.fiscal_years = [fy.label for fy in fiscal_years]
    report.proration_factor = sum(proration_factor(window, fy) for fy in fiscal_years) * variation
    report.material_rows = material_target_rows(
        catalog, window, start_month, overlay, bands, variation
    )
    report.rvsf_targets = rvsf_targets(config, window, start_month, overlay)

    logger.debug(
        "Built report for %s: %d parts, %d models",
        ", ".join(report.fiscal_years), len(report.part_rows), len(report.model_rows),
    )
    return report


def cost_by_material(report: ComplianceReport) -> Dict[str, float]:
    """Projected CBAM cost per material, in part table order."""
    return sum_by(report.part_rows, lambda r: r["material"], lambda r: r["cbam_amount"])


class ReportCache:
    """Memoises reports keyed by the serialised selection."""

    def __init__(self, catalog: Catalog, config: Dict):
        self.catalog = catalog
        self.config = config
        self._reports: Dict[str, ComplianceReport] = {}

    def get(
        self,
        filter_state: FilterState,
        selections: Optional[Mapping[str, Any]] = None,
        overlay: Optional[TargetOverlay] = None,
    ) -> ComplianceReport:
        # overlay entries change material targets
        key = selection_key(filter_state, _part_selections(filter_state, selections or {}))
        if overlay is not None:
            key += "|" + repr(overlay.entries)
        if key not in self._reports:
            self._reports[key] = build_report(
                self.catalog, self.config, filter_state, selections, overlay
            )
        return self._reports[key]

    def __len__(self) -> int:
        return len(self._reports)


# =============================================================================
# END OF REPORT ENGINE
# =============================================================================

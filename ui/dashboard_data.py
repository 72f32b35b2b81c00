"""Transform compliance reports into dashboard-ready pandas tables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pandas as pd

from compliance.catalog import Kpi
from compliance.ranking import RankedEntity, ranking_rows

PART_COLUMNS = [
    "part_id", "name", "material", "grade", "hs_code", "supplier", "export_qty",
    "emissions", "benchmark", "taxable_emissions", "cbam_amount", "status", "action",
]
MODEL_COLUMNS = [
    "model_id", "name", "generation", "type", "target_market", "export_vehicles", "part_count",
    "compliant_part_count", "cbam_readiness", "cbam_amount", "status",
    "epr_regime", "epr_target", "epr_actual", "epr_status",
]
EPR_COLUMNS = ["part_id", "name", "material", "grade", "rate", "benchmark", "status", "action"]
CBAM_COLUMNS = [
    "hs_code", "description", "export_quantity", "embedded_emissions", "free_allowance",
    "taxable_emissions", "carbon_price", "projected_cost", "local_price_paid", "net_cost",
]
TARGET_COLUMNS = [
    "material", "fiscal_year", "unit", "target", "prorated_target", "achieved",
    "progress_pct", "status",
]
EPR_OBLIGATION_COLUMNS = [
    "item_id", "category", "regulation", "metric", "target", "achieved", "unit", "gap", "status",
]
STATUS_COLUMNS = ["table", "total", "compliant", "warning", "non_compliant", "compliant_pct"]


@dataclass
class DashboardSnapshot:
    parts: pd.DataFrame
    models: pd.DataFrame
    recovery: pd.DataFrame
    recycling: pd.DataFrame
    cbam: pd.DataFrame
    epr_obligations: pd.DataFrame
    material_targets: pd.DataFrame
    cost_by_material: pd.DataFrame
    status_summary: pd.DataFrame
    ranking: pd.DataFrame


def _frame(rows: List[Dict], columns: List[str]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows)[[c for c in columns if c in rows[0]]]


def _cost_by_material(parts: pd.DataFrame) -> pd.DataFrame:
    if parts.empty:
        return pd.DataFrame(columns=["material", "cbam_amount", "share_pct"])
    data = (
        parts.groupby("material", as_index=False, sort=False)["cbam_amount"]
        .sum()
        .sort_values("cbam_amount", ascending=False)
    )
    total = float(data["cbam_amount"].sum())
    data["share_pct"] = data["cbam_amount"].apply(
        lambda value: (float(value) / total * 100.0) if total else 0.0
    )
    return data


def _status_summary(report) -> pd.DataFrame:
    rows = []
    for table, breakdown in (
        ("parts", report.part_status),
        ("recovery", report.recovery_status),
        ("recycling", report.recycling_status),
    ):
        rows.append(
            {
                "table": table,
                "total": breakdown.total,
                "compliant": breakdown.compliant,
                "warning": breakdown.warning,
                "non_compliant": breakdown.non_compliant,
                "compliant_pct": breakdown.compliant_pct,
            }
        )
    return pd.DataFrame(rows, columns=STATUS_COLUMNS)


def ranking_frame(ranked: Sequence[RankedEntity], kpis: Sequence[Kpi]) -> pd.DataFrame:
    """Evaluation matrix, one row per entity; KPI columns hold weighted scores."""
    columns = ["position", "entity"] + [k.kpi_id for k in kpis] + ["total"]
    rows = ranking_rows(ranked, kpis)
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns)


def build_snapshot(
    report,
    ranked: Optional[Sequence[RankedEntity]] = None,
    kpis: Optional[Sequence[Kpi]] = None,
) -> DashboardSnapshot:
    parts = _frame(report.part_rows, PART_COLUMNS)
    return DashboardSnapshot(
        parts=parts,
        models=_frame(report.model_rows, MODEL_COLUMNS),
        recovery=_frame(report.recovery_rows, EPR_COLUMNS),
        recycling=_frame(report.recycling_rows, EPR_COLUMNS),
        cbam=_frame(report.cbam_rows, CBAM_COLUMNS),
        epr_obligations=_frame(report.epr_rows, EPR_OBLIGATION_COLUMNS),
        material_targets=_frame(report.material_rows, TARGET_COLUMNS),
        cost_by_material=_cost_by_material(parts),
        status_summary=_status_summary(report),
        ranking=ranking_frame(ranked or [], kpis or []),
    )

"""Bridge between the compliance data workbook and the catalog mapping."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from openpyxl import load_workbook

logger = logging.getLogger(__name__)

PART_SHEETS = {
    "Parts": "parts",
    "Recovery": "recovery_parts",
    "Recycling": "recycling_parts",
}
MATERIAL_COLUMNS = ("parts", "compliant_parts", "compliant_volume", "total_volume")


def _header(ws) -> List[str]:
    return [str(c.value).strip() if c.value is not None else "" for c in ws[1]]


def _sheet_rows(ws) -> List[Dict]:
    """Rows of a sheet as dicts keyed by the header row; blank rows skipped."""
    header = _header(ws)
    rows = []
    for values in ws.iter_rows(min_row=2, values_only=True):
        if all(v is None or v == "" for v in values):
            continue
        rows.append({key: value for key, value in zip(header, values) if key})
    return rows


def _split_ids(value) -> List[str]:
    if value is None:
        return []
    return [v.strip() for v in str(value).split(",") if v.strip()]


def _part(row: Dict) -> Dict:
    part = dict(row)
    part["model_ids"] = _split_ids(row.get("model_ids"))
    return {k: v for k, v in part.items() if v is not None}


def _model(row: Dict) -> Dict:
    """
    Model rows carry per-material counts as "<Material>.<column>" headers
    and EPR values as "epr_recovery.target" style headers.
    """
    model: Dict = {"materials": {}}
    for key, value in row.items():
        if value is None:
            continue
        if "." not in key:
            model[key] = value
            continue
        prefix, column = key.split(".", 1)
        if prefix in ("epr_recovery", "epr_recycling"):
            model.setdefault(prefix, {})[column] = value
        elif column in MATERIAL_COLUMNS:
            model["materials"].setdefault(prefix, {})[column] = value
    return model


def _rankings(kpi_rows: List[Dict], score_rows: List[Dict]) -> Dict:
    """KPIs and Scores sheets grouped by their `ranking` column."""
    rankings: Dict[str, Dict] = {}
    for row in kpi_rows:
        section = rankings.setdefault(str(row.get("ranking", "default")), {"kpis": [], "entities": []})
        section["kpis"].append({
            "id": row.get("id"),
            "name": row.get("name", ""),
            "description": row.get("description") or "",
            "default_weight": float(row.get("default_weight") or 0.0),
        })
        if row.get("score_scale") is not None:
            section["score_scale"] = float(row["score_scale"])

    for row in score_rows:
        section = rankings.setdefault(str(row.get("ranking", "default")), {"kpis": [], "entities": []})
        scores = {
            k: v for k, v in row.items()
            if k not in ("ranking", "entity") and v is not None
        }
        section["entities"].append({"name": row.get("entity", ""), "scores": scores})
    return rankings


def load_catalog_from_workbook(workbook_path: Path) -> Dict:
    """
    Read the catalog workbook into the mapping accepted by `load_catalog`.

    Sheets (all optional): Parts, Recovery, Recycling, Models, KPIs, Scores,
    CBAM, EPR, Targets. Missing sheets leave their section empty.
    """
    wb = load_workbook(workbook_path, data_only=True)
    names = set(wb.sheetnames)
    catalog: Dict = {}

    for sheet, section in PART_SHEETS.items():
        if sheet in names:
            catalog[section] = [_part(r) for r in _sheet_rows(wb[sheet])]

    if "Models" in names:
        catalog["models"] = [_model(r) for r in _sheet_rows(wb["Models"])]

    kpi_rows = _sheet_rows(wb["KPIs"]) if "KPIs" in names else []
    score_rows = _sheet_rows(wb["Scores"]) if "Scores" in names else []
    if kpi_rows or score_rows:
        catalog["rankings"] = _rankings(kpi_rows, score_rows)

    if "CBAM" in names:
        catalog["cbam_items"] = _sheet_rows(wb["CBAM"])
    if "EPR" in names:
        catalog["epr_items"] = _sheet_rows(wb["EPR"])
    if "Targets" in names:
        catalog["material_targets"] = _sheet_rows(wb["Targets"])

    wb.close()
    logger.info("Read catalog workbook %s (%d sections)", workbook_path, len(catalog))
    return catalog

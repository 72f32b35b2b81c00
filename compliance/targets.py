"""Session target overlay and material target rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .aggregation import safe_pct
from .catalog import Catalog, MaterialTarget
from .classifier import Regime, ToleranceBands, classify_for
from .proration import DateWindow, prorate, split_by_fiscal_year

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomTarget:
    """User-entered target; `kind` is material, recycler, supplier or rvsf."""
    kind: str
    key: str  # material name or metric name
    fiscal_year: str
    target: float
    unit: Optional[str] = None


class TargetOverlay:
    """
    Append-only, session-scoped targets layered over catalog defaults.

    For matching kind + key + fiscal year (+ unit when given) the most
    recently added overlay entry wins over the catalog default.
    """

    def __init__(self):
        self._entries: List[CustomTarget] = []

    def add(self, target: CustomTarget) -> None:
        self._entries.append(target)
        logger.info(
            "Target set for %s %s (%s): %s", target.kind, target.key, target.fiscal_year, target.target
        )

    @property
    def entries(self) -> List[CustomTarget]:
        return list(self._entries)

    def lookup(
        self, kind: str, key: str, fiscal_year: str, unit: Optional[str] = None
    ) -> Optional[CustomTarget]:
        for entry in reversed(self._entries):
            if entry.kind != kind or entry.key != key or entry.fiscal_year != fiscal_year:
                continue
            if unit is not None and entry.unit is not None and entry.unit != unit:
                continue
            return entry
        return None


def effective_target(
    overlay: Optional[TargetOverlay],
    kind: str,
    key: str,
    fiscal_year: str,
    default: float,
    unit: Optional[str] = None,
) -> float:
    """Overlay value when present, otherwise the catalog default."""
    if overlay is not None:
        entry = overlay.lookup(kind, key, fiscal_year, unit)
        if entry is not None:
            return float(entry.target)
    return float(default)


def epr_scope(cars_sold: float, scope_share: float = 0.10) -> float:
    """EPR obligation (tonnes) derived from reference-year vehicle sales."""
    return max(0.0, float(cars_sold)) * scope_share


def _targets_by_year(
    catalog: Catalog, labels: List[str]
) -> Dict[Tuple[str, str], Dict[str, MaterialTarget]]:
    """Catalog target per (material, unit) and fiscal year; year-specific rows win."""
    groups: Dict[Tuple[str, str], Dict[str, MaterialTarget]] = {}
    for item in catalog.material_targets:
        per_year = groups.setdefault((item.material, item.unit), {})
        if item.fiscal_year:
            if item.fiscal_year in labels:
                per_year[item.fiscal_year] = item
        else:
            for label in labels:
                per_year.setdefault(label, item)
    return groups


def material_target_rows(
    catalog: Catalog,
    window: DateWindow,
    start_month: int = 4,
    overlay: Optional[TargetOverlay] = None,
    bands: Optional[ToleranceBands] = None,
    variation: float = 1.0,
) -> List[Dict]:
    """
    Material target vs achieved rows for a date window.

    Args:
        catalog: Catalog with material_targets
        window: Requested date window
        start_month: Fiscal year start month
        overlay: Session overrides (kind "material"), matched per fiscal year
        bands: Tolerance bands (KPI regime used for status)
        variation: Seeded variance multiplier applied to prorated targets

    Returns:
        Rows with target, prorated_target, achieved, progress_pct, status

    Notes:
        - Catalog rows without a fiscal year apply to every year
        - Windows spanning fiscal years prorate each year's target over its
          sub-window and sum; `target` is the sum of the annual targets
        - Progress is clamped to [0, 100]
    """
    bands = bands or ToleranceBands()
    labels = list(split_by_fiscal_year(window, start_month))
    rows = []
    for (material, unit), per_year in _targets_by_year(catalog, labels).items():
        if not per_year:
            continue
        years = [label for label in labels if label in per_year]
        annual = {
            label: effective_target(overlay, "material", material, label, per_year[label].target, unit)
            for label in years
        }
        prorated = prorate(annual, window, start_month) * variation
        # a row shared by several years counts its achieved value once
        sources = {id(per_year[label]): per_year[label] for label in years}
        achieved = sum(item.achieved for item in sources.values())
        rows.append({
            "material": material,
            "fiscal_year": ", ".join(years),
            "unit": unit,
            "target": sum(annual.values()),
            "prorated_target": prorated,
            "achieved": achieved,
            "progress_pct": safe_pct(achieved, prorated),
            "status": classify_for(Regime.KPI, achieved, prorated, bands).value,
        })
    return rows

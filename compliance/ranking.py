# =============================================================================
# ELV COMPLIANCE ENGINE - WEIGHTED RANKING ENGINE
# =============================================================================
# Composite scoring of entities (recyclers, suppliers, RVSFs) against a KPI
# weight vector.
#
# FORMULAS:
# - Weighted[e,k] = Raw[e,k] * Weight[k] / 100      (missing raw -> 0)
# - Total[e]      = SUM_k(Weighted[e,k])
#
# KEY CONSTRAINTS:
# - SUM_k(Weight[k]) = 100, otherwise the vector is rejected
# - Sorted by full-precision total, descending; ties keep entity order
# - Totals are rounded to 2 decimals for display only
# =============================================================================

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from .aggregation import clamp
from .catalog import EntityScore, Kpi

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-9


class WeightValidationError(ValueError):
    """Raised when a weight vector does not sum to 100."""

    def __init__(self, total: float):
        self.total = total
        super().__init__(f"Total weight must be 100%. Currently: {total:g}%")


def weight_total(weights: Mapping[str, float]) -> float:
    return sum(float(w or 0.0) for w in weights.values())


def validate_weights(weights: Mapping[str, float]) -> None:
    """Raise WeightValidationError unless weights sum to exactly 100."""
    total = weight_total(weights)
    if abs(total - 100.0) > WEIGHT_TOLERANCE:
        raise WeightValidationError(total)


@dataclass(frozen=True)
class KpiScoreDetail:
    raw: float
    weighted: float

    @property
    def display_weighted(self) -> float:
        return round(self.weighted, 2)


@dataclass
class RankedEntity:
    name: str
    kpi_scores: Dict[str, KpiScoreDetail] = field(default_factory=dict)
    total: float = 0.0
    position: int = 0

    @property
    def display_total(self) -> float:
        return round(self.total, 2)


def rank(weights: Mapping[str, float], entities: Sequence[EntityScore]) -> List[RankedEntity]:
    """
    Score and rank entities against a validated weight vector.

    Args:
        weights: Dict[kpi_id, weight_pct]; must sum to 100
        entities: Entity scores on the canonical scale

    Returns:
        Ranked entities, best first, positions starting at 1

    Raises:
        WeightValidationError: weights do not sum to 100
    """
    validate_weights(weights)

    ranked = []
    for entity in entities:
        kpi_scores: Dict[str, KpiScoreDetail] = {}
        total = 0.0
        for kpi_id, weight in weights.items():
            raw = entity.score_for(kpi_id)
            raw = 0.0 if raw is None else float(raw)
            weighted = raw * float(weight) / 100.0
            kpi_scores[kpi_id] = KpiScoreDetail(raw=raw, weighted=weighted)
            total += weighted
        ranked.append(RankedEntity(name=entity.entity_name, kpi_scores=kpi_scores, total=total))

    # sorted() is stable: equal totals keep catalog order
    ranked = sorted(ranked, key=lambda e: e.total, reverse=True)
    for position, entity in enumerate(ranked, start=1):
        entity.position = position
    return ranked


def ranking_rows(ranked: Sequence[RankedEntity], kpis: Sequence[Kpi]) -> List[Dict]:
    """Flat rows (one per entity) with display-rounded weighted scores."""
    rows = []
    for entity in ranked:
        row = {"position": entity.position, "entity": entity.name}
        for kpi in kpis:
            detail = entity.kpi_scores.get(kpi.kpi_id)
            row[kpi.kpi_id] = detail.display_weighted if detail else 0.0
        row["total"] = entity.display_total
        rows.append(row)
    return rows


class EditMode(str, Enum):
    COMMITTED = "Committed"
    EDITING = "Editing"


class WeightVector:
    """
    Session weight vector with an Editing / Committed lifecycle.

    Transitions:
        Committed -> Editing    start_edit()
        Editing -> Committed    save() with a draft summing to 100
        Editing -> Committed    cancel() (committed vector unchanged)

    A rejected save raises WeightValidationError and stays in Editing with
    the previous committed vector still in effect.
    """

    def __init__(self, kpis: Sequence[Kpi], committed: Optional[Mapping[str, float]] = None):
        self.kpis = list(kpis)
        self._committed: Dict[str, float] = self.defaults()
        if committed is not None:
            candidate = {k.kpi_id: float(committed.get(k.kpi_id, 0.0)) for k in self.kpis}
            validate_weights(candidate)
            self._committed = candidate
        self._draft: Dict[str, float] = dict(self._committed)
        self.mode = EditMode.COMMITTED

    def defaults(self) -> Dict[str, float]:
        return {k.kpi_id: float(k.default_weight) for k in self.kpis}

    @property
    def committed(self) -> Dict[str, float]:
        return dict(self._committed)

    @property
    def draft(self) -> Dict[str, float]:
        return dict(self._draft)

    @property
    def total(self) -> float:
        """Sum of the draft while editing, of the committed vector otherwise."""
        if self.mode == EditMode.EDITING:
            return weight_total(self._draft)
        return weight_total(self._committed)

    def start_edit(self) -> None:
        if self.mode == EditMode.COMMITTED:
            self._draft = dict(self._committed)
            self.mode = EditMode.EDITING

    def set_weight(self, kpi_id: str, value: Optional[float]) -> None:
        """Edit one draft weight; None counts as 0, values clamp to [0, 100]."""
        if kpi_id not in self._draft:
            raise KeyError(f"Unknown KPI: {kpi_id}")
        self.start_edit()
        self._draft[kpi_id] = clamp(float(value or 0.0), 0.0, 100.0)

    def reset(self) -> None:
        """Restore every draft weight to its KPI default."""
        self.start_edit()
        self._draft = self.defaults()

    def save(self) -> Dict[str, float]:
        """Commit the draft; rejected drafts leave the committed vector untouched."""
        if self.mode == EditMode.COMMITTED:
            return self.committed
        try:
            validate_weights(self._draft)
        except WeightValidationError as exc:
            logger.info("Rejected weight vector: %s", exc)
            raise
        self._committed = dict(self._draft)
        self.mode = EditMode.COMMITTED
        return self.committed

    def cancel(self) -> None:
        """Discard the draft and return to the committed vector."""
        self._draft = dict(self._committed)
        self.mode = EditMode.COMMITTED

    def rank(self, entities: Sequence[EntityScore]) -> List[RankedEntity]:
        """Rank with the committed vector (drafts never affect output)."""
        return rank(self._committed, entities)


# =============================================================================
# END OF WEIGHTED RANKING ENGINE
# =============================================================================

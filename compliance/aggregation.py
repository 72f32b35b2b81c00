# =============================================================================
# ELV COMPLIANCE ENGINE - AGGREGATION MODULE
# =============================================================================
# Grouping, counting and percentage helpers shared by the engines.
#
# RULES:
# - Percentages are clamped to [0, 100] before display or comparison
# - Groupings keep first-seen (catalog insertion) order
# =============================================================================

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def clamp_pct(value: Optional[float]) -> float:
    """
    Clamp a percentage to [0, 100].

    None and NaN are treated as 0 so a single bad record cannot poison a table.
    """
    if value is None:
        return 0.0
    value = float(value)
    if math.isnan(value):
        return 0.0
    return clamp(value, 0.0, 100.0)


def safe_pct(num: float, den: float) -> float:
    """num / den as a clamped percentage; 0 when den is not positive."""
    if not den or den <= 0:
        return 0.0
    return clamp_pct(num / den * 100.0)


def non_negative(value: Optional[float]) -> float:
    """Clamp a quantity to >= 0 (None and NaN become 0)."""
    if value is None:
        return 0.0
    value = float(value)
    if math.isnan(value) or value < 0:
        return 0.0
    return value


def distinct_in_order(values: Iterable[Hashable]) -> List[Hashable]:
    """Distinct values in first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def count_by(records: Iterable[Any], key: Callable[[Any], Hashable]) -> Dict[Hashable, int]:
    """Count records per key value, keeping first-seen key order."""
    result: Dict[Hashable, int] = {}
    for record in records:
        k = key(record)
        result[k] = result.get(k, 0) + 1
    return result


def sum_by(
    records: Iterable[Any],
    key: Callable[[Any], Hashable],
    value: Callable[[Any], float],
) -> Dict[Hashable, float]:
    """Sum value(record) per key value, keeping first-seen key order."""
    result: Dict[Hashable, float] = {}
    for record in records:
        k = key(record)
        result[k] = result.get(k, 0.0) + float(value(record))
    return result


@dataclass(frozen=True)
class StatusBreakdown:
    """Counts of records per compliance status."""
    total: int = 0
    compliant: int = 0
    warning: int = 0
    non_compliant: int = 0

    @property
    def compliant_pct(self) -> float:
        return safe_pct(self.compliant, self.total)

    @property
    def at_risk(self) -> int:
        return self.warning + self.non_compliant


def status_breakdown(statuses: Iterable[str]) -> StatusBreakdown:
    """
    Summarise a sequence of status values.

    Args:
        statuses: Status values ("Compliant", "Warning", "Non-Compliant")

    Returns:
        StatusBreakdown with one counter per status
    """
    counts = {"Compliant": 0, "Warning": 0, "Non-Compliant": 0}
    total = 0
    for status in statuses:
        total += 1
        text = str(getattr(status, "value", status))
        if text in counts:
            counts[text] += 1
    return StatusBreakdown(
        total=total,
        compliant=counts["Compliant"],
        warning=counts["Warning"],
        non_compliant=counts["Non-Compliant"],
    )


# =============================================================================
# END OF AGGREGATION MODULE
# =============================================================================

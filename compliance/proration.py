# =============================================================================
# ELV COMPLIANCE ENGINE - PRORATION MODULE
# =============================================================================
# Scales annual (fiscal-year) baselines down to an arbitrary date window.
# Fiscal years run April-March by default and are labelled "2025-26".
#
# FORMULAS:
# - Days[w] = end - start + 1 (inclusive)
# - Factor[w, fy] = Days[w ∩ fy] / Days[fy]                in [0, 1]
# - Prorated[w] = SUM_fy(Baseline[fy] * Factor[w, fy])     (spanning windows)
#
# Proration is deterministic. Optional period-to-period variance is a
# seeded, reproducible multiplier keyed by the window (amplitude 0 = off).
# =============================================================================

import hashlib
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateWindow:
    """Inclusive date window."""
    start: date
    end: date

    @classmethod
    def of(cls, start: date, end: date) -> "DateWindow":
        """Build a window, swapping reversed bounds instead of failing."""
        if end < start:
            logger.warning("Reversed date window %s..%s; swapping bounds", start, end)
            start, end = end, start
        return cls(start=start, end=end)

    @property
    def days(self) -> int:
        return max(0, (self.end - self.start).days + 1)

    def intersect(self, other: "DateWindow") -> Optional["DateWindow"]:
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if end < start:
            return None
        return DateWindow(start=start, end=end)


@dataclass(frozen=True)
class FiscalYear:
    start: date
    end: date
    label: str

    @property
    def window(self) -> DateWindow:
        return DateWindow(self.start, self.end)

    @property
    def days(self) -> int:
        return self.window.days


def fiscal_year_for(day: date, start_month: int = 4) -> FiscalYear:
    """
    Fiscal year containing `day`.

    Args:
        day: Any date
        start_month: First month of the fiscal year (4 = April)

    Returns:
        FiscalYear with inclusive bounds and a "YYYY-YY" label
    """
    first_year = day.year if day.month >= start_month else day.year - 1
    start = date(first_year, start_month, 1)
    next_start = date(first_year + 1, start_month, 1)
    end = next_start - timedelta(days=1)
    if start_month == 1:
        label = f"{first_year}"
    else:
        label = f"{first_year}-{str(first_year + 1)[-2:]}"
    return FiscalYear(start=start, end=end, label=label)


def fiscal_years_between(window: DateWindow, start_month: int = 4) -> List[FiscalYear]:
    """All fiscal years touched by the window, in chronological order."""
    years = []
    current = fiscal_year_for(window.start, start_month)
    while current.start <= window.end:
        years.append(current)
        current = fiscal_year_for(current.end + timedelta(days=1), start_month)
    return years


def proration_factor(window: DateWindow, fiscal_year: FiscalYear) -> float:
    """
    Fraction of the fiscal year covered by the window.

    Returns:
        Overlap days / fiscal-year days, in [0, 1]

    Notes:
        - A window entirely inside the fiscal year gives Days[w] / Days[fy]
        - Days of the window outside this fiscal year are ignored here;
          use `prorate` to account for them
    """
    overlap = window.intersect(fiscal_year.window)
    if overlap is None or fiscal_year.days == 0:
        return 0.0
    return min(1.0, overlap.days / fiscal_year.days)


def split_by_fiscal_year(window: DateWindow, start_month: int = 4) -> Dict[str, DateWindow]:
    """Split a window into per-fiscal-year sub-windows keyed by label."""
    result: Dict[str, DateWindow] = {}
    for fiscal_year in fiscal_years_between(window, start_month):
        overlap = window.intersect(fiscal_year.window)
        if overlap is not None:
            result[fiscal_year.label] = overlap
    return result


def prorate(
    annual_by_label: Dict[str, float],
    window: DateWindow,
    start_month: int = 4,
    default: Optional[float] = None,
) -> float:
    """
    Scale annual baselines to the window, summing per fiscal year.

    Args:
        annual_by_label: Baseline per fiscal-year label {"2025-26": 500}
        window: Requested date window
        start_month: Fiscal year start month
        default: Baseline for fiscal years missing from annual_by_label
                 (missing years contribute 0 when None)

    Returns:
        Prorated value

    Formula:
        Prorated = SUM_fy(Baseline[fy] * Factor[w, fy])
    """
    total = 0.0
    for fiscal_year in fiscal_years_between(window, start_month):
        baseline = annual_by_label.get(fiscal_year.label, default)
        if baseline is None:
            logger.debug("No baseline for fiscal year %s", fiscal_year.label)
            continue
        total += float(baseline) * proration_factor(window, fiscal_year)
    return total


def prorated_target(annual: float, window: DateWindow, start_month: int = 4) -> int:
    """Annual target applied to every touched fiscal year, rounded to whole units."""
    labels = split_by_fiscal_year(window, start_month)
    return int(round(prorate({label: annual for label in labels}, window, start_month)))


def seeded_variation(window: DateWindow, amplitude: float = 0.0, seed: int = 0) -> float:
    """
    Reproducible variance multiplier in [1 - amplitude, 1 + amplitude].

    The same window and seed always give the same multiplier; amplitude 0
    returns exactly 1.0.
    """
    if amplitude <= 0:
        return 1.0
    key = f"{window.start.isoformat()}|{window.end.isoformat()}|{seed}".encode("utf-8")
    digest = hashlib.sha256(key).digest()
    unit = int.from_bytes(digest[:8], "big") / float(2 ** 64)
    return 1.0 + amplitude * (2.0 * unit - 1.0)


# =============================================================================
# END OF PRORATION MODULE
# =============================================================================

# =============================================================================
# ELV COMPLIANCE ENGINE - COMPLIANCE CLASSIFIER
# =============================================================================
# Derives a three-valued compliance status from an actual-vs-target
# comparison. Tolerance bands are configured per regulatory regime.
#
# FORMULAS (higher is better, e.g. recovery rate):
# - actual >= target                                  -> Compliant
# - target * (1 - band) <= actual < target            -> Warning
# - actual < target * (1 - band)                      -> Non-Compliant
#
# FORMULAS (lower is better, e.g. embedded emissions vs benchmark):
# - emissions < benchmark                             -> Compliant
# - benchmark <= emissions <= benchmark * (1 + band)  -> Warning
# - emissions > benchmark * (1 + band)                -> Non-Compliant
# =============================================================================

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional

from .aggregation import clamp, clamp_pct

logger = logging.getLogger(__name__)


class ComplianceStatus(str, Enum):
    COMPLIANT = "Compliant"
    WARNING = "Warning"
    NON_COMPLIANT = "Non-Compliant"

    @classmethod
    def parse(cls, text) -> "ComplianceStatus":
        """Parse a status label; anything outside the three values is rejected."""
        if isinstance(text, cls):
            return text
        normalized = str(text).strip().lower().replace("_", "-").replace(" ", "-")
        for status in cls:
            if status.value.lower() == normalized:
                return status
        raise ValueError(f"Unknown compliance status: {text!r}")


class Regime(str, Enum):
    CBAM_READINESS = "cbam_readiness"
    CBAM_EMISSIONS = "cbam_emissions"
    EPR_RECOVERY = "epr_recovery"
    EPR_RECYCLING = "epr_recycling"
    KPI = "kpi"


DEFAULT_BANDS: Dict[Regime, float] = {
    Regime.CBAM_READINESS: 0.20,
    Regime.CBAM_EMISSIONS: 0.05,
    Regime.EPR_RECOVERY: 0.05,
    Regime.EPR_RECYCLING: 0.05,
    Regime.KPI: 0.20,
}


@dataclass(frozen=True)
class ToleranceBands:
    """Tolerance band per regulatory regime."""
    bands: Mapping[Regime, float] = field(default_factory=lambda: dict(DEFAULT_BANDS))

    @classmethod
    def from_config(cls, config: Optional[Dict]) -> "ToleranceBands":
        """
        Build bands from the `tolerance_bands` section of the engine config.

        Regimes missing from the config keep their default band. Unknown
        regime names and non-numeric bands are skipped (`validate_config`
        reports them).
        """
        bands = dict(DEFAULT_BANDS)
        section = (config or {}).get("tolerance_bands", {})
        for name, value in section.items():
            try:
                regime = Regime(name)
                band = float(value)
            except (TypeError, ValueError):
                logger.warning("Ignoring tolerance band %s=%r", name, value)
                continue
            bands[regime] = clamp(band, 0.0, 1.0)
        return cls(bands=bands)

    def band_for(self, regime) -> float:
        """Band for a regime identifier; unknown regimes raise KeyError."""
        try:
            key = Regime(regime)
        except ValueError:
            raise KeyError(f"Unknown regulatory regime: {regime}")
        return self.bands[key]


def classify(actual: float, target: float, tolerance_band: float, percent: bool = False) -> ComplianceStatus:
    """
    Classify an actual value against a target (higher is better).

    Args:
        actual: Achieved value
        target: Required value
        tolerance_band: Fraction of target tolerated as Warning [0, 1]
        percent: Clamp actual and target to [0, 100] before comparing

    Returns:
        ComplianceStatus
    """
    band = clamp(float(tolerance_band), 0.0, 1.0)
    if percent:
        actual = clamp_pct(actual)
        target = clamp_pct(target)

    if actual >= target:
        return ComplianceStatus.COMPLIANT
    if actual >= target * (1.0 - band):
        return ComplianceStatus.WARNING
    return ComplianceStatus.NON_COMPLIANT


def classify_emissions(emissions: float, benchmark: float, tolerance_band: float) -> ComplianceStatus:
    """
    Classify embedded emission intensity against a benchmark (lower is better).

    An intensity equal to the benchmark sits on the edge of the free
    allocation and is reported as Warning.
    """
    band = clamp(float(tolerance_band), 0.0, 1.0)
    emissions = max(0.0, float(emissions))
    benchmark = max(0.0, float(benchmark))

    if emissions < benchmark:
        return ComplianceStatus.COMPLIANT
    if emissions <= benchmark * (1.0 + band):
        return ComplianceStatus.WARNING
    return ComplianceStatus.NON_COMPLIANT


def classify_for(regime, actual: float, target: float, bands: ToleranceBands) -> ComplianceStatus:
    """Classify using the band configured for a regime."""
    band = bands.band_for(regime)
    if Regime(regime) == Regime.CBAM_EMISSIONS:
        return classify_emissions(actual, target, band)
    return classify(actual, target, band, percent=Regime(regime) != Regime.KPI)


# =============================================================================
# END OF COMPLIANCE CLASSIFIER
# =============================================================================

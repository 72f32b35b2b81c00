# =============================================================================
# ELV COMPLIANCE ENGINE - CBAM CALCULATOR
# =============================================================================
# Carbon Border Adjustment Mechanism liability and readiness.
#
# FORMULAS:
# - Taxable[r]   = MAX(0, Emissions[r] - FreeAllowance[r])      tCO2e / t
# - Cost[r]      = Taxable[r] * CarbonPrice * ExportQty[r]       EUR
# - NetCost[r]   = MAX(0, Cost[r] - LocalPricePaid[r] * ExportQty[r])
# - Readiness[m] = CompliantVolume[m] / TotalVolume[m] * 100     [0, 100]
#
# Carbon price is always an explicit argument. Bad numbers (negative
# quantities, allowance above emissions) are clamped, never raised.
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from .aggregation import non_negative, safe_pct, clamp_pct
from .catalog import CbamItem, Part, VehicleModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CbamLiability:
    taxable_emissions: float  # tCO2e per tonne
    projected_cost: float  # EUR


def taxable_emissions(specific_emissions: float, free_allowance: float) -> float:
    """Embedded emissions above the free allowance, never negative."""
    return max(0.0, non_negative(specific_emissions) - non_negative(free_allowance))


def _fields(record: Union[Part, CbamItem]):
    if isinstance(record, CbamItem):
        return record.embedded_emissions, record.free_allowance, record.export_quantity
    return record.emissions, record.free_allowance, record.export_qty


def compute_liability(record: Union[Part, CbamItem], carbon_price: float) -> CbamLiability:
    """
    Taxable emissions and projected carbon-border cost for a part or CBAM line.

    Args:
        record: Part (emissions, free_allowance, export_qty) or CbamItem
        carbon_price: EUR per tonne CO2e

    Returns:
        CbamLiability with non-negative values
    """
    emissions, allowance, quantity = _fields(record)
    if quantity < 0:
        logger.warning("Negative export quantity %s clamped to 0", quantity)
    taxable = taxable_emissions(emissions, allowance)
    cost = taxable * non_negative(carbon_price) * non_negative(quantity)
    return CbamLiability(taxable_emissions=taxable, projected_cost=cost)


def readiness_pct(compliant_volume: float, total_volume: float) -> float:
    """Share of exported volume meeting its benchmark, clamped to [0, 100]."""
    return safe_pct(non_negative(compliant_volume), non_negative(total_volume))


def model_readiness(model: VehicleModel) -> float:
    """Catalog readiness when supplied, otherwise computed from per-material volumes."""
    if model.cbam_readiness is not None:
        return clamp_pct(model.cbam_readiness)
    compliant = sum(m.compliant_volume for m in model.materials.values())
    total = sum(m.total_volume for m in model.materials.values())
    return readiness_pct(compliant, total)


def price_for(config: Optional[Dict], key: str = "projection") -> float:
    """Named carbon price from the `carbon_prices` config section."""
    prices = (config or {}).get("carbon_prices", {})
    if key not in prices:
        raise KeyError(f"Carbon price {key} not configured")
    return float(prices[key])


def liability_table(items: List[CbamItem], carbon_price: float) -> List[Dict]:
    """
    One row per CBAM declaration line.

    Rows carry the local carbon price already paid; it is credited against
    the projected cost (never below zero).
    """
    rows = []
    for item in items:
        liability = compute_liability(item, carbon_price)
        quantity = non_negative(item.export_quantity)
        local_paid = non_negative(item.carbon_price_paid) * quantity
        rows.append({
            "hs_code": item.hs_code,
            "description": item.description,
            "export_quantity": quantity,
            "embedded_emissions": item.embedded_emissions,
            "free_allowance": item.free_allowance,
            "taxable_emissions": liability.taxable_emissions,
            "carbon_price": carbon_price,
            "projected_cost": liability.projected_cost,
            "local_price_paid": local_paid,
            "net_cost": max(0.0, liability.projected_cost - local_paid),
        })
    return rows


# =============================================================================
# END OF CBAM CALCULATOR
# =============================================================================

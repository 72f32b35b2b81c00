# =============================================================================
# ELV COMPLIANCE ENGINE - CATALOG MODULE
# =============================================================================
# Typed, read-only reference data: parts, vehicle models, KPIs, entity
# scores, CBAM line items, EPR obligations and material targets.
#
# KEY CONSTRAINTS:
# - Catalogs are loaded once per session and never mutated by the engines
# - Raw KPI scores are normalised to CANONICAL_SCORE_SCALE at load time
# - Referential integrity (part -> model) is checkable, not enforced
# =============================================================================

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

from .classifier import ComplianceStatus

logger = logging.getLogger(__name__)

CANONICAL_SCORE_SCALE = 10.0


class Material(str, Enum):
    STEEL = "Steel"
    ALUMINUM = "Aluminum"
    CAST_IRON = "Cast Iron"
    PLASTIC = "Plastic"

    @classmethod
    def parse(cls, text) -> "Material":
        if isinstance(text, cls):
            return text
        key = str(text).strip().lower().replace("_", "").replace(" ", "").replace("-", "")
        aliases = {
            "steel": cls.STEEL,
            "aluminum": cls.ALUMINUM,
            "aluminium": cls.ALUMINUM,
            "castiron": cls.CAST_IRON,
            "plastic": cls.PLASTIC,
            "plastics": cls.PLASTIC,
        }
        if key not in aliases:
            raise ValueError(f"Unknown material: {text!r}")
        return aliases[key]


class Generation(str, Enum):
    LEGACY = "Legacy"  # EPR recovery targets apply
    NEW = "New"  # EPR recycling targets apply

    @classmethod
    def parse(cls, text) -> "Generation":
        if isinstance(text, cls):
            return text
        for gen in cls:
            if gen.value.lower() == str(text).strip().lower():
                return gen
        raise ValueError(f"Unknown model generation: {text!r}")


@dataclass(frozen=True)
class Part:
    """Single part scheduled for export or tracked for EPR."""
    part_id: str
    name: str
    material: Material
    grade: str = ""
    hs_code: str = ""
    model_ids: Tuple[str, ...] = ()
    export_qty: float = 0.0
    emissions: float = 0.0  # tCO2e per tonne (embedded)
    benchmark: float = 0.0  # emissions benchmark, or rate target for EPR parts
    free_allowance: float = 0.0  # tCO2e per tonne, CBAM only
    supplier: str = ""
    action: str = ""
    rate: Optional[float] = None  # recovery / recycling % for EPR parts
    status: Optional[ComplianceStatus] = None


@dataclass(frozen=True)
class MaterialCounts:
    """Per-material part counts and volumes of a vehicle model."""
    parts: int = 0
    compliant_parts: int = 0
    compliant_volume: float = 0.0
    total_volume: float = 0.0


@dataclass(frozen=True)
class EprRecord:
    """EPR target vs actual for one model."""
    target: float
    actual: float
    status: Optional[ComplianceStatus] = None


@dataclass(frozen=True)
class VehicleModel:
    model_id: str
    name: str
    generation: Generation
    vehicle_type: str = ""
    target_market: str = ""
    export_vehicles: int = 0
    materials: Mapping[Material, MaterialCounts] = field(default_factory=dict)
    cbam_readiness: Optional[float] = None
    epr_recovery: Optional[EprRecord] = None
    epr_recycling: Optional[EprRecord] = None

    @property
    def part_count(self) -> int:
        return sum(m.parts for m in self.materials.values())

    @property
    def compliant_part_count(self) -> int:
        return sum(m.compliant_parts for m in self.materials.values())


@dataclass(frozen=True)
class Kpi:
    kpi_id: str
    name: str
    description: str = ""
    default_weight: float = 0.0  # percent, 0-100


@dataclass(frozen=True)
class KpiScore:
    kpi_id: str
    raw_score: float


@dataclass(frozen=True)
class EntityScore:
    entity_name: str
    scores: Tuple[KpiScore, ...] = ()

    def score_for(self, kpi_id: str) -> Optional[float]:
        for score in self.scores:
            if score.kpi_id == kpi_id:
                return score.raw_score
        return None


@dataclass(frozen=True)
class RankingSet:
    """KPIs and entity scores feeding one evaluation matrix (e.g. recyclers)."""
    name: str
    kpis: Tuple[Kpi, ...] = ()
    entity_scores: Tuple[EntityScore, ...] = ()


@dataclass(frozen=True)
class CbamItem:
    """CBAM declaration line grouped by HS code."""
    hs_code: str
    description: str
    export_quantity: float  # tonnes
    embedded_emissions: float  # tCO2e per tonne
    carbon_price_paid: float  # EUR per tonne, local carbon price
    free_allowance: float  # tCO2e per tonne


@dataclass(frozen=True)
class EprItem:
    """Regulatory EPR obligation for a material category."""
    item_id: str
    category: str
    regulation: str
    metric: str
    target: float
    achieved: float
    unit: str = "%"


@dataclass(frozen=True)
class MaterialTarget:
    material: str
    target: float
    achieved: float
    unit: str = "MT"
    fiscal_year: str = ""


@dataclass(frozen=True)
class Catalog:
    """Complete read-only catalog for one session."""
    parts: Tuple[Part, ...] = ()
    recovery_parts: Tuple[Part, ...] = ()
    recycling_parts: Tuple[Part, ...] = ()
    models: Tuple[VehicleModel, ...] = ()
    rankings: Mapping[str, RankingSet] = field(default_factory=dict)
    cbam_items: Tuple[CbamItem, ...] = ()
    epr_items: Tuple[EprItem, ...] = ()
    material_targets: Tuple[MaterialTarget, ...] = ()

    def model(self, model_id: str) -> Optional[VehicleModel]:
        for model in self.models:
            if model.model_id == model_id:
                return model
        return None

    def models_by_generation(self, generation) -> List[VehicleModel]:
        generation = Generation.parse(generation)
        return [m for m in self.models if m.generation == generation]

    def kpi(self, kpi_id: str, ranking: Optional[str] = None) -> Optional[Kpi]:
        """KPI by id, searched in one ranking set or in all of them."""
        sets = [self.ranking_set(ranking)] if ranking else list(self.rankings.values())
        for ranking_set in sets:
            for kpi in ranking_set.kpis:
                if kpi.kpi_id == kpi_id:
                    return kpi
        return None

    def ranking_set(self, name: str) -> RankingSet:
        if name not in self.rankings:
            raise KeyError(f"Ranking set {name} not found in catalog")
        return self.rankings[name]

    @property
    def kpis(self) -> List[Kpi]:
        return [kpi for ranking in self.rankings.values() for kpi in ranking.kpis]

    @property
    def entity_scores(self) -> List[EntityScore]:
        return [e for ranking in self.rankings.values() for e in ranking.entity_scores]


def normalize_score(raw: float, scale: float) -> float:
    """Rescale a raw score from [0, scale] to [0, CANONICAL_SCORE_SCALE]."""
    if not scale or scale <= 0:
        return float(raw)
    return float(raw) * CANONICAL_SCORE_SCALE / float(scale)


def _status(value) -> Optional[ComplianceStatus]:
    if value is None or value == "":
        return None
    return ComplianceStatus.parse(value)


def _part(data: Dict) -> Part:
    rate = data.get("rate")
    return Part(
        part_id=str(data.get("id", data.get("part_id", ""))),
        name=data.get("name", ""),
        material=Material.parse(data.get("material", "")),
        grade=data.get("grade", ""),
        hs_code=str(data.get("hs_code", "")),
        model_ids=tuple(str(m) for m in data.get("model_ids", [])),
        export_qty=float(data.get("export_qty", 0.0)),
        emissions=float(data.get("emissions", 0.0)),
        benchmark=float(data.get("benchmark", 0.0)),
        free_allowance=float(data.get("free_allowance", 0.0)),
        supplier=data.get("supplier", ""),
        action=data.get("action", ""),
        rate=float(rate) if rate is not None else None,
        status=_status(data.get("status")),
    )


def _epr_record(data: Optional[Dict]) -> Optional[EprRecord]:
    if not data:
        return None
    return EprRecord(
        target=float(data.get("target", 0.0)),
        actual=float(data.get("actual", 0.0)),
        status=_status(data.get("status")),
    )


def _model(data: Dict) -> VehicleModel:
    materials: Dict[Material, MaterialCounts] = {}
    for name, counts in data.get("materials", {}).items():
        materials[Material.parse(name)] = MaterialCounts(
            parts=int(counts.get("parts", 0)),
            compliant_parts=int(counts.get("compliant_parts", 0)),
            compliant_volume=float(counts.get("compliant_volume", 0.0)),
            total_volume=float(counts.get("total_volume", 0.0)),
        )
    readiness = data.get("cbam_readiness")
    return VehicleModel(
        model_id=str(data.get("id", data.get("model_id", ""))),
        name=data.get("name", ""),
        generation=Generation.parse(data.get("generation", "New")),
        vehicle_type=data.get("type", ""),
        target_market=data.get("target_market", ""),
        export_vehicles=int(data.get("export_vehicles", 0)),
        materials=materials,
        cbam_readiness=float(readiness) if readiness is not None else None,
        epr_recovery=_epr_record(data.get("epr_recovery")),
        epr_recycling=_epr_record(data.get("epr_recycling")),
    )


def _ranking_set(name: str, data: Dict) -> RankingSet:
    scale = float(data.get("score_scale", CANONICAL_SCORE_SCALE))
    kpis = tuple(
        Kpi(
            kpi_id=str(k.get("id", k.get("kpi_id", ""))),
            name=k.get("name", ""),
            description=k.get("description", ""),
            default_weight=float(k.get("default_weight", 0.0)),
        )
        for k in data.get("kpis", [])
    )
    entities = []
    for entity in data.get("entities", []):
        scores = tuple(
            KpiScore(kpi_id=str(kpi_id), raw_score=normalize_score(raw, scale))
            for kpi_id, raw in entity.get("scores", {}).items()
            if raw is not None
        )
        entities.append(EntityScore(entity_name=entity.get("name", ""), scores=scores))
    return RankingSet(name=name, kpis=kpis, entity_scores=tuple(entities))


def load_catalog(data: Dict) -> Catalog:
    """
    Build a typed catalog from a plain mapping.

    Args:
        data: Mapping with optional sections parts, recovery_parts,
              recycling_parts, models, rankings, cbam_items, epr_items,
              material_targets

    Returns:
        Catalog

    Notes:
        - Unknown material / generation / status labels raise ValueError
        - Numeric anomalies (negative quantities) are kept; engines clamp them
    """
    data = data or {}
    catalog = Catalog(
        parts=tuple(_part(p) for p in data.get("parts", [])),
        recovery_parts=tuple(_part(p) for p in data.get("recovery_parts", [])),
        recycling_parts=tuple(_part(p) for p in data.get("recycling_parts", [])),
        models=tuple(_model(m) for m in data.get("models", [])),
        rankings={
            name: _ranking_set(name, section)
            for name, section in data.get("rankings", {}).items()
        },
        cbam_items=tuple(
            CbamItem(
                hs_code=str(item.get("hs_code", "")),
                description=item.get("description", ""),
                export_quantity=float(item.get("export_quantity", 0.0)),
                embedded_emissions=float(item.get("embedded_emissions", 0.0)),
                carbon_price_paid=float(item.get("carbon_price_paid", 0.0)),
                free_allowance=float(item.get("free_allowance", 0.0)),
            )
            for item in data.get("cbam_items", [])
        ),
        epr_items=tuple(
            EprItem(
                item_id=str(item.get("id", "")),
                category=item.get("category", ""),
                regulation=item.get("regulation", ""),
                metric=item.get("metric", ""),
                target=float(item.get("target", 0.0)),
                achieved=float(item.get("achieved", 0.0)),
                unit=item.get("unit", "%"),
            )
            for item in data.get("epr_items", [])
        ),
        material_targets=tuple(
            MaterialTarget(
                material=t.get("material", ""),
                target=float(t.get("target", 0.0)),
                achieved=float(t.get("achieved", 0.0)),
                unit=t.get("unit", "MT"),
                fiscal_year=str(t.get("fiscal_year", "")),
            )
            for t in data.get("material_targets", [])
        ),
    )
    logger.debug(
        "Loaded catalog: %d parts, %d models, %d ranking sets",
        len(catalog.parts), len(catalog.models), len(catalog.rankings),
    )
    return catalog


def load_catalog_file(path: Path) -> Catalog:
    """Load a catalog from a YAML file."""
    with open(path, "r", encoding="utf-8") as handle:
        return load_catalog(yaml.safe_load(handle) or {})


def validate_catalog(catalog: Catalog) -> List[str]:
    """
    Validate referential integrity and weight defaults.

    Returns:
        List of validation errors (empty if valid)

    Validations:
        - Every part model id references an existing model
        - Part and model ids are unique per collection
        - Default KPI weights of every ranking set sum to 100
    """
    errors = []
    model_ids = {m.model_id for m in catalog.models}

    if len(model_ids) != len(catalog.models):
        errors.append("Duplicate model ids in catalog")

    collections = [
        ("parts", catalog.parts),
        ("recovery_parts", catalog.recovery_parts),
        ("recycling_parts", catalog.recycling_parts),
    ]
    for collection, parts in collections:
        seen = set()
        for part in parts:
            if part.part_id in seen:
                errors.append(f"Duplicate part id in {collection}: {part.part_id}")
            seen.add(part.part_id)
            for model_id in part.model_ids:
                if model_id not in model_ids:
                    errors.append(
                        f"Part {part.part_id} in {collection} references unknown model {model_id}"
                    )

    for name, ranking in catalog.rankings.items():
        total = sum(k.default_weight for k in ranking.kpis)
        if ranking.kpis and abs(total - 100.0) > 1e-9:
            errors.append(
                f"Default KPI weights for {name} sum to {total:g} (must equal 100)"
            )

    return errors


# =============================================================================
# END OF CATALOG MODULE
# =============================================================================

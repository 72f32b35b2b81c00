# =============================================================================
# ELV COMPLIANCE ENGINE - FILTER RESOLVER
# =============================================================================
# Derives the option set of every filter dimension from the catalog and the
# currently active selections.
#
# RULE (asymmetric exclusion):
# Options[D] = {"All"} + distinct D values of records matching every active
#              selection EXCEPT the selection on D itself
#
# Filtering D's own option list by D would collapse it to a single value
# after the first pick. An option set never contains a value that yields
# zero records under the other active selections.
# =============================================================================

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .aggregation import distinct_in_order

ALL = "All"


@dataclass(frozen=True)
class FilterState:
    """Global dashboard selection owned by the presentation layer."""
    date_from: date
    date_to: date
    plant: str = ALL
    target_market: str = "Domestic"
    sourced_from_elv: str = "Yes"
    materials: Tuple[str, ...] = ()


def default_filter_state(today: date, fiscal_year_start_month: int = 4) -> FilterState:
    """Session default: the fiscal year containing `today`, no narrowing filters."""
    from .proration import fiscal_year_for

    fiscal_year = fiscal_year_for(today, fiscal_year_start_month)
    return FilterState(date_from=fiscal_year.start, date_to=fiscal_year.end)


@dataclass(frozen=True)
class Dimension:
    """
    A filterable attribute of a record.

    `extract(record)` returns a single value or a list/tuple of values
    (multi-valued attributes such as the model ids of a part).
    """
    name: str
    extract: Callable[[Any], Any]

    @classmethod
    def from_key(cls, name: str, key: Optional[str] = None) -> "Dimension":
        """Dimension reading an attribute (or mapping key) of the record."""
        key = key or name

        def _extract(record):
            if isinstance(record, Mapping):
                return record.get(key)
            return getattr(record, key, None)

        return cls(name=name, extract=_extract)

    def values(self, record) -> List[Any]:
        value = self.extract(record)
        if value is None:
            return []
        if isinstance(value, (list, tuple, set, frozenset)):
            return [_plain(v) for v in value]
        return [_plain(value)]


def _plain(value):
    return getattr(value, "value", value)


PART_DIMENSIONS: Tuple[Dimension, ...] = (
    Dimension.from_key("material"),
    Dimension.from_key("model", "model_ids"),
    Dimension.from_key("supplier"),
    Dimension.from_key("grade"),
    Dimension.from_key("hs_code"),
)


def is_active(selection) -> bool:
    """A selection narrows the records unless it is empty, None or the All sentinel."""
    if selection is None or selection == ALL:
        return False
    if isinstance(selection, (list, tuple, set, frozenset)):
        return len(selection) > 0 and ALL not in selection
    return selection != ""


def _accepted(selection) -> Set[Any]:
    if isinstance(selection, (list, tuple, set, frozenset)):
        return {_plain(v) for v in selection}
    return {_plain(selection)}


def matches(record, dimension: Dimension, selection) -> bool:
    """True when any value of the record's dimension is among the selected values."""
    if not is_active(selection):
        return True
    accepted = _accepted(selection)
    return any(value in accepted for value in dimension.values(record))


def apply_filters(
    records: Iterable[Any],
    dimensions: Sequence[Dimension],
    selections: Mapping[str, Any],
    exclude: Optional[str] = None,
) -> List[Any]:
    """
    Keep records matching every active selection.

    Args:
        records: Catalog records
        dimensions: Dimensions available for filtering
        selections: Dict[dimension_name, value or list of values]
        exclude: Dimension whose selection is ignored

    Returns:
        Matching records in catalog order
    """
    active = [
        d for d in dimensions
        if d.name != exclude and is_active(selections.get(d.name))
    ]
    return [
        record for record in records
        if all(matches(record, d, selections.get(d.name)) for d in active)
    ]


def resolve_options(
    records: Sequence[Any],
    dimensions: Sequence[Dimension],
    selections: Mapping[str, Any],
    sort: bool = False,
) -> Dict[str, List[Any]]:
    """
    Resolve the option set of every dimension.

    Returns:
        Dict[dimension_name, ["All", value, ...]]

    Notes:
        - Values keep catalog insertion order unless sort=True
        - When no record survives the other selections only "All" remains
    """
    result: Dict[str, List[Any]] = {}
    for dimension in dimensions:
        subset = apply_filters(records, dimensions, selections, exclude=dimension.name)
        values = distinct_in_order(v for record in subset for v in dimension.values(record))
        if sort:
            values = sorted(values, key=str)
        result[dimension.name] = [ALL] + values
    return result


class DimensionIndex:
    """
    Inverted index (dimension -> value -> record positions) built once per catalog.

    `resolve` returns the same option sets as `resolve_options` by
    intersecting position sets instead of re-scanning the records.
    """

    def __init__(self, records: Sequence[Any], dimensions: Sequence[Dimension]):
        self.records = list(records)
        self.dimensions = list(dimensions)
        self._index: Dict[str, Dict[Any, Set[int]]] = {}
        self._values: Dict[str, List[List[Any]]] = {}
        for dimension in self.dimensions:
            postings: Dict[Any, Set[int]] = {}
            per_record: List[List[Any]] = []
            for position, record in enumerate(self.records):
                values = dimension.values(record)
                per_record.append(values)
                for value in values:
                    postings.setdefault(value, set()).add(position)
            self._index[dimension.name] = postings
            self._values[dimension.name] = per_record

    def positions(self, selections: Mapping[str, Any], exclude: Optional[str] = None) -> Set[int]:
        """Record positions matching every active selection except `exclude`."""
        result = set(range(len(self.records)))
        for dimension in self.dimensions:
            selection = selections.get(dimension.name)
            if dimension.name == exclude or not is_active(selection):
                continue
            postings = self._index[dimension.name]
            matched: Set[int] = set()
            for value in _accepted(selection):
                matched |= postings.get(value, set())
            result &= matched
        return result

    def filter(self, selections: Mapping[str, Any]) -> List[Any]:
        return [self.records[i] for i in sorted(self.positions(selections))]

    def resolve(self, selections: Mapping[str, Any], sort: bool = False) -> Dict[str, List[Any]]:
        result: Dict[str, List[Any]] = {}
        for dimension in self.dimensions:
            allowed = self.positions(selections, exclude=dimension.name)
            postings = self._index[dimension.name]
            # first occurrence among surviving records keeps catalog order
            first = {}
            for value, hits in postings.items():
                hits = hits & allowed
                if hits:
                    position = min(hits)
                    first[value] = (position, self._values[dimension.name][position].index(value))
            values = sorted(first, key=first.get)
            if sort:
                values = sorted(values, key=str)
            result[dimension.name] = [ALL] + values
        return result


def selection_key(filter_state: Optional[FilterState], selections: Optional[Mapping[str, Any]] = None) -> str:
    """Stable serialisation of the input selection, used as a memoisation key."""
    payload: Dict[str, Any] = {}
    if filter_state is not None:
        payload["filters"] = {
            "date_from": filter_state.date_from.isoformat(),
            "date_to": filter_state.date_to.isoformat(),
            "plant": filter_state.plant,
            "target_market": filter_state.target_market,
            "sourced_from_elv": filter_state.sourced_from_elv,
            "materials": sorted(_plain(m) for m in filter_state.materials),
        }
    normalized = {}
    for name, value in (selections or {}).items():
        if isinstance(value, (list, tuple, set, frozenset)):
            normalized[name] = sorted(str(_plain(v)) for v in value)
        else:
            normalized[name] = None if value is None else str(_plain(value))
    payload["selections"] = normalized
    return json.dumps(payload, sort_keys=True)


# =============================================================================
# END OF FILTER RESOLVER
# =============================================================================

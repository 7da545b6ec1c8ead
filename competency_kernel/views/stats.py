"""Dashboard statistics over an already-fetched collection."""

from typing import Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel


class CollectionStats(BaseModel):
    total: int
    active: Optional[int] = None
    by_field: Dict[str, Dict[str, int]] = {}
    totals: Dict[str, float] = {}


def first_present(item: dict, *fields: str):
    """Value of the first field the item carries (camelCase/snake_case aliases)."""
    for field in fields:
        value = item.get(field)
        if value is not None:
            return value
    return None


def count_by(items: Sequence[dict], field: str) -> Dict[str, int]:
    """Histogram of a field's values, in first-seen order. None counts as "None"."""
    counts: Dict[str, int] = {}
    for item in items:
        label = str(item.get(field))
        counts[label] = counts.get(label, 0) + 1
    return counts


def count_where(items: Sequence[dict], field: str, value) -> int:
    return sum(1 for item in items if item.get(field) == value)


def sum_field(items: Sequence[dict], *fields: str) -> float:
    """Sum a numeric field, reading the first alias present on each item."""
    total = 0
    for item in items:
        value = first_present(item, *fields)
        if value:
            total += value
    return total


def collection_stats(
    items: Sequence[dict],
    group_fields: Sequence[str] = (),
    active_field: Optional[str] = None,
    total_fields: Optional[Mapping[str, List[str]]] = None,
) -> CollectionStats:
    """
    Totals, active count, per-field histograms and summed numeric fields for
    a stats card row. `total_fields` maps a label to the field aliases to sum.
    """
    by_field: Dict[str, Dict[str, int]] = {}
    for field in group_fields:
        by_field[field] = count_by(items, field)

    active = None
    if active_field is not None:
        active = count_where(items, active_field, True)

    totals = {label: sum_field(items, *fields) for label, fields in (total_fields or {}).items()}

    return CollectionStats(total=len(items), active=active, by_field=by_field, totals=totals)

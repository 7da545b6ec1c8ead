"""
Derived View Computer — filtered/sorted projections of a fetched collection.

Behavioral Contract:
- Pure: the same items and predicates always give the same rows
- Never mutates the items it is given
- Search and equality filters compose by AND
- No implicit ordering; sorting only when a sort key is configured, and it
  is stable in both directions
"""

from datetime import date, datetime
from typing import Any, Callable, List, Optional, Sequence

from competency_kernel.models.scheduling import normalize_day
from competency_kernel.models.view import (
    FilterPredicateSet,
    SortDirection,
    SortType,
    ViewConfig,
)


def _matches_search(item: dict, needle: str, fields: Sequence[str]) -> bool:
    """True if any searchable field (every field when none are declared) contains the needle."""
    for field in fields or list(item):
        value = item.get(field)
        haystack = "" if value is None else str(value)
        if needle in haystack.casefold():
            return True
    return False


def _known_filter_fields(items: Sequence[dict], config: ViewConfig) -> set:
    if config.filterable_fields is not None:
        return set(config.filterable_fields)
    known = set()
    for item in items:
        known.update(item.keys())
    return known


def _same_value(actual: Any, expected: Any) -> bool:
    """Strict equality: 1 does not match True, nor 1.0 match 1."""
    return type(actual) is type(expected) and actual == expected


def apply_predicates(
    items: Sequence[dict],
    predicates: FilterPredicateSet,
    config: ViewConfig,
) -> List[dict]:
    """Narrow items by search text, then by each active equality filter."""
    rows = list(items)

    needle = predicates.search_text.strip().casefold()
    if needle:
        rows = [
            item for item in rows
            if _matches_search(item, needle, config.searchable_fields)
        ]

    known = _known_filter_fields(items, config)
    for field, expected in predicates.equality_filters.items():
        if expected is None or expected == "":
            continue
        if field not in known:
            continue  # unknown field: no constraint
        rows = [item for item in rows if _same_value(item.get(field), expected)]

    return rows


def _infer_sort_type(values: Sequence[Any]) -> SortType:
    if values and all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in values
    ):
        return SortType.NUMBER
    if values and all(isinstance(v, (date, datetime)) for v in values):
        return SortType.DATE
    return SortType.STRING


def _date_sort_value(value: Any) -> datetime:
    """Chronological key; date-only values sort at the start of their day."""
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if "T" not in text and " " not in text:
            day = normalize_day(text)
            return datetime(day.year, day.month, day.day)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment


def _sort_key_fn(config: ViewConfig, values: Sequence[Any]) -> Callable[[Any], Any]:
    ranks = config.rank_orders.get(config.sort_key)
    if ranks is not None:
        return lambda v: ranks.get(v, 0)

    sort_type = config.sort_type or _infer_sort_type(values)
    if sort_type == SortType.NUMBER:
        return float
    if sort_type == SortType.DATE:
        return _date_sort_value
    return str


def sort_rows(rows: Sequence[dict], config: ViewConfig) -> List[dict]:
    """
    Stable sort by `config.sort_key`. Rows missing the key (or holding None
    or "") always go last, in their original relative order.
    """
    if not config.sort_key:
        return list(rows)

    field = config.sort_key
    present = [r for r in rows if r.get(field) is not None and r.get(field) != ""]
    missing = [r for r in rows if r.get(field) is None or r.get(field) == ""]

    key_fn = _sort_key_fn(config, [r[field] for r in present])
    ordered = sorted(
        present,
        key=lambda r: key_fn(r[field]),
        reverse=config.sort_direction == SortDirection.DESC,
    )
    return ordered + missing


def derive_view(
    items: Sequence[dict],
    predicates: Optional[FilterPredicateSet] = None,
    config: Optional[ViewConfig] = None,
) -> List[dict]:
    """The visible rows for a collection under the given predicates and config."""
    predicates = predicates or FilterPredicateSet()
    config = config or ViewConfig()
    return sort_rows(apply_predicates(items, predicates, config), config)

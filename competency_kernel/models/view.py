"""View configuration and predicate sets for derived collection views."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"


class FilterPredicateSet(BaseModel):
    """Free-text search plus exact-match field filters currently applied to a view."""

    search_text: str = ""
    equality_filters: Dict[str, Any] = {}   # None / "" = no constraint

    @property
    def is_empty(self) -> bool:
        if self.search_text.strip():
            return False
        return all(v is None or v == "" for v in self.equality_filters.values())


class ViewConfig(BaseModel):
    """
    Per-page view configuration.

    `searchable_fields` are tested in order for the free-text search.
    `rank_orders` maps enumerated field values to ranks, e.g. a priority
    field where HIGH sorts above MEDIUM and LOW.
    """

    searchable_fields: List[str] = []                # empty = search every field
    sort_key: Optional[str] = None
    sort_direction: SortDirection = SortDirection.ASC
    sort_type: Optional[SortType] = None            # inferred when None
    rank_orders: Dict[str, Dict[str, int]] = {}
    filterable_fields: Optional[List[str]] = None   # None = any field some item carries

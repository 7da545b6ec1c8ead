"""Intervals and validation results for development path scheduling."""

from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, field_validator


def normalize_day(value: Any, tz: Optional[tzinfo] = None) -> Optional[date]:
    """
    Reduce a date-like value to a calendar day.

    Accepts None, "", `date`, `datetime` and ISO-8601 strings. An ISO string
    is taken as the calendar day written in it, whatever its time or offset
    ("2024-01-31T00:00:00.000Z" is 2024-01-31 in every zone). A timezone-aware
    `datetime` is converted to `tz` first when one is given, and otherwise
    keeps its own wall-clock day. Time of day never takes part in a
    comparison.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        return date.fromisoformat(text.replace(" ", "T").split("T")[0])
    raise TypeError(f"Cannot interpret {value!r} as a date")


class IntervalViolation(str, Enum):
    INVERTED_RANGE = "InvertedRange"
    CHILD_STARTS_BEFORE_PARENT = "ChildStartsBeforeParent"
    CHILD_ENDS_AFTER_PARENT = "ChildEndsAfterParent"


class Interval(BaseModel):
    """
    A (start, end) pair of calendar days; either bound may be open (None).

    Construction never rejects an inverted range, so the validator can
    report it by name.
    """

    start: Optional[date] = None
    end: Optional[date] = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def _to_day(cls, value: Any) -> Optional[date]:
        return normalize_day(value)

    @classmethod
    def from_entity(cls, entity: dict) -> "Interval":
        """Read `start_date` / `end_date` from an entity mapping."""
        return cls(start=entity.get("start_date"), end=entity.get("end_date"))

    @property
    def is_well_formed(self) -> bool:
        if self.start is None or self.end is None:
            return True
        return self.start <= self.end


class ValidationResult(BaseModel):
    """Outcome of a scheduling check. `violation` names the first rule broken."""

    ok: bool
    violation: Optional[IntervalViolation] = None
    message: Optional[str] = None

    def raise_for_violation(self) -> None:
        """Raise SchedulingError if the check failed."""
        if not self.ok:
            from competency_kernel.scheduling.validator import SchedulingError

            raise SchedulingError(self.violation, self.message)


"""
Scheduling Constraint Validator — gates every interval-bearing submission.

Behavioral Contract:
- Pure and synchronous; no state between calls
- Compares calendar days only, never times of day
- Rules are checked in a fixed order and the first violation wins:
    1. InvertedRange            child start after child end
    2. ChildStartsBeforeParent  child start before a bounded parent start
    3. ChildEndsAfterParent     child end after a bounded parent end
- Never clamps; callers decide what to do with a violation
"""

from datetime import date, timedelta, tzinfo
from typing import Any, Dict, Optional, Sequence, Union

from competency_kernel.models.scheduling import (
    Interval,
    IntervalViolation,
    ValidationResult,
    normalize_day,
)

IntervalLike = Union[Interval, dict]

_MESSAGES = {
    IntervalViolation.INVERTED_RANGE: "End date cannot be before the start date",
    IntervalViolation.CHILD_STARTS_BEFORE_PARENT: (
        "Intervention start date cannot be before the path start date"
    ),
    IntervalViolation.CHILD_ENDS_AFTER_PARENT: (
        "Intervention end date cannot be after the path end date"
    ),
}

COMPLETED_STATUS = "COMPLETED"


class SchedulingError(Exception):
    """Raised by ValidationResult.raise_for_violation."""

    def __init__(self, violation: IntervalViolation, message: Optional[str] = None):
        super().__init__(message or violation.value)
        self.violation = violation
        self.message = message or violation.value


def as_interval(value: IntervalLike, tz: Optional[tzinfo] = None) -> Interval:
    """
    Coerce an Interval, a {"start", "end"} mapping or an entity carrying
    start_date / end_date into an Interval.
    """
    if isinstance(value, Interval):
        return value
    if "start_date" in value or "end_date" in value:
        start, end = value.get("start_date"), value.get("end_date")
    else:
        start, end = value.get("start"), value.get("end")
    return Interval(start=normalize_day(start, tz), end=normalize_day(end, tz))


def _fail(violation: IntervalViolation) -> ValidationResult:
    return ValidationResult(ok=False, violation=violation, message=_MESSAGES[violation])


def validate_interval(
    parent: IntervalLike,
    child: IntervalLike,
    tz: Optional[tzinfo] = None,
) -> ValidationResult:
    """Check that `child` is well formed and contained in `parent`."""
    parent = as_interval(parent, tz)
    child = as_interval(child, tz)

    if child.start is not None and child.end is not None and child.start > child.end:
        return _fail(IntervalViolation.INVERTED_RANGE)

    if parent.start is not None and child.start is not None and child.start < parent.start:
        return _fail(IntervalViolation.CHILD_STARTS_BEFORE_PARENT)

    if parent.end is not None and child.end is not None and child.end > parent.end:
        return _fail(IntervalViolation.CHILD_ENDS_AFTER_PARENT)

    return ValidationResult(ok=True)


def validate_range(interval: IntervalLike, tz: Optional[tzinfo] = None) -> ValidationResult:
    """Check an interval on its own, e.g. a path's start and end."""
    return validate_interval(Interval(), interval, tz)


def validate_schedule(
    parent: IntervalLike,
    children: Sequence[dict],
    tz: Optional[tzinfo] = None,
) -> Dict[Any, ValidationResult]:
    """
    Check every child entity against the parent; return failures keyed by
    the child's id (or its position when it has none yet).
    """
    failures = {}
    for position, child in enumerate(children):
        result = validate_interval(parent, child, tz)
        if not result.ok:
            child_id = child.get("id")
            failures[position if child_id is None else child_id] = result
    return failures


def seed_child_interval(start: Any) -> Interval:
    """
    Default a new child's end to the day after its start.

    The seed is not clamped to any parent; validate it like any other
    interval.
    """
    day = normalize_day(start)
    if day is None:
        return Interval()
    return Interval(start=day, end=day + timedelta(days=1))


def is_overdue(
    target_date: Any,
    status: Optional[str],
    today: Optional[date] = None,
) -> bool:
    """An unfinished item whose target day is strictly before today."""
    target = normalize_day(target_date)
    if target is None or status == COMPLETED_STATUS:
        return False
    return target < (today or date.today())

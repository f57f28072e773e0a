"""Typed request payloads, validated before they reach the scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, Mapping, Optional

from church_rota.errors import ConfigurationError

from .types import BatchTarget


def parse_date(value: Any, field_name: str = "date") -> date:
    """Accept a date, datetime or ISO string (YYYY-MM-DD or a full ISO datetime)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return datetime.fromisoformat(text).date()
        except ValueError as e:
            raise ConfigurationError(f"Invalid {field_name}: {value!r}") from e
    raise ConfigurationError(f"Invalid {field_name}: {value!r}")


def parse_id(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ConfigurationError(f"{field_name} is required")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid {field_name}: {value!r}") from e
    if parsed <= 0:
        raise ConfigurationError(f"{field_name} must be positive, got {parsed}")
    return parsed


def expand_dates(start: date, end: date, days_of_week: Iterable[int] | None = None) -> List[date]:
    """
    List dates between start and end (inclusive) falling on the given weekdays.

    Args:
        start: First date of the range
        end: Last date of the range
        days_of_week: Weekdays to keep (0=Monday ... 6=Sunday); None or empty keeps all

    Returns:
        Sorted list of dates
    """
    if end < start:
        raise ConfigurationError(f"Range end {end} is before start {start}")
    days = set(days_of_week or range(7))
    out = []
    cursor = start
    while cursor <= end:
        if cursor.weekday() in days:
            out.append(cursor)
        cursor += timedelta(days=1)
    return out


@dataclass(frozen=True)
class GenerateRequest:
    activity_type_id: int
    target_date: date

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GenerateRequest":
        return cls(
            activity_type_id=parse_id(payload.get("activity_type_id"), "activity_type_id"),
            target_date=parse_date(payload.get("date"), "date"),
        ).validate()

    def validate(self) -> "GenerateRequest":
        parse_id(self.activity_type_id, "activity_type_id")
        if not isinstance(self.target_date, date):
            raise ConfigurationError(f"Invalid date: {self.target_date!r}")
        return self

    def to_target(self) -> BatchTarget:
        return BatchTarget(target_date=self.target_date, activity_type_id=self.activity_type_id)


@dataclass(frozen=True)
class BatchRequest:
    targets: List[BatchTarget] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], max_targets: int = 52) -> "BatchRequest":
        """
        Accept either an explicit target list or a date range.

        {"targets": [{"activity_type_id": 1, "date": "2025-01-05"}, ...]}
        {"activity_type_id": 1, "start": "2025-01-01", "end": "2025-03-31", "days_of_week": [6]}

        Malformed individual targets are rejected here; unknown activity
        types are left for the batch to report per target.
        """
        if "targets" in payload:
            raw_targets = payload.get("targets") or []
            if not isinstance(raw_targets, list):
                raise ConfigurationError("targets must be a list")
            targets = [
                BatchTarget(
                    target_date=parse_date(t.get("date"), "date"),
                    activity_type_id=parse_id(t.get("activity_type_id"), "activity_type_id"),
                )
                for t in raw_targets
            ]
            return cls(targets=targets).validate(max_targets)

        return cls.from_range(
            activity_type_id=parse_id(payload.get("activity_type_id"), "activity_type_id"),
            start=parse_date(payload.get("start"), "start"),
            end=parse_date(payload.get("end"), "end"),
            days_of_week=payload.get("days_of_week"),
            max_targets=max_targets,
        )

    @classmethod
    def from_range(
        cls,
        activity_type_id: int,
        start: date,
        end: date,
        days_of_week: Optional[Iterable[int]] = None,
        max_targets: int = 52,
    ) -> "BatchRequest":
        dates = expand_dates(start, end, days_of_week)
        if not dates:
            raise ConfigurationError(f"No dates between {start} and {end} match the activity's days")
        targets = [BatchTarget(target_date=d, activity_type_id=activity_type_id) for d in dates]
        return cls(targets=targets).validate(max_targets)

    def validate(self, max_targets: int = 52) -> "BatchRequest":
        if not self.targets:
            raise ConfigurationError("Batch request has no targets")
        if len(self.targets) > max_targets:
            raise ConfigurationError(
                f"Batch request has {len(self.targets)} targets; at most {max_targets} allowed"
            )
        return self


@dataclass(frozen=True)
class ReassignRequest:
    program_id: int
    role_name: str
    person_id: Optional[int]  # None clears the slot
    slot: int = 0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ReassignRequest":
        person = payload.get("person_id")
        return cls(
            program_id=parse_id(payload.get("program_id"), "program_id"),
            role_name=str(payload.get("role_name") or ""),
            person_id=None if person in (None, "") else parse_id(person, "person_id"),
            slot=int(payload.get("slot", 0) or 0),
        ).validate()

    def validate(self) -> "ReassignRequest":
        if not self.role_name.strip():
            raise ConfigurationError("role_name is required")
        if self.slot < 0:
            raise ConfigurationError(f"slot must be >= 0, got {self.slot}")
        return self

"""Value types shared by the scheduling engine.

These are immutable snapshots: the engine never touches ORM rows directly,
which keeps every scheduling call a pure function of its inputs.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class ProgramStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CANCELLED = "CANCELLED"


class AssignmentStrategy(str, enum.Enum):
    DETERMINISTIC_ROTATION = "DETERMINISTIC_ROTATION"
    MANUAL_RANDOM = "MANUAL_RANDOM"
    MANUAL_PICK = "MANUAL_PICK"


class GenerationType(str, enum.Enum):
    STANDARD = "STANDARD"
    CLEANING_GROUPS = "CLEANING_GROUPS"


class RecordKind(str, enum.Enum):
    COMMIT = "COMMIT"
    TOMBSTONE = "TOMBSTONE"


@dataclass(frozen=True)
class BlackoutRange:
    """Inclusive range of dates a person cannot serve."""

    start: date
    end: date
    reason: Optional[str] = None

    def covers(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class Qualification:
    role_name: str
    qualified_since: Optional[date] = None


@dataclass(frozen=True)
class Person:
    """Roster entry as seen by the scheduler."""

    person_id: int
    full_name: str
    qualifications: Tuple[Qualification, ...] = ()
    priority: int = 1
    blackouts: Tuple[BlackoutRange, ...] = ()
    excluded_weekdays: FrozenSet[int] = frozenset()  # 0=Monday ... 6=Sunday
    active: bool = True

    def is_qualified(self, role_name: str, on: Optional[date] = None) -> bool:
        for q in self.qualifications:
            if q.role_name == role_name:
                return q.qualified_since is None or on is None or q.qualified_since <= on
        return False

    def is_available_on(self, day: date) -> bool:
        if not self.active:
            return False
        if day.weekday() in self.excluded_weekdays:
            return False
        return not any(b.covers(day) for b in self.blackouts)

    @property
    def role_names(self) -> List[str]:
        return [q.role_name for q in self.qualifications]


@dataclass(frozen=True)
class RoleRequirement:
    role_name: str
    count: int = 1
    display_order: int = 1
    section_name: Optional[str] = None
    required: bool = True

    @property
    def section(self) -> str:
        return self.section_name or self.role_name


@dataclass(frozen=True)
class ActivityDefinition:
    """One activity type as configured, e.g. "Sunday Service"."""

    activity_type_id: int
    name: str
    requirements: Tuple[RoleRequirement, ...] = ()
    days_of_week: FrozenSet[int] = frozenset()
    default_time: str = "10:00"
    generation_type: GenerationType = GenerationType.STANDARD
    version: int = 1

    def ordered_requirements(self) -> List[RoleRequirement]:
        """Required roles first, then optional ones, each by display order."""
        indexed = list(enumerate(self.requirements))
        indexed.sort(key=lambda item: (not item[1].required, item[1].display_order, item[0]))
        return [req for _, req in indexed]

    @property
    def total_needed(self) -> int:
        return sum(req.count for req in self.requirements)


@dataclass(frozen=True)
class Assignment:
    role_name: str
    slot: int = 0
    section_name: Optional[str] = None
    person_id: Optional[int] = None
    backup_person_id: Optional[int] = None
    strategy: AssignmentStrategy = AssignmentStrategy.DETERMINISTIC_ROTATION
    is_manual: bool = False

    @property
    def is_filled(self) -> bool:
        return self.person_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role_name": self.role_name,
            "slot": self.slot,
            "section_name": self.section_name,
            "person_id": self.person_id,
            "backup_person_id": self.backup_person_id,
            "strategy": self.strategy.value,
            "is_manual": self.is_manual,
        }


@dataclass(frozen=True)
class UnfilledRole:
    """A role that could not be (fully) staffed from the current roster."""

    role_name: str
    needed: int
    filled: int
    section_name: Optional[str] = None
    required: bool = True
    reason: str = "no eligible candidates"

    @property
    def missing(self) -> int:
        return self.needed - self.filled

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role_name": self.role_name,
            "section_name": self.section_name,
            "needed": self.needed,
            "filled": self.filled,
            "required": self.required,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class CleaningGroup:
    group_id: int
    member_ids: Tuple[int, ...]
    position: int
    last_assigned_date: Optional[date] = None

    def with_last_assigned(self, day: date) -> "CleaningGroup":
        return replace(self, last_assigned_date=day)

    @property
    def size(self) -> int:
        return len(self.member_ids)


@dataclass(frozen=True)
class DraftProgram:
    """Generated program; DRAFT until committed."""

    target_date: date
    activity_type_id: int
    assignments: Tuple[Assignment, ...] = ()
    status: ProgramStatus = ProgramStatus.DRAFT
    program_id: Optional[int] = None
    generation_type: GenerationType = GenerationType.STANDARD
    group_id: Optional[int] = None
    group_member_ids: Tuple[int, ...] = ()
    total_groups: Optional[int] = None

    @property
    def person_ids(self) -> List[int]:
        """Every person placed in this program, in slot order."""
        if self.generation_type == GenerationType.CLEANING_GROUPS:
            return list(self.group_member_ids)
        return [a.person_id for a in self.assignments if a.person_id is not None]

    def find(self, role_name: str, slot: int = 0) -> Optional[Assignment]:
        for a in self.assignments:
            if a.role_name == role_name and a.slot == slot:
                return a
        return None

    def with_assignments(self, assignments: Tuple[Assignment, ...]) -> "DraftProgram":
        return replace(self, assignments=tuple(assignments))

    def with_status(self, status: ProgramStatus) -> "DraftProgram":
        return replace(self, status=status)

    def coverage(self) -> "CoverageStats":
        needed = len(self.assignments)
        assigned = sum(1 for a in self.assignments if a.is_filled)
        percent = 100 if needed == 0 else round(assigned * 100 / needed)
        return CoverageStats(
            total_needed=needed,
            total_assigned=assigned,
            coverage_percent=percent,
            people_used=len(set(self.person_ids)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "program_id": self.program_id,
            "date": self.target_date.isoformat(),
            "activity_type_id": self.activity_type_id,
            "status": self.status.value,
            "generation_type": self.generation_type.value,
            "group_id": self.group_id,
            "group_member_ids": list(self.group_member_ids),
            "total_groups": self.total_groups,
            "assignments": [a.to_dict() for a in self.assignments],
        }


@dataclass(frozen=True)
class CoverageStats:
    total_needed: int
    total_assigned: int
    coverage_percent: int
    people_used: int


@dataclass(frozen=True)
class BatchTarget:
    target_date: date
    activity_type_id: int

    @property
    def key(self) -> Tuple[int, date]:
        return (self.activity_type_id, self.target_date)


class OutcomeKind(str, enum.Enum):
    DRAFT_PROGRAM = "DRAFT_PROGRAM"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class BatchOutcome:
    target: BatchTarget
    kind: OutcomeKind
    program: Optional[DraftProgram] = None
    unfilled: Tuple[UnfilledRole, ...] = ()
    reason: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def draft(cls, target: BatchTarget, program: DraftProgram, unfilled=()) -> "BatchOutcome":
        return cls(target=target, kind=OutcomeKind.DRAFT_PROGRAM, program=program, unfilled=tuple(unfilled))

    @classmethod
    def failure(cls, target: BatchTarget, error: BaseException | str) -> "BatchOutcome":
        if isinstance(error, BaseException):
            reason = str(error) or type(error).__name__
            return cls(target=target, kind=OutcomeKind.FAILURE, reason=reason, error_type=type(error).__name__)
        return cls(target=target, kind=OutcomeKind.FAILURE, reason=error)

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.DRAFT_PROGRAM

    @property
    def review_state(self) -> str:
        """What the review screen shows for this target."""
        if not self.ok:
            return "FAILED"
        return "NEEDS_ATTENTION" if self.unfilled else "READY"


@dataclass
class BatchResult:
    outcomes: List[BatchOutcome] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self):
        return iter(self.outcomes)

    @property
    def succeeded(self) -> List[BatchOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> List[BatchOutcome]:
        return [o for o in self.outcomes if not o.ok]

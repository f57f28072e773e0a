"""Domain models and data access layer."""

from .models import (
    ActivityType,
    AssignmentRecord,
    Base,
    Blackout,
    CleaningGroupRow,
    Person,
    PersonRole,
    Program,
    ProgramAssignment,
    RoleRequirement,
)
from .repositories import (
    ActivityTypeRepository,
    CleaningGroupRepository,
    LedgerRepository,
    PersonRepository,
    ProgramRepository,
)

__all__ = [
    "ActivityType",
    "AssignmentRecord",
    "Base",
    "Blackout",
    "CleaningGroupRow",
    "Person",
    "PersonRole",
    "Program",
    "ProgramAssignment",
    "RoleRequirement",
    "ActivityTypeRepository",
    "CleaningGroupRepository",
    "LedgerRepository",
    "PersonRepository",
    "ProgramRepository",
]

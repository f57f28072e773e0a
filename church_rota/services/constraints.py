"""Constraint checking and validation for programs."""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from church_rota.domain.types import ActivityDefinition, CleaningGroup, DraftProgram, Person
from church_rota.errors import ConfigurationError, DuplicateAssignmentError

if TYPE_CHECKING:
    from church_rota.services.roster import Roster


def can_assign_person(
    person: Person,
    role_name: str,
    on: date,
    assigned_in_program: Iterable[int],
) -> bool:
    """
    Check if a person can take a role on a date based on hard constraints.

    Args:
        person: Person to check
        role_name: Role to fill
        on: Program date
        assigned_in_program: Person ids already placed in the same program

    Returns:
        True if person can be assigned, False otherwise
    """
    # 1. Role eligibility
    if not person.is_qualified(role_name, on):
        return False

    # 2. Active and not blacked out / excluded that weekday
    if not person.is_available_on(on):
        return False

    # 3. Not already serving in this program
    if person.person_id in set(assigned_in_program):
        return False

    return True


def find_duplicates(program: DraftProgram) -> List[int]:
    """Person ids appearing more than once in the program."""
    counts = Counter(a.person_id for a in program.assignments if a.person_id is not None)
    return sorted(pid for pid, n in counts.items() if n > 1)


def validate_program(
    program: DraftProgram,
    roster: Optional[Roster] = None,
    definition: Optional[ActivityDefinition] = None,
) -> None:
    """
    Validate a program against the hard constraints.

    Args:
        program: Draft or published program
        roster: Optional roster; when given, every assignee must exist in it
        definition: Optional activity definition; when given, every slot must match it

    Raises:
        DuplicateAssignmentError: If a person appears twice
        ConfigurationError: If a slot references an unknown person or role
    """
    dupes = find_duplicates(program)
    if dupes:
        raise DuplicateAssignmentError(
            f"Program for {program.target_date} assigns person(s) {dupes} more than once"
        )

    if roster is not None:
        for a in program.assignments:
            if a.person_id is not None and a.person_id not in roster:
                raise ConfigurationError(f"Assignment for {a.role_name} references unknown person {a.person_id}")

    if definition is not None:
        slots: Dict[str, int] = {req.role_name: req.count for req in definition.requirements}
        for a in program.assignments:
            if a.role_name not in slots:
                raise ConfigurationError(
                    f"Role '{a.role_name}' is not part of activity {definition.activity_type_id}"
                )
            if not 0 <= a.slot < slots[a.role_name]:
                raise ConfigurationError(f"Role '{a.role_name}' has no slot {a.slot}")


def validate_partition(groups: List[CleaningGroup], member_ids: Iterable[int]) -> None:
    """
    Check that groups cover the members exactly once with sizes within one.

    Raises:
        ValueError: If a member is missing, repeated or unknown, or sizes are unbalanced
    """
    expected = set(member_ids)
    placed = Counter(pid for g in groups for pid in g.member_ids)

    repeated = sorted(pid for pid, n in placed.items() if n > 1)
    if repeated:
        raise ValueError(f"Members placed in more than one group: {repeated}")
    missing = sorted(expected - set(placed))
    if missing:
        raise ValueError(f"Members not placed in any group: {missing}")
    unknown = sorted(set(placed) - expected)
    if unknown:
        raise ValueError(f"Groups contain non-eligible members: {unknown}")

    sizes = [g.size for g in groups]
    if sizes and max(sizes) - min(sizes) > 1:
        raise ValueError(f"Group sizes differ by more than one: {sizes}")

"""Tests for hard constraints and program validation."""

from datetime import date

import pytest

from church_rota.domain.types import (
    ActivityDefinition,
    Assignment,
    BlackoutRange,
    CleaningGroup,
    DraftProgram,
    Person,
    Qualification,
    RoleRequirement,
)
from church_rota.errors import ConfigurationError, DuplicateAssignmentError
from church_rota.services.constraints import (
    can_assign_person,
    find_duplicates,
    validate_partition,
    validate_program,
)
from church_rota.services.roster import Roster


SUNDAY = date(2024, 3, 10)


def test_can_assign_person_role_eligibility():
    """Test that a person must hold the role."""
    usher = Person(1, "Test", qualifications=(Qualification("Usher"),))

    assert can_assign_person(usher, "Usher", SUNDAY, set()) is True
    assert can_assign_person(usher, "Preacher", SUNDAY, set()) is False


def test_can_assign_person_availability():
    """Test blackouts, weekday exclusions and inactive people."""
    quals = (Qualification("Usher"),)
    away = Person(1, "Away", qualifications=quals, blackouts=(BlackoutRange(SUNDAY, SUNDAY),))
    no_sundays = Person(2, "Weekdays", qualifications=quals, excluded_weekdays=frozenset({6}))
    retired = Person(3, "Retired", qualifications=quals, active=False)

    for p in (away, no_sundays, retired):
        assert can_assign_person(p, "Usher", SUNDAY, set()) is False
    assert can_assign_person(away, "Usher", date(2024, 3, 11), set()) is True


def test_can_assign_person_already_in_program():
    usher = Person(1, "Test", qualifications=(Qualification("Usher"),))
    assert can_assign_person(usher, "Usher", SUNDAY, [1]) is False


def _program(*people):
    return DraftProgram(
        target_date=SUNDAY,
        activity_type_id=1,
        assignments=tuple(Assignment(role, slot, person_id=pid) for role, slot, pid in people),
    )


def test_find_duplicates_ignores_empty_slots():
    program = _program(("Preacher", 0, 1), ("Usher", 0, 1), ("Usher", 1, None), ("Reader", 0, None))
    assert find_duplicates(program) == [1]


def test_validate_program_duplicate_person():
    with pytest.raises(DuplicateAssignmentError):
        validate_program(_program(("Preacher", 0, 1), ("Usher", 0, 1)))


def test_validate_program_against_roster_and_definition():
    roster = Roster([Person(1, "A"), Person(2, "B")])
    definition = ActivityDefinition(1, "Service", requirements=(RoleRequirement("Usher", count=2),))

    validate_program(_program(("Usher", 0, 1), ("Usher", 1, 2)), roster, definition)

    with pytest.raises(ConfigurationError):
        validate_program(_program(("Usher", 0, 9)), roster)
    with pytest.raises(ConfigurationError):
        validate_program(_program(("Organist", 0, 1)), roster, definition)
    with pytest.raises(ConfigurationError):
        validate_program(_program(("Usher", 2, 1)), roster, definition)


def test_validate_partition():
    good = [CleaningGroup(1, (1, 3), 0), CleaningGroup(2, (2,), 1)]
    validate_partition(good, [1, 2, 3])

    with pytest.raises(ValueError, match="more than one group"):
        validate_partition([CleaningGroup(1, (1, 2), 0), CleaningGroup(2, (2,), 1)], [1, 2])
    with pytest.raises(ValueError, match="not placed"):
        validate_partition(good, [1, 2, 3, 4])
    with pytest.raises(ValueError, match="non-eligible"):
        validate_partition(good, [1, 2])
    with pytest.raises(ValueError, match="differ by more than one"):
        validate_partition([CleaningGroup(1, (1, 2, 3), 0), CleaningGroup(2, (4,), 1)], [1, 2, 3, 4])

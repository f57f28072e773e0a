"""Tests for the deterministic rotation scheduler."""

from datetime import date, datetime, timedelta

import pytest

from church_rota.domain.types import (
    ActivityDefinition,
    AssignmentStrategy,
    BlackoutRange,
    GenerationType,
    Person,
    Qualification,
    RoleRequirement,
)
from church_rota.engine.rotation import RotationScheduler
from church_rota.errors import ConfigurationError
from church_rota.services.catalog import RoleCatalog
from church_rota.services.ledger import AssignmentLedger, LedgerEntry, LedgerSnapshot
from church_rota.services.roster import Roster


SUNDAY = date(2024, 3, 10)


def person(pid, *roles, priority=1, **kwargs):
    return Person(
        person_id=pid,
        full_name=f"Person {pid}",
        qualifications=tuple(Qualification(r) for r in roles),
        priority=priority,
        **kwargs,
    )


@pytest.fixture
def catalog():
    """Sunday Service: Preacher, Worship Leader, two Ushers, optional Reader."""
    return RoleCatalog([
        ActivityDefinition(
            activity_type_id=1,
            name="Sunday Service",
            requirements=(
                RoleRequirement("Reader", count=1, display_order=1, required=False),
                RoleRequirement("Preacher", count=1, display_order=2, section_name="Sermon"),
                RoleRequirement("Worship Leader", count=1, display_order=3, section_name="Worship"),
                RoleRequirement("Usher", count=2, display_order=4),
            ),
            days_of_week=frozenset({6}),
        ),
        ActivityDefinition(activity_type_id=2, name="Empty", requirements=()),
        ActivityDefinition(
            activity_type_id=3,
            name="Cleaning",
            generation_type=GenerationType.CLEANING_GROUPS,
        ),
    ])


@pytest.fixture
def roster():
    return Roster([
        person(1, "Preacher", "Reader"),
        person(2, "Preacher"),
        person(3, "Preacher", "Usher"),
        person(4, "Preacher", "Worship Leader"),
        person(5, "Worship Leader", "Usher"),
        person(6, "Usher"),
        person(7, "Usher", "Reader"),
    ])


def preacher_history():
    return AssignmentLedger([
        LedgerEntry(1, "Preacher", 1, date(2024, 1, 1)),
        LedgerEntry(2, "Preacher", 1, date(2024, 2, 1)),
        LedgerEntry(3, "Preacher", 1, date(2024, 3, 1)),
    ]).snapshot()


def test_never_served_preacher_is_chosen(catalog, roster):
    """With three preachers served and one never, the never-served one preaches."""
    program, unfilled = RotationScheduler(catalog).assign(SUNDAY, 1, roster, preacher_history())

    assert program.find("Preacher").person_id == 4
    assert unfilled == []


def test_oldest_last_served_preferred_when_all_have_served(catalog, roster):
    """Among people who all served, the one who waited longest goes next."""
    ledger = AssignmentLedger([
        LedgerEntry(1, "Preacher", 1, date(2024, 1, 1)),
        LedgerEntry(2, "Preacher", 1, date(2024, 2, 1)),
        LedgerEntry(3, "Preacher", 1, date(2024, 3, 1)),
        LedgerEntry(4, "Preacher", 1, date(2024, 3, 3)),
    ]).snapshot()

    program, _ = RotationScheduler(catalog).assign(SUNDAY, 1, roster, ledger)

    assert program.find("Preacher").person_id == 1


def test_backup_is_next_ranked_candidate(catalog, roster):
    """The backup is the runner-up for the slot."""
    program, _ = RotationScheduler(catalog).assign(SUNDAY, 1, roster, preacher_history())

    assert program.find("Preacher").backup_person_id == 1


def test_required_roles_filled_before_optional(catalog, roster):
    """Optional roles come after required ones even with a lower display order."""
    program, _ = RotationScheduler(catalog).assign(SUNDAY, 1, roster, LedgerSnapshot())

    order = [a.role_name for a in program.assignments]
    assert order == ["Preacher", "Worship Leader", "Usher", "Usher", "Reader"]


def test_no_person_twice_in_one_program(catalog, roster):
    """Nobody holds two slots of the same program."""
    program, _ = RotationScheduler(catalog).assign(SUNDAY, 1, roster, LedgerSnapshot())

    ids = program.person_ids
    assert len(ids) == len(set(ids))
    assert program.find("Preacher").person_id == 1
    # Person 1 also reads, but is already preaching
    assert program.find("Reader").person_id == 7


def test_same_inputs_same_program(catalog, roster):
    """Assignment is deterministic."""
    scheduler = RotationScheduler(catalog)
    first, _ = scheduler.assign(SUNDAY, 1, roster, preacher_history())
    second, _ = scheduler.assign(SUNDAY, 1, roster, preacher_history())

    assert first.to_dict() == second.to_dict()


def test_strategy_recorded_on_every_assignment(catalog, roster):
    program, _ = RotationScheduler(catalog).assign(SUNDAY, 1, roster, LedgerSnapshot())

    for a in program.assignments:
        assert a.strategy == AssignmentStrategy.DETERMINISTIC_ROTATION
        assert a.is_manual is False


def test_priority_breaks_ties_between_never_served():
    """Higher priority wins among people with the same history."""
    catalog = RoleCatalog([
        ActivityDefinition(1, "Service", requirements=(RoleRequirement("Preacher"),)),
    ])
    roster = Roster([person(1, "Preacher", priority=1), person(2, "Preacher", priority=5)])

    program, _ = RotationScheduler(catalog).assign(SUNDAY, 1, roster, LedgerSnapshot())

    assert program.find("Preacher").person_id == 2


def test_recency_beats_priority():
    """A high-priority person who just served still waits behind a fresh one."""
    catalog = RoleCatalog([
        ActivityDefinition(1, "Service", requirements=(RoleRequirement("Preacher"),)),
    ])
    roster = Roster([person(1, "Preacher", priority=1), person(2, "Preacher", priority=10)])
    ledger = AssignmentLedger([
        LedgerEntry(1, "Preacher", 1, date(2024, 1, 7)),
        LedgerEntry(2, "Preacher", 1, date(2024, 3, 3)),
    ]).snapshot()

    program, _ = RotationScheduler(catalog).assign(SUNDAY, 1, roster, ledger)

    assert program.find("Preacher").person_id == 1


def test_recently_served_ranks_lower():
    """Serving moves a person behind everyone who has not served since."""
    catalog = RoleCatalog([
        ActivityDefinition(1, "Service", requirements=(RoleRequirement("Usher"),)),
    ])
    roster = Roster([person(i, "Usher") for i in range(1, 4)])
    ledger = AssignmentLedger()
    scheduler = RotationScheduler(catalog)

    chosen = []
    for week in range(6):
        on = date(2024, 1, 7) + timedelta(weeks=week)
        program, _ = scheduler.assign(on, 1, roster, ledger.snapshot())
        chosen.append(program.find("Usher").person_id)
        ledger.record_commit(program)

    assert chosen == [1, 2, 3, 1, 2, 3]


def test_unfilled_role_reported_and_assignment_continues(catalog):
    """An unstaffable role is reported while the others are still filled."""
    roster = Roster([person(1, "Preacher"), person(2, "Usher"), person(3, "Usher")])

    program, unfilled = RotationScheduler(catalog).assign(SUNDAY, 1, roster, LedgerSnapshot())

    assert program.find("Preacher").person_id == 1
    assert program.find("Worship Leader").person_id is None
    assert {a.person_id for a in program.assignments if a.role_name == "Usher"} == {2, 3}

    by_role = {u.role_name: u for u in unfilled}
    assert set(by_role) == {"Worship Leader", "Reader"}
    assert by_role["Worship Leader"].required is True
    assert by_role["Worship Leader"].section_name == "Worship"
    assert by_role["Worship Leader"].missing == 1
    assert by_role["Reader"].required is False


def test_partially_filled_multi_person_role():
    catalog = RoleCatalog([
        ActivityDefinition(1, "Service", requirements=(RoleRequirement("Usher", count=3),)),
    ])
    roster = Roster([person(1, "Usher"), person(2, "Usher")])

    program, unfilled = RotationScheduler(catalog).assign(SUNDAY, 1, roster, LedgerSnapshot())

    assert [a.slot for a in program.assignments] == [0, 1, 2]
    assert len(unfilled) == 1
    assert unfilled[0].needed == 3
    assert unfilled[0].filled == 2
    assert program.coverage().coverage_percent == 67


def test_blackout_and_weekday_exclusion_respected():
    catalog = RoleCatalog([
        ActivityDefinition(1, "Service", requirements=(RoleRequirement("Preacher"),)),
    ])
    roster = Roster([
        person(1, "Preacher", blackouts=(BlackoutRange(date(2024, 3, 1), date(2024, 3, 15)),)),
        person(2, "Preacher", excluded_weekdays=frozenset({6})),
        person(3, "Preacher", active=False),
        person(4, "Preacher"),
    ])

    program, _ = RotationScheduler(catalog).assign(SUNDAY, 1, roster, LedgerSnapshot())

    assert program.find("Preacher").person_id == 4
    assert program.find("Preacher").backup_person_id is None


def test_qualification_must_start_before_program_date():
    catalog = RoleCatalog([
        ActivityDefinition(1, "Service", requirements=(RoleRequirement("Preacher"),)),
    ])
    roster = Roster([
        Person(1, "New Preacher", qualifications=(Qualification("Preacher", date(2024, 6, 1)),)),
        Person(2, "Old Preacher", qualifications=(Qualification("Preacher", date(2020, 1, 1)),)),
    ])

    program, _ = RotationScheduler(catalog).assign(SUNDAY, 1, roster, LedgerSnapshot())

    assert program.find("Preacher").person_id == 2


def test_datetime_target_is_truncated(catalog, roster):
    program, _ = RotationScheduler(catalog).assign(datetime(2024, 3, 10, 9, 30), 1, roster, LedgerSnapshot())

    assert program.target_date == SUNDAY


def test_invalid_inputs_raise_configuration_error(catalog, roster):
    scheduler = RotationScheduler(catalog)

    with pytest.raises(ConfigurationError):
        scheduler.assign("2024-03-10", 1, roster, LedgerSnapshot())

    with pytest.raises(ConfigurationError):
        scheduler.assign(SUNDAY, 99, roster, LedgerSnapshot())

    with pytest.raises(ConfigurationError):
        scheduler.assign(SUNDAY, 2, roster, LedgerSnapshot())

    with pytest.raises(ConfigurationError):
        scheduler.assign(SUNDAY, 3, roster, LedgerSnapshot())


def test_explain_lists_ranked_candidates(catalog, roster):
    scores = RotationScheduler(catalog).explain(SUNDAY, 1, "Preacher", roster, preacher_history())

    assert [s.person_id for s in scores] == [4, 1, 2, 3]
    assert [s.rank for s in scores] == [1, 2, 3, 4]
    assert scores[0].never_served is True
    assert scores[1].days_since_last(SUNDAY) == 69
    assert scores[1].to_dict(SUNDAY)["last_served"] == "2024-01-01"

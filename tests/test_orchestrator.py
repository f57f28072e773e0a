"""Tests for the batch orchestrator."""

import time
from datetime import date, timedelta

import pytest

from church_rota.config import BatchSettings, SchedulerConfig, TimeoutSettings
from church_rota.domain.types import (
    ActivityDefinition,
    BatchTarget,
    CleaningGroup,
    DraftProgram,
    GenerationType,
    OutcomeKind,
    Person,
    Qualification,
    RoleRequirement,
)
from church_rota.engine.orchestrator import BatchOrchestrator
from church_rota.engine.rotation import RotationScheduler
from church_rota.services.catalog import RoleCatalog
from church_rota.services.ledger import AssignmentLedger
from church_rota.services.roster import Roster


SUNDAYS = [date(2024, 1, 7) + timedelta(weeks=i) for i in range(5)]


@pytest.fixture
def catalog():
    return RoleCatalog([
        ActivityDefinition(
            activity_type_id=1,
            name="Sunday Service",
            requirements=(RoleRequirement("Preacher"), RoleRequirement("Usher", count=2)),
            days_of_week=frozenset({6}),
        ),
        ActivityDefinition(
            activity_type_id=3,
            name="Church Cleaning",
            generation_type=GenerationType.CLEANING_GROUPS,
            days_of_week=frozenset({5}),
        ),
    ])


@pytest.fixture
def roster():
    people = [
        Person(i, f"Preacher {i}", qualifications=(Qualification("Preacher"),)) for i in range(1, 4)
    ] + [
        Person(i, f"Usher {i}", qualifications=(Qualification("Usher"),)) for i in range(4, 10)
    ]
    return Roster(people)


def config(cross_date=True, workers=4, target_seconds=30.0):
    return SchedulerConfig(
        batch=BatchSettings(workers=workers, cross_date_fairness=cross_date),
        timeouts=TimeoutSettings(target_seconds=target_seconds),
    )


def test_failing_target_does_not_stop_batch(catalog, roster):
    """Five targets, the third with an unknown activity: four drafts and one failure, in order."""
    targets = [BatchTarget(d, 1) for d in SUNDAYS]
    targets[2] = BatchTarget(SUNDAYS[2], 42)

    result = BatchOrchestrator(catalog, roster, AssignmentLedger(), cfg=config()).run_batch(targets)

    assert len(result) == 5
    assert [o.target for o in result] == targets
    assert [o.kind for o in result] == [
        OutcomeKind.DRAFT_PROGRAM,
        OutcomeKind.DRAFT_PROGRAM,
        OutcomeKind.FAILURE,
        OutcomeKind.DRAFT_PROGRAM,
        OutcomeKind.DRAFT_PROGRAM,
    ]
    failure = result.outcomes[2]
    assert failure.error_type == "ConfigurationError"
    assert "42" in failure.reason
    assert failure.review_state == "FAILED"
    assert len(result.succeeded) == 4


def test_independent_mode_also_isolates_failures(catalog, roster):
    targets = [BatchTarget(d, 1) for d in SUNDAYS]
    targets[2] = BatchTarget(SUNDAYS[2], 42)

    result = BatchOrchestrator(
        catalog, roster, AssignmentLedger(), cfg=config(cross_date=False, workers=2)
    ).run_batch(targets)

    assert [o.ok for o in result] == [True, True, False, True, True]
    assert [o.target for o in result] == targets


def test_cross_date_fairness_spreads_people(catalog, roster):
    """Earlier drafts in a batch push their people down for later dates."""
    targets = [BatchTarget(d, 1) for d in SUNDAYS[:3]]

    result = BatchOrchestrator(catalog, roster, AssignmentLedger(), cfg=config()).run_batch(targets)

    preachers = [o.program.find("Preacher").person_id for o in result]
    assert preachers == [1, 2, 3]
    ushers = [sorted(a.person_id for a in o.program.assignments if a.role_name == "Usher") for o in result]
    assert ushers == [[4, 5], [6, 7], [8, 9]]


def test_cross_date_fairness_is_soft(catalog):
    """With only one preacher, every date still gets that preacher."""
    roster = Roster([Person(1, "Only Preacher", qualifications=(Qualification("Preacher"),))])
    targets = [BatchTarget(d, 1) for d in SUNDAYS[:3]]

    result = BatchOrchestrator(catalog, roster, AssignmentLedger(), cfg=config()).run_batch(targets)

    assert [o.program.find("Preacher").person_id for o in result] == [1, 1, 1]
    assert all(o.review_state == "NEEDS_ATTENTION" for o in result)


def test_independent_mode_uses_shared_snapshot(catalog, roster):
    """Without cross-date fairness every date sees the same history."""
    targets = [BatchTarget(d, 1) for d in SUNDAYS[:3]]

    result = BatchOrchestrator(
        catalog, roster, AssignmentLedger(), cfg=config(cross_date=False)
    ).run_batch(targets)

    assert [o.program.find("Preacher").person_id for o in result] == [1, 1, 1]


def test_published_target_fails(catalog, roster):
    orchestrator = BatchOrchestrator(
        catalog, roster, AssignmentLedger(), cfg=config(), published_targets=[(1, SUNDAYS[1])]
    )

    result = orchestrator.run_batch([BatchTarget(d, 1) for d in SUNDAYS[:3]])

    assert [o.ok for o in result] == [True, False, True]
    assert result.outcomes[1].error_type == "DuplicateTargetError"


def test_slow_target_times_out(catalog, roster):
    class SlowScheduler(RotationScheduler):
        def assign(self, target_date, activity_type_id, roster, ledger):
            if target_date == SUNDAYS[1]:
                time.sleep(0.5)
            return super().assign(target_date, activity_type_id, roster, ledger)

    orchestrator = BatchOrchestrator(
        catalog,
        roster,
        AssignmentLedger(),
        cfg=config(cross_date=False, target_seconds=0.1),
        scheduler=SlowScheduler(catalog),
    )

    result = orchestrator.run_batch([BatchTarget(d, 1) for d in SUNDAYS[:3]])

    assert [o.ok for o in result] == [True, False, True]
    assert result.outcomes[1].error_type == "SchedulingTimeoutError"


def test_cleaning_batch_rotates_groups(catalog, roster):
    groups = [CleaningGroup(gid, (gid,), gid - 1) for gid in (1, 2, 3)]
    saturdays = [date(2024, 1, 6) + timedelta(weeks=i) for i in range(6)]

    result = BatchOrchestrator(catalog, roster, AssignmentLedger(), cfg=config()).run_cleaning_batch(
        3, saturdays, groups
    )

    assert [o.program.group_id for o in result] == [1, 2, 3, 1, 2, 3]
    first = result.outcomes[0].program
    assert first.generation_type == GenerationType.CLEANING_GROUPS
    assert first.group_member_ids == (1,)
    assert first.total_groups == 3


def test_cleaning_batch_continues_from_ledger(catalog, roster):
    """A group that already took a turn goes to the back of the queue."""
    groups = [CleaningGroup(gid, (gid,), gid - 1) for gid in (1, 2, 3)]
    ledger = AssignmentLedger()
    ledger.record_commit(DraftProgram(
        target_date=date(2023, 12, 30),
        activity_type_id=3,
        generation_type=GenerationType.CLEANING_GROUPS,
        group_id=1,
        group_member_ids=(1,),
    ))
    saturdays = [date(2024, 1, 6) + timedelta(weeks=i) for i in range(3)]

    for cross_date in (True, False):
        result = BatchOrchestrator(
            catalog, roster, ledger, cfg=config(cross_date=cross_date), groups=groups
        ).run_cleaning_batch(3, saturdays)
        assert [o.program.group_id for o in result] == [2, 3, 1]


def test_cleaning_without_groups_fails_per_target(catalog, roster):
    result = BatchOrchestrator(catalog, roster, AssignmentLedger(), cfg=config()).run_cleaning_batch(
        3, [date(2024, 1, 6)]
    )
    assert result.outcomes[0].kind == OutcomeKind.FAILURE
    assert "cleaning groups" in result.outcomes[0].reason

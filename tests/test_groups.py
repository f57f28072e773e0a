"""Tests for cleaning-group partitioning and rotation."""

from datetime import date, timedelta

import pytest

from church_rota.domain.types import CleaningGroup, Person, Qualification
from church_rota.engine.groups import GroupPartitioner
from church_rota.errors import ConfigurationError
from church_rota.services.constraints import validate_partition
from church_rota.services.roster import Roster


def members(*ids, roles=("Cleaning",)):
    return [
        Person(person_id=i, full_name=f"Member {i}", qualifications=tuple(Qualification(r) for r in roles))
        for i in ids
    ]


@pytest.fixture
def roster():
    return Roster(members(*range(1, 11)))


def test_fresh_partition_is_round_robin(roster):
    """Members are dealt out in id order; ids 1..k, positions 0..k-1."""
    groups = GroupPartitioner().partition(roster, 3)

    assert [g.group_id for g in groups] == [1, 2, 3]
    assert [g.position for g in groups] == [0, 1, 2]
    assert groups[0].member_ids == (1, 4, 7, 10)
    assert groups[1].member_ids == (2, 5, 8)
    assert groups[2].member_ids == (3, 6, 9)


def test_partition_is_complete_and_balanced(roster):
    for k in range(1, 11):
        groups = GroupPartitioner().partition(roster, k)
        validate_partition(groups, range(1, 11))
        assert len(groups) == k


def test_partition_is_idempotent(roster):
    partitioner = GroupPartitioner()
    assert partitioner.partition(roster, 4) == partitioner.partition(roster, 4)


def test_inactive_and_unqualified_members_left_out():
    roster = Roster(
        members(1, 2, 3, 4)
        + members(5, roles=("Usher",))
        + [Person(person_id=6, full_name="Away", qualifications=(Qualification("Cleaning"),), active=False)]
    )

    groups = GroupPartitioner(duty_role="Cleaning").partition(roster, 2)

    assert sorted(pid for g in groups for pid in g.member_ids) == [1, 2, 3, 4]
    everyone = GroupPartitioner().partition(roster, 2)
    assert sorted(pid for g in everyone for pid in g.member_ids) == [1, 2, 3, 4, 5]


@pytest.mark.parametrize("count", [0, -1, 11, "3", True, 2.5])
def test_bad_group_count_rejected(roster, count):
    with pytest.raises(ConfigurationError):
        GroupPartitioner().partition(roster, count)


def test_repartition_keeps_existing_members_in_place(roster):
    """Leavers drop out, joiners go to the smallest group, everyone else stays."""
    partitioner = GroupPartitioner()
    existing = [
        g.with_last_assigned(date(2024, 3, 3)) if g.group_id == 1 else g
        for g in partitioner.partition(roster, 3)
    ]
    changed = Roster(members(1, 2, 3, 5, 6, 7, 8, 9, 10, 11, 12))

    groups = partitioner.partition(changed, 3, existing)

    validate_partition(groups, [1, 2, 3, 5, 6, 7, 8, 9, 10, 11, 12])
    assert groups[0].member_ids == (1, 7, 10, 11)
    assert groups[1].member_ids == (2, 5, 8, 12)
    assert groups[2].member_ids == (3, 6, 9)
    assert groups[0].last_assigned_date == date(2024, 3, 3)


def test_repartition_to_more_groups(roster):
    partitioner = GroupPartitioner()
    existing = partitioner.partition(roster, 3)

    groups = partitioner.partition(roster, 4, existing)

    validate_partition(groups, range(1, 11))
    assert [g.group_id for g in groups] == [1, 2, 3, 4]
    assert groups[1].member_ids == (2, 5, 8)
    assert groups[2].member_ids == (3, 6, 9)
    assert set(groups[0].member_ids) < {1, 4, 7, 10}
    assert groups[3].last_assigned_date is None


def test_repartition_to_fewer_groups(roster):
    partitioner = GroupPartitioner()
    existing = partitioner.partition(roster, 3)

    groups = partitioner.partition(roster, 2, existing)

    validate_partition(groups, range(1, 11))
    assert [g.group_id for g in groups] == [1, 2]
    assert {1, 4, 7, 10} <= set(groups[0].member_ids)
    assert {2, 5, 8} <= set(groups[1].member_ids)


def test_next_turn_prefers_never_assigned_then_oldest():
    groups = [
        CleaningGroup(1, (1,), 0, date(2024, 3, 3)),
        CleaningGroup(2, (2,), 1, None),
        CleaningGroup(3, (3,), 2, date(2024, 2, 4)),
    ]
    partitioner = GroupPartitioner()

    assert partitioner.next_turn(groups).group_id == 2

    groups[1] = groups[1].with_last_assigned(date(2024, 3, 10))
    assert partitioner.next_turn(groups).group_id == 3


def test_next_turn_ties_go_to_lowest_position():
    groups = [
        CleaningGroup(7, (1,), 1, date(2024, 1, 7)),
        CleaningGroup(4, (2,), 0, date(2024, 1, 7)),
    ]
    assert GroupPartitioner().next_turn(groups).group_id == 4


def test_rotation_visits_every_group_once_per_cycle(roster):
    partitioner = GroupPartitioner()
    groups = partitioner.partition(roster, 4)
    dates = [date(2024, 1, 7) + timedelta(weeks=i) for i in range(8)]

    order = [g.group_id for g in partitioner.rotation(groups, dates)]

    assert order == [1, 2, 3, 4, 1, 2, 3, 4]


def test_advance_only_touches_chosen_group(roster):
    groups = GroupPartitioner().partition(roster, 3)

    advanced = GroupPartitioner.advance(groups, groups[1], date(2024, 1, 7))

    assert [g.last_assigned_date for g in advanced] == [None, date(2024, 1, 7), None]


def test_next_turn_rejects_bad_input():
    with pytest.raises(ConfigurationError):
        GroupPartitioner().next_turn([])
    with pytest.raises(ConfigurationError):
        GroupPartitioner().next_turn([CleaningGroup(1, (1,), 0)], cycle_index=-1)

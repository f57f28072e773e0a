"""Rotating cleaning groups: partition the roster and pick whose turn it is."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional, Sequence

from church_rota.domain.types import CleaningGroup, Person
from church_rota.errors import ConfigurationError
from church_rota.services.roster import Roster


class GroupPartitioner:
    """
    Divide eligible members into a fixed number of groups and rotate duty.

    Groups are numbered 1..k with sequence positions 0..k-1. Partitioning is
    a stable round-robin over person-id order, so an unchanged roster always
    yields the same groups.
    """

    def __init__(self, duty_role: Optional[str] = None):
        self.duty_role = duty_role

    def eligible_members(self, roster: Roster) -> List[Person]:
        members = roster.active_people()
        if self.duty_role:
            members = [p for p in members if p.is_qualified(self.duty_role)]
        return members

    def _check_count(self, group_count: int, eligible: int) -> None:
        if isinstance(group_count, bool) or not isinstance(group_count, int):
            raise ConfigurationError(f"group_count must be an integer, got {group_count!r}")
        if group_count <= 0:
            raise ConfigurationError(f"group_count must be positive, got {group_count}")
        if group_count > eligible:
            raise ConfigurationError(
                f"group_count {group_count} exceeds the {eligible} eligible members"
            )

    def partition(
        self,
        roster: Roster,
        group_count: int,
        existing: Optional[Sequence[CleaningGroup]] = None,
    ) -> List[CleaningGroup]:
        """
        Split eligible members into `group_count` groups.

        Args:
            roster: Roster snapshot
            group_count: Number of groups (1..eligible members)
            existing: Current groups; members keep their group where possible

        Returns:
            Groups ordered by position; sizes differ by at most one

        Raises:
            ConfigurationError: If group_count is out of range
        """
        member_ids = [p.person_id for p in self.eligible_members(roster)]
        self._check_count(group_count, len(member_ids))

        if not existing:
            buckets: List[List[int]] = [[] for _ in range(group_count)]
            for idx, pid in enumerate(member_ids):
                buckets[idx % group_count].append(pid)
            return [
                CleaningGroup(group_id=i + 1, member_ids=tuple(bucket), position=i)
                for i, bucket in enumerate(buckets)
            ]

        return self._repartition(member_ids, group_count, existing)

    def _repartition(
        self,
        member_ids: List[int],
        group_count: int,
        existing: Sequence[CleaningGroup],
    ) -> List[CleaningGroup]:
        eligible = set(member_ids)
        kept = sorted(existing, key=lambda g: g.position)[:group_count]

        buckets: Dict[int, List[int]] = {}
        last_dates: Dict[int, Optional[date]] = {}
        placed = set()
        for g in kept:
            members = [pid for pid in g.member_ids if pid in eligible and pid not in placed]
            placed.update(members)
            buckets[g.group_id] = members
            last_dates[g.group_id] = g.last_assigned_date

        # Groups that did not exist before get fresh ids after the highest one
        next_id = max([g.group_id for g in existing], default=0) + 1
        while len(buckets) < group_count:
            buckets[next_id] = []
            last_dates[next_id] = None
            next_id += 1

        order = list(buckets)  # position order
        position = {gid: i for i, gid in enumerate(order)}

        for pid in member_ids:
            if pid in placed:
                continue
            smallest = min(order, key=lambda gid: (len(buckets[gid]), position[gid]))
            buckets[smallest].append(pid)
            placed.add(pid)

        while True:
            largest = max(order, key=lambda gid: (len(buckets[gid]), -position[gid]))
            smallest = min(order, key=lambda gid: (len(buckets[gid]), position[gid]))
            if len(buckets[largest]) - len(buckets[smallest]) <= 1:
                break
            mover = max(buckets[largest])
            buckets[largest].remove(mover)
            buckets[smallest].append(mover)

        return [
            CleaningGroup(
                group_id=gid,
                member_ids=tuple(buckets[gid]),
                position=position[gid],
                last_assigned_date=last_dates[gid],
            )
            for gid in order
        ]

    def next_turn(self, groups: Sequence[CleaningGroup], cycle_index: int = 0) -> CleaningGroup:
        """
        Pick the group whose turn it is.

        The group with the oldest last assigned date goes next (never-assigned
        groups first); ties go to the lowest sequence position. Updating the
        chosen group's date after each call gives a strict cycle over all groups.

        Args:
            groups: Current groups
            cycle_index: Zero-based tick of the rotation, used in error messages

        Returns:
            The group on duty
        """
        if cycle_index < 0:
            raise ConfigurationError(f"cycle_index must be >= 0, got {cycle_index}")
        if not groups:
            raise ConfigurationError(f"No cleaning groups defined for cycle {cycle_index}")
        return min(
            groups,
            key=lambda g: (
                0 if g.last_assigned_date is None else 1,
                g.last_assigned_date or date.min,
                g.position,
            ),
        )

    @staticmethod
    def advance(groups: Sequence[CleaningGroup], chosen: CleaningGroup, on: date) -> List[CleaningGroup]:
        """Return the groups with the chosen group's last assigned date set to `on`."""
        return [g.with_last_assigned(on) if g.group_id == chosen.group_id else g for g in groups]

    def rotation(self, groups: Sequence[CleaningGroup], dates: Sequence[date]) -> List[CleaningGroup]:
        """Groups on duty for each date, in order."""
        current = list(groups)
        out = []
        for i, on in enumerate(dates):
            chosen = self.next_turn(current, i)
            out.append(chosen)
            current = self.advance(current, chosen, on)
        return out

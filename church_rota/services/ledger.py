"""Append-only assignment ledger and its read-only snapshots."""

from __future__ import annotations

import threading
from collections import Counter, defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from church_rota.domain.types import DraftProgram, GenerationType, RecordKind
from church_rota.errors import SchedulingTimeoutError


@dataclass(frozen=True)
class LedgerEntry:
    person_id: int
    role_name: str
    activity_type_id: int
    record_date: date
    program_id: Optional[int] = None
    kind: RecordKind = RecordKind.COMMIT
    created_at: datetime = field(default_factory=datetime.utcnow, compare=False)


@dataclass(frozen=True)
class GroupTurnEntry:
    group_id: int
    activity_type_id: int
    record_date: date
    program_id: Optional[int] = None
    kind: RecordKind = RecordKind.COMMIT
    created_at: datetime = field(default_factory=datetime.utcnow, compare=False)


class LedgerSnapshot:
    """
    Frozen view of the ledger used for one scheduling run.

    A batch layers its own drafts on top through `with_provisional`, so later
    targets see earlier ones without anything being written to the ledger.
    """

    def __init__(
        self,
        last_served: Mapping[Tuple[int, str], date] | None = None,
        group_last: Mapping[int, date] | None = None,
        participation: Mapping[int, int] | None = None,
        batch_uses: Mapping[int, int] | None = None,
    ):
        self._last_served = dict(last_served or {})
        self._group_last = dict(group_last or {})
        self._participation = Counter(participation or {})
        self._batch_uses = Counter(batch_uses or {})

    def last_served(self, person_id: int, role_name: str) -> Optional[date]:
        return self._last_served.get((person_id, role_name))

    def group_last_assigned(self, group_id: int) -> Optional[date]:
        return self._group_last.get(group_id)

    def participation_count(self, person_id: int) -> int:
        return self._participation.get(person_id, 0)

    def batch_uses(self, person_id: int) -> int:
        """How many drafts earlier in the current batch already use this person."""
        return self._batch_uses.get(person_id, 0)

    def with_provisional(self, program: DraftProgram) -> "LedgerSnapshot":
        last_served = dict(self._last_served)
        group_last = dict(self._group_last)
        participation = Counter(self._participation)
        batch_uses = Counter(self._batch_uses)

        if program.generation_type == GenerationType.CLEANING_GROUPS:
            if program.group_id is not None:
                current = group_last.get(program.group_id)
                if current is None or program.target_date > current:
                    group_last[program.group_id] = program.target_date
            return LedgerSnapshot(last_served, group_last, participation, batch_uses)

        for a in program.assignments:
            if a.person_id is None:
                continue
            key = (a.person_id, a.role_name)
            current = last_served.get(key)
            if current is None or program.target_date > current:
                last_served[key] = program.target_date
            participation[a.person_id] += 1
            batch_uses[a.person_id] += 1
        return LedgerSnapshot(last_served, group_last, participation, batch_uses)


class AssignmentLedger:
    """
    Durable history of who served which role when.

    Entries are only ever appended. Cancellations append TOMBSTONE entries
    that cancel a matching COMMIT in the derived per-(person, role) index;
    the entry list itself is never edited.
    """

    def __init__(
        self,
        entries: Iterable[LedgerEntry] = (),
        group_entries: Iterable[GroupTurnEntry] = (),
        lock_timeout: float = 5.0,
    ):
        self.lock_timeout = lock_timeout
        self._lock = threading.Lock()
        self._entries: List[LedgerEntry] = []
        self._group_entries: List[GroupTurnEntry] = []
        self._served: Dict[Tuple[int, str], Counter] = defaultdict(Counter)
        self._participation: Counter = Counter()
        self._group_turns: Dict[int, Counter] = defaultdict(Counter)

        for entry in entries:
            self._apply(entry)
        for entry in group_entries:
            self._apply_group(entry)

    @contextmanager
    def _locked(self, timeout: Optional[float] = None):
        wait = self.lock_timeout if timeout is None else timeout
        if not self._lock.acquire(timeout=wait):
            raise SchedulingTimeoutError(f"Timed out after {wait}s waiting for the assignment ledger")
        try:
            yield
        finally:
            self._lock.release()

    def _apply(self, entry: LedgerEntry) -> None:
        self._entries.append(entry)
        key = (entry.person_id, entry.role_name)
        if entry.kind == RecordKind.COMMIT:
            self._served[key][entry.record_date] += 1
            self._participation[entry.person_id] += 1
        elif self._served[key][entry.record_date] > 0:
            self._served[key][entry.record_date] -= 1
            if self._served[key][entry.record_date] == 0:
                del self._served[key][entry.record_date]
            self._participation[entry.person_id] -= 1

    def _apply_group(self, entry: GroupTurnEntry) -> None:
        self._group_entries.append(entry)
        turns = self._group_turns[entry.group_id]
        if entry.kind == RecordKind.COMMIT:
            turns[entry.record_date] += 1
        elif turns[entry.record_date] > 0:
            turns[entry.record_date] -= 1
            if turns[entry.record_date] == 0:
                del turns[entry.record_date]

    def build_entries(self, program: DraftProgram, kind: RecordKind, created_at: datetime | None = None) -> List:
        """Entries a commit (or cancellation) of `program` would append, without appending them."""
        created_at = created_at or datetime.utcnow()
        if program.generation_type == GenerationType.CLEANING_GROUPS:
            if program.group_id is None:
                return []
            return [
                GroupTurnEntry(
                    group_id=program.group_id,
                    activity_type_id=program.activity_type_id,
                    record_date=program.target_date,
                    program_id=program.program_id,
                    kind=kind,
                    created_at=created_at,
                )
            ]
        return [
            LedgerEntry(
                person_id=a.person_id,
                role_name=a.role_name,
                activity_type_id=program.activity_type_id,
                record_date=program.target_date,
                program_id=program.program_id,
                kind=kind,
                created_at=created_at,
            )
            for a in program.assignments
            if a.person_id is not None
        ]

    def apply(self, entries: Iterable) -> None:
        """Append already-built entries (e.g. after they were stored)."""
        with self._locked():
            for e in entries:
                if isinstance(e, GroupTurnEntry):
                    self._apply_group(e)
                else:
                    self._apply(e)

    def record_commit(self, program: DraftProgram, created_at: datetime | None = None) -> List:
        """Append one COMMIT entry per filled assignment (or the group turn)."""
        entries = self.build_entries(program, RecordKind.COMMIT, created_at)
        self.apply(entries)
        return entries

    def record_cancellation(self, program: DraftProgram, created_at: datetime | None = None) -> List:
        """Append compensating TOMBSTONE entries for a cancelled program."""
        entries = self.build_entries(program, RecordKind.TOMBSTONE, created_at)
        self.apply(entries)
        return entries

    def last_served(self, person_id: int, role_name: str) -> Optional[date]:
        with self._locked():
            dates = self._served.get((person_id, role_name))
            return max(dates) if dates else None

    def group_last_assigned(self, group_id: int) -> Optional[date]:
        with self._locked():
            turns = self._group_turns.get(group_id)
            return max(turns) if turns else None

    def participation_count(self, person_id: int) -> int:
        with self._locked():
            return self._participation.get(person_id, 0)

    @property
    def entries(self) -> Tuple[LedgerEntry, ...]:
        with self._locked():
            return tuple(self._entries)

    @property
    def group_entries(self) -> Tuple[GroupTurnEntry, ...]:
        with self._locked():
            return tuple(self._group_entries)

    def snapshot(self, timeout: Optional[float] = None) -> LedgerSnapshot:
        """Take a consistent read-only view (bounded wait)."""
        with self._locked(timeout):
            last_served = {key: max(dates) for key, dates in self._served.items() if dates}
            group_last = {gid: max(turns) for gid, turns in self._group_turns.items() if turns}
            participation = {pid: n for pid, n in self._participation.items() if n > 0}
        return LedgerSnapshot(last_served, group_last, participation)

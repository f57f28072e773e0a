"""Program service - draft, review, commit and cancel programs against the database."""

from __future__ import annotations

import random
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from church_rota.config import SchedulerConfig
from church_rota.domain.repositories import (
    ActivityTypeRepository,
    CleaningGroupRepository,
    LedgerRepository,
    PersonRepository,
    ProgramRepository,
)
from church_rota.domain.requests import BatchRequest, GenerateRequest, ReassignRequest, expand_dates
from church_rota.domain.types import (
    AssignmentStrategy,
    BatchResult,
    BatchTarget,
    CleaningGroup,
    DraftProgram,
    GenerationType,
    ProgramStatus,
    RecordKind,
    UnfilledRole,
)
from church_rota.engine.base import BaseScheduler
from church_rota.engine.groups import GroupPartitioner
from church_rota.engine.orchestrator import BatchOrchestrator
from church_rota.engine.randomizer import RandomScheduler, manual_randomize
from church_rota.engine.rotation import RotationScheduler
from church_rota.errors import (
    ConfigurationError,
    DuplicateAssignmentError,
    ProgramStateError,
)
from church_rota.services.catalog import RoleCatalog
from church_rota.services.constraints import validate_partition, validate_program
from church_rota.services.ledger import AssignmentLedger
from church_rota.services.locks import CommitLockTable
from church_rota.services.scoring import CandidateScore


class ProgramService:
    """
    Entry point used by the CLI (and any web layer) for program operations.

    Drafting reads roster, catalog and ledger snapshots and never takes a
    commit lock. Every change to a stored program holds the per-target lock
    and re-reads the program under it. Commit and cancel write the program and
    its ledger rows in one transaction, and only then update the in-memory
    ledger.
    """

    def __init__(
        self,
        session_factory,
        cfg: SchedulerConfig | None = None,
        ledger: AssignmentLedger | None = None,
        lock_table: CommitLockTable | None = None,
    ):
        """
        Args:
            session_factory: Callable returning a new Session (e.g. a sessionmaker)
            cfg: SchedulerConfig (defaults when None)
            ledger: In-memory ledger; loaded from the database on first use when None
            lock_table: Shared commit locks; one per service when None
        """
        self.session_factory = session_factory
        self.cfg = cfg or SchedulerConfig()
        self.lock_table = lock_table or CommitLockTable(self.cfg.timeouts.lock_seconds)
        self._ledger = ledger
        self._ledger_guard = threading.Lock()

    @contextmanager
    def _session(self):
        session: Session = self.session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @property
    def ledger(self) -> AssignmentLedger:
        with self._ledger_guard:
            if self._ledger is None:
                with self._session() as session:
                    self._ledger = LedgerRepository.load_ledger(session, self.cfg.timeouts.snapshot_seconds)
                print(f"[INFO] Loaded assignment ledger: {len(self._ledger.entries)} entries")
            return self._ledger

    def _scheduler(self, catalog: RoleCatalog, strategy: AssignmentStrategy, seed: Optional[int]) -> BaseScheduler:
        if strategy == AssignmentStrategy.DETERMINISTIC_ROTATION:
            return RotationScheduler(catalog)
        if strategy == AssignmentStrategy.MANUAL_RANDOM:
            return RandomScheduler(catalog, random.Random(seed if seed is not None else self.cfg.random_seed))
        raise ConfigurationError(f"Strategy {strategy.value} cannot generate a whole program")

    def _orchestrator(
        self,
        session: Session,
        targets: Sequence[BatchTarget],
        strategy: AssignmentStrategy = AssignmentStrategy.DETERMINISTIC_ROTATION,
        seed: Optional[int] = None,
    ) -> BatchOrchestrator:
        catalog = ActivityTypeRepository.load_catalog(session)
        return BatchOrchestrator(
            catalog=catalog,
            roster=PersonRepository.load_roster(session),
            ledger=self.ledger,
            cfg=self.cfg,
            scheduler=self._scheduler(catalog, strategy, seed),
            partitioner=GroupPartitioner(self.cfg.cleaning.duty_role),
            groups=CleaningGroupRepository.load_groups(session),
            published_targets=ProgramRepository.published_targets(session, targets),
        )

    def _persist_batch(self, session: Session, result: BatchResult) -> BatchResult:
        saved = []
        for outcome in result:
            if outcome.ok:
                outcome = replace(outcome, program=ProgramRepository.save_draft(session, outcome.program))
            saved.append(outcome)
        return BatchResult(saved)

    def get(self, program_id: int) -> DraftProgram:
        with self._session() as session:
            return ProgramRepository.to_draft(ProgramRepository.require(session, program_id))

    def list_programs(self, status: ProgramStatus | None = None) -> List[DraftProgram]:
        with self._session() as session:
            rows = ProgramRepository.get_all(session, status.value if status else None)
            return [ProgramRepository.to_draft(r) for r in rows]

    def generate(
        self,
        request: GenerateRequest,
        strategy: AssignmentStrategy = AssignmentStrategy.DETERMINISTIC_ROTATION,
        seed: Optional[int] = None,
    ) -> Tuple[DraftProgram, List[UnfilledRole]]:
        """
        Draft and store one program.

        Args:
            request: Validated (activity type, date)
            strategy: DETERMINISTIC_ROTATION (default) or MANUAL_RANDOM
            seed: Random seed for MANUAL_RANDOM

        Returns:
            (stored DRAFT program, unfilled roles)

        Raises:
            ConfigurationError: Bad request or activity configuration
            DuplicateTargetError: The target already has a published program
        """
        request.validate()
        target = request.to_target()
        with self._session() as session:
            orchestrator = self._orchestrator(session, [target], strategy, seed)
            draft, unfilled = orchestrator.schedule_target(target, orchestrator.take_snapshot())
            saved = ProgramRepository.save_draft(session, draft)

        print(
            f"[OK] Draft program {saved.program_id} for activity {saved.activity_type_id} "
            f"on {saved.target_date}: {saved.coverage().coverage_percent}% covered"
        )
        for u in unfilled:
            print(f"[WARN] Unfilled role {u.role_name}: {u.filled}/{u.needed} ({u.reason})")
        return saved, unfilled

    def batch_generate(self, request: BatchRequest) -> BatchResult:
        """Draft every target of a batch and store the successful drafts."""
        request.validate(self.cfg.batch.max_targets)
        with self._session() as session:
            orchestrator = self._orchestrator(session, request.targets)
            result = orchestrator.run_batch(request.targets)
            return self._persist_batch(session, result)

    def generate_cleaning_batch(self, activity_type_id: int, start: date, end: date) -> BatchResult:
        """Draft cleaning-group programs for every matching date in a range."""
        with self._session() as session:
            catalog = ActivityTypeRepository.load_catalog(session)
            definition = catalog.resolve(activity_type_id)
            if definition.generation_type != GenerationType.CLEANING_GROUPS:
                raise ConfigurationError(f"Activity {activity_type_id} ('{definition.name}') is not a cleaning rotation")
            dates = expand_dates(start, end, definition.days_of_week)
            request = BatchRequest([BatchTarget(d, activity_type_id) for d in dates]).validate(
                self.cfg.batch.max_targets
            )
            orchestrator = self._orchestrator(session, request.targets)
            result = orchestrator.run_cleaning_batch(activity_type_id, dates)
            return self._persist_batch(session, result)

    def explain(self, activity_type_id: int, target_date: date, role_name: str) -> List[CandidateScore]:
        """Ranked candidates for one role on one date."""
        with self._session() as session:
            catalog = ActivityTypeRepository.load_catalog(session)
            roster = PersonRepository.load_roster(session)
        return RotationScheduler(catalog).explain(
            target_date, activity_type_id, role_name, roster, self.ledger.snapshot()
        )

    @contextmanager
    def _locked(self, session: Session, program_id: int):
        """
        Hold the target's commit lock and yield the program row as last committed.

        The row is read once to find the target, then reloaded under the lock,
        so status and slots reflect any writer that held the lock before us.
        """
        row = ProgramRepository.require(session, program_id)
        with self.lock_table.hold(row.activity_type_id, row.program_date):
            session.expire_all()
            yield ProgramRepository.require(session, program_id)

    @staticmethod
    def _check_draft(row, program_id: int) -> None:
        if row.status != ProgramStatus.DRAFT.value:
            raise ProgramStateError(f"Program {program_id} is {row.status}; only DRAFT programs can be changed")

    def commit(self, program_id: int) -> DraftProgram:
        """
        Publish a draft and record it in the ledger.

        Raises:
            ProgramNotFoundError: Unknown program id
            ProgramStateError: Program is not a DRAFT
            DuplicateTargetError: Another program for the target is already published
            SchedulingTimeoutError: The target's commit lock could not be acquired in time
        """
        with self._session() as session:
            with self._locked(session, program_id) as row:
                self._check_draft(row, program_id)
                draft = ProgramRepository.to_draft(row)
                validate_program(draft)
                entries = self.ledger.build_entries(draft.with_status(ProgramStatus.PUBLISHED), RecordKind.COMMIT)
                ProgramRepository.publish(session, row, entries)
                self.ledger.apply(entries)
                published = ProgramRepository.to_draft(row)

        print(f"[OK] Program {program_id} published for {published.target_date} ({len(entries)} ledger entries)")
        return published

    def reassign(self, request: ReassignRequest) -> DraftProgram:
        """
        Manually put a person into one slot (or clear it), bypassing ranking.

        Raises:
            ProgramNotFoundError: Unknown program id
            ProgramStateError: Program is not a DRAFT
            DuplicateAssignmentError: The person already holds another slot
            ConfigurationError: Unknown role slot or person
        """
        request.validate()
        with self._session() as session:
            with self._locked(session, request.program_id) as row:
                self._check_draft(row, request.program_id)
                draft = ProgramRepository.to_draft(row)
                current = draft.find(request.role_name, request.slot)
                if current is None:
                    raise ConfigurationError(
                        f"Program {request.program_id} has no slot {request.slot} for role '{request.role_name}'"
                    )

                if request.person_id is not None:
                    person = PersonRepository.load_roster(session).get(request.person_id)
                    if person is None:
                        raise ConfigurationError(f"Unknown person {request.person_id}")
                    for a in draft.assignments:
                        if a is not current and a.person_id == request.person_id:
                            raise DuplicateAssignmentError(
                                f"Person {request.person_id} already serves as {a.role_name} in program {request.program_id}"
                            )
                    if not person.is_qualified(request.role_name, draft.target_date):
                        print(f"[WARN] {person.full_name} is not qualified for {request.role_name}")
                    if not person.is_available_on(draft.target_date):
                        print(f"[WARN] {person.full_name} is unavailable on {draft.target_date}")

                picked = replace(
                    current,
                    person_id=request.person_id,
                    strategy=AssignmentStrategy.MANUAL_PICK,
                    is_manual=True,
                )
                updated = draft.with_assignments(
                    tuple(picked if a is current else a for a in draft.assignments)
                )
                validate_program(updated)
                return ProgramRepository.update_assignments(session, row, updated)

    def randomize(
        self,
        program_id: int,
        roles: Optional[Iterable[str]] = None,
        seed: Optional[int] = None,
    ) -> DraftProgram:
        """Redraw some or all roles of a draft at random."""
        with self._session() as session:
            with self._locked(session, program_id) as row:
                self._check_draft(row, program_id)
                draft = ProgramRepository.to_draft(row)
                if draft.generation_type == GenerationType.CLEANING_GROUPS:
                    raise ProgramStateError(f"Program {program_id} is a cleaning rotation and has no role slots")
                rng = random.Random(seed if seed is not None else self.cfg.random_seed)
                updated = manual_randomize(draft, PersonRepository.load_roster(session), rng, roles)
                validate_program(updated)
                return ProgramRepository.update_assignments(session, row, updated)

    def cancel(self, program_id: int) -> DraftProgram:
        """
        Cancel a program. Published programs get compensating ledger entries.

        Raises:
            ProgramNotFoundError: Unknown program id
            ProgramStateError: Program is already cancelled
        """
        with self._session() as session:
            with self._locked(session, program_id) as row:
                if row.status == ProgramStatus.CANCELLED.value:
                    raise ProgramStateError(f"Program {program_id} is already cancelled")
                was_published = row.status == ProgramStatus.PUBLISHED.value
                draft = ProgramRepository.to_draft(row)
                entries = self.ledger.build_entries(draft, RecordKind.TOMBSTONE) if was_published else []
                ProgramRepository.cancel(session, row, entries)
                self.ledger.apply(entries)
                if was_published and draft.group_id is not None:
                    CleaningGroupRepository.set_last_assigned(
                        session, draft.group_id, self.ledger.group_last_assigned(draft.group_id)
                    )
                cancelled = ProgramRepository.to_draft(row)

        print(f"[OK] Program {program_id} cancelled ({len(entries)} tombstone(s))")
        return cancelled

    def partition_groups(self, group_count: int | None = None) -> List[CleaningGroup]:
        """(Re)build cleaning groups from the current roster and store them."""
        count = self.cfg.cleaning.group_count if group_count is None else group_count
        partitioner = GroupPartitioner(self.cfg.cleaning.duty_role)
        with self._session() as session:
            roster = PersonRepository.load_roster(session)
            existing = CleaningGroupRepository.load_groups(session)
            groups = partitioner.partition(roster, count, existing)
            validate_partition(groups, [p.person_id for p in partitioner.eligible_members(roster)])
            CleaningGroupRepository.replace_groups(session, groups)

        sizes = ", ".join(str(g.size) for g in groups)
        print(f"[OK] Partitioned members into {len(groups)} cleaning groups (sizes: {sizes})")
        return groups

    def groups(self) -> List[CleaningGroup]:
        with self._session() as session:
            return CleaningGroupRepository.load_groups(session)

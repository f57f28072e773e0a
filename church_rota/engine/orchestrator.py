"""Batch orchestrator - drives the schedulers across many (date, activity) targets."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import date
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from church_rota.config import SchedulerConfig
from church_rota.domain.types import (
    BatchOutcome,
    BatchResult,
    BatchTarget,
    CleaningGroup,
    DraftProgram,
    GenerationType,
    UnfilledRole,
)
from church_rota.errors import ConfigurationError, DuplicateTargetError, SchedulingTimeoutError
from church_rota.services.catalog import RoleCatalog
from church_rota.services.ledger import AssignmentLedger, LedgerSnapshot
from church_rota.services.roster import Roster

from .base import BaseScheduler, coerce_date
from .groups import GroupPartitioner
from .rotation import RotationScheduler


# Serializes ledger snapshot acquisition across concurrently starting batches
_SNAPSHOT_GUARD = threading.Lock()


class BatchOrchestrator:
    """
    Runs the schedulers over a list of targets for human review.

    One roster and one ledger snapshot are taken when the batch starts. With
    cross-date fairness on, targets run in submission order and every draft is
    layered onto the snapshot, so people already used earlier in the batch
    rank lower later on. With it off, role targets run concurrently on a
    bounded worker pool against the shared snapshot. Cleaning-group targets
    always run in order because each turn depends on the previous one.

    Every target yields exactly one outcome, in submission order; a failing
    target never stops the others. Nothing here writes committed state.
    """

    def __init__(
        self,
        catalog: RoleCatalog,
        roster: Roster,
        ledger: AssignmentLedger | LedgerSnapshot,
        cfg: SchedulerConfig | None = None,
        scheduler: BaseScheduler | None = None,
        partitioner: GroupPartitioner | None = None,
        groups: Sequence[CleaningGroup] | None = None,
        published_targets: Iterable[Tuple[int, date]] = (),
    ):
        self.catalog = catalog
        self.roster = roster
        self.ledger = ledger
        self.cfg = cfg or SchedulerConfig()
        self.scheduler = scheduler or RotationScheduler(catalog)
        self.partitioner = partitioner or GroupPartitioner(self.cfg.cleaning.duty_role)
        self.groups = list(groups or [])
        self.published_targets: Set[Tuple[int, date]] = set(published_targets)

    def take_snapshot(self) -> LedgerSnapshot:
        if isinstance(self.ledger, LedgerSnapshot):
            return self.ledger
        wait = self.cfg.timeouts.snapshot_seconds
        if not _SNAPSHOT_GUARD.acquire(timeout=wait):
            raise SchedulingTimeoutError(f"Timed out after {wait}s waiting to snapshot the ledger")
        try:
            return self.ledger.snapshot(timeout=wait)
        finally:
            _SNAPSHOT_GUARD.release()

    def _is_cleaning(self, target: BatchTarget) -> bool:
        if target.activity_type_id not in self.catalog:
            return False
        try:
            definition = self.catalog.resolve(target.activity_type_id)
        except ConfigurationError:
            return False
        return definition.generation_type == GenerationType.CLEANING_GROUPS

    def _cleaning_draft(self, target: BatchTarget, snapshot: LedgerSnapshot, cycle_index: int) -> DraftProgram:
        if not self.groups:
            raise ConfigurationError(
                f"Activity {target.activity_type_id} rotates cleaning groups but none are defined"
            )
        refreshed = []
        for g in self.groups:
            seen = snapshot.group_last_assigned(g.group_id)
            if seen is not None and (g.last_assigned_date is None or seen > g.last_assigned_date):
                g = g.with_last_assigned(seen)
            refreshed.append(g)
        chosen = self.partitioner.next_turn(refreshed, cycle_index)
        return DraftProgram(
            target_date=target.target_date,
            activity_type_id=target.activity_type_id,
            generation_type=GenerationType.CLEANING_GROUPS,
            group_id=chosen.group_id,
            group_member_ids=chosen.member_ids,
            total_groups=len(self.groups),
        )

    def schedule_target(
        self,
        target: BatchTarget,
        snapshot: LedgerSnapshot,
        cycle_index: int = 0,
    ) -> Tuple[DraftProgram, List[UnfilledRole]]:
        """Draft one target against the given snapshot. Raises on failure."""
        on = coerce_date(target.target_date)
        if (target.activity_type_id, on) in self.published_targets:
            raise DuplicateTargetError(target.activity_type_id, on)
        definition = self.catalog.resolve(target.activity_type_id)
        if definition.generation_type == GenerationType.CLEANING_GROUPS:
            return self._cleaning_draft(target, snapshot, cycle_index), []
        return self.scheduler.assign(on, target.activity_type_id, self.roster, snapshot)

    def _await(self, future: Future, target: BatchTarget) -> BatchOutcome:
        timeout = self.cfg.timeouts.target_seconds
        try:
            program, unfilled = future.result(timeout=timeout)
        except FutureTimeout:
            future.cancel()
            error = SchedulingTimeoutError(
                f"Scheduling activity {target.activity_type_id} on {target.target_date} exceeded {timeout}s"
            )
            print(f"[ERROR] {target.target_date} (activity {target.activity_type_id}): {error}")
            return BatchOutcome.failure(target, error)
        except Exception as e:
            print(f"[ERROR] {target.target_date} (activity {target.activity_type_id}): {e}")
            return BatchOutcome.failure(target, e)

        if unfilled:
            roles = ", ".join(u.role_name for u in unfilled)
            print(f"[WARN] {target.target_date} (activity {target.activity_type_id}): unfilled roles: {roles}")
        return BatchOutcome.draft(target, program, unfilled)

    def run_batch(self, targets: Iterable[BatchTarget]) -> BatchResult:
        """
        Draft every target.

        Args:
            targets: (date, activity type) pairs in review order

        Returns:
            BatchResult with one outcome per target, same order
        """
        targets = list(targets)
        print(f"[INFO] Batch: drafting {len(targets)} target(s)")

        try:
            snapshot = self.take_snapshot()
        except SchedulingTimeoutError as e:
            print(f"[ERROR] Batch snapshot failed: {e}")
            return BatchResult([BatchOutcome.failure(t, e) for t in targets])

        outcomes: List[Optional[BatchOutcome]] = [None] * len(targets)
        pool = ThreadPoolExecutor(max_workers=self.cfg.batch.workers, thread_name_prefix="church-rota-batch")
        try:
            if self.cfg.batch.cross_date_fairness:
                for i, target in enumerate(targets):
                    outcome = self._await(pool.submit(self.schedule_target, target, snapshot, i), target)
                    outcomes[i] = outcome
                    if outcome.ok:
                        snapshot = snapshot.with_provisional(outcome.program)
            else:
                pending = {}
                group_snapshot = snapshot
                turn = 0
                for i, target in enumerate(targets):
                    if self._is_cleaning(target):
                        outcome = self._await(
                            pool.submit(self.schedule_target, target, group_snapshot, turn), target
                        )
                        outcomes[i] = outcome
                        turn += 1
                        if outcome.ok:
                            group_snapshot = group_snapshot.with_provisional(outcome.program)
                    else:
                        pending[i] = pool.submit(self.schedule_target, target, snapshot, i)
                for i, future in pending.items():
                    outcomes[i] = self._await(future, targets[i])
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        result = BatchResult([o for o in outcomes if o is not None])
        print(f"[OK] Batch finished: {len(result.succeeded)} draft(s), {len(result.failed)} failure(s)")
        return result

    def run_cleaning_batch(
        self,
        activity_type_id: int,
        dates: Sequence[date],
        groups: Sequence[CleaningGroup] | None = None,
    ) -> BatchResult:
        """Rotate cleaning groups over the given dates (optionally replacing the current groups)."""
        if groups is not None:
            self.groups = list(groups)
        targets = [BatchTarget(target_date=d, activity_type_id=activity_type_id) for d in dates]
        return self.run_batch(targets)

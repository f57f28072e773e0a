"""Deterministic rotation scheduler."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from church_rota.domain.types import AssignmentStrategy, Person
from church_rota.services.ledger import LedgerSnapshot
from church_rota.services.roster import Roster
from church_rota.services.scoring import CandidateScore, rank_candidates, score_candidates

from .base import BaseScheduler, coerce_date


class RotationScheduler(BaseScheduler):
    """
    Greedy, explainable role assignment.

    Each slot goes to the candidate who has waited longest since last
    serving that role; priority breaks ties, then person id. Within a batch,
    people already used by an earlier draft rank below everyone unused.
    Same inputs always give the same program.
    """

    strategy = AssignmentStrategy.DETERMINISTIC_ROTATION

    def select(
        self,
        pool: Sequence[Person],
        role_name: str,
        ledger: LedgerSnapshot,
    ) -> Tuple[Optional[Person], Optional[Person]]:
        ranked = rank_candidates(pool, role_name, ledger)
        chosen = ranked[0] if ranked else None
        backup = ranked[1] if len(ranked) > 1 else None
        return chosen, backup

    def explain(
        self,
        target_date,
        activity_type_id: int,
        role_name: str,
        roster: Roster,
        ledger: LedgerSnapshot,
    ) -> List[CandidateScore]:
        """Ranked candidates for one role, ignoring who else is in the program."""
        on = coerce_date(target_date)
        self.catalog.resolve(activity_type_id)
        pool = roster.candidates_for(role_name, on)
        return score_candidates(pool, role_name, ledger)

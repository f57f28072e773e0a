"""Manual random reassignment (the review screen's "assign at random")."""

from __future__ import annotations

import random
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from church_rota.domain.types import Assignment, AssignmentStrategy, DraftProgram, Person
from church_rota.errors import ConfigurationError
from church_rota.services.ledger import LedgerSnapshot
from church_rota.services.roster import Roster

from .base import BaseScheduler


class RandomScheduler(BaseScheduler):
    """Fills every slot with a uniformly random eligible candidate."""

    strategy = AssignmentStrategy.MANUAL_RANDOM

    def __init__(self, catalog, rng: random.Random | None = None):
        super().__init__(catalog)
        self.rng = rng or random.Random()

    def select(
        self,
        pool: Sequence[Person],
        role_name: str,
        ledger: LedgerSnapshot,
    ) -> Tuple[Optional[Person], Optional[Person]]:
        # Fisher-Yates over a stable ordering so a seeded rng is reproducible
        shuffled = sorted(pool, key=lambda p: p.person_id)
        self.rng.shuffle(shuffled)
        chosen = shuffled[0] if shuffled else None
        backup = shuffled[1] if len(shuffled) > 1 else None
        return chosen, backup


def manual_randomize(
    program: DraftProgram,
    roster: Roster,
    rng: random.Random | None = None,
    roles: Iterable[str] | None = None,
) -> DraftProgram:
    """
    Re-draw the people for some or all roles of a draft at random.

    Slots of roles not listed keep their current person, and nobody already
    kept in the program can be drawn again.

    Args:
        program: Draft to modify
        roster: Roster snapshot
        rng: Random source (seed it for reproducible draws)
        roles: Role names to redraw; None redraws every role

    Returns:
        New draft with MANUAL_RANDOM assignments for the redrawn slots
    """
    rng = rng or random.Random()
    present = {a.role_name for a in program.assignments}
    targets: Set[str] = set(roles) if roles is not None else set(present)
    unknown = sorted(targets - present)
    if unknown:
        raise ConfigurationError(f"Program has no role(s) {unknown}")

    used: Set[int] = {
        a.person_id for a in program.assignments if a.role_name not in targets and a.person_id is not None
    }
    out: List[Assignment] = []
    for a in program.assignments:
        if a.role_name not in targets:
            out.append(a)
            continue
        pool = sorted(
            roster.candidates_for(a.role_name, program.target_date, exclude=used),
            key=lambda p: p.person_id,
        )
        rng.shuffle(pool)
        chosen = pool[0] if pool else None
        if chosen is not None:
            used.add(chosen.person_id)
        out.append(
            Assignment(
                role_name=a.role_name,
                slot=a.slot,
                section_name=a.section_name,
                person_id=chosen.person_id if chosen else None,
                backup_person_id=pool[1].person_id if len(pool) > 1 else None,
                strategy=AssignmentStrategy.MANUAL_RANDOM,
                is_manual=True,
            )
        )
    return program.with_assignments(tuple(out))

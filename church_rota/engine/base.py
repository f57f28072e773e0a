"""Base scheduler interface that all assignment strategies implement."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional, Sequence, Set, Tuple

from church_rota.domain.types import (
    ActivityDefinition,
    Assignment,
    AssignmentStrategy,
    DraftProgram,
    GenerationType,
    Person,
    UnfilledRole,
)
from church_rota.errors import ConfigurationError
from church_rota.services.catalog import RoleCatalog
from church_rota.services.ledger import LedgerSnapshot
from church_rota.services.roster import Roster


def coerce_date(value) -> date:
    """Accept a date (or datetime, truncated); anything else is a configuration error."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise ConfigurationError(f"Invalid program date: {value!r}")


class BaseScheduler(ABC):
    """
    Abstract base class for assignment strategies.

    The base walks the activity's role slots in catalog order and never places
    a person twice; subclasses only decide which eligible candidate
    takes each slot.
    """

    strategy: AssignmentStrategy = AssignmentStrategy.DETERMINISTIC_ROTATION

    def __init__(self, catalog: RoleCatalog):
        self.catalog = catalog

    @abstractmethod
    def select(
        self,
        pool: Sequence[Person],
        role_name: str,
        ledger: LedgerSnapshot,
    ) -> Tuple[Optional[Person], Optional[Person]]:
        """
        Pick the person for one slot.

        Args:
            pool: Eligible candidates (qualified, available, not yet in the program)
            role_name: Role being filled
            ledger: Ledger snapshot for fairness lookups

        Returns:
            (chosen, backup); either may be None
        """
        pass

    def assign(
        self,
        target_date,
        activity_type_id: int,
        roster: Roster,
        ledger: LedgerSnapshot,
    ) -> Tuple[DraftProgram, List[UnfilledRole]]:
        """
        Build a draft program for one (date, activity type).

        Args:
            target_date: Program date
            activity_type_id: Activity type to resolve in the catalog
            roster: Roster snapshot
            ledger: Ledger snapshot

        Returns:
            (DRAFT program, roles that could not be fully staffed)

        Raises:
            ConfigurationError: Unknown or malformed activity type, invalid date
        """
        on = coerce_date(target_date)
        definition = self.catalog.resolve(activity_type_id)
        if definition.generation_type != GenerationType.STANDARD:
            raise ConfigurationError(
                f"Activity {activity_type_id} ('{definition.name}') is scheduled by cleaning groups, not roles"
            )
        return self._fill(on, definition, roster, ledger)

    def _fill(
        self,
        on: date,
        definition: ActivityDefinition,
        roster: Roster,
        ledger: LedgerSnapshot,
    ) -> Tuple[DraftProgram, List[UnfilledRole]]:
        used: Set[int] = set()
        assignments: List[Assignment] = []
        unfilled: List[UnfilledRole] = []

        for req in definition.ordered_requirements():
            filled = 0
            reason = None
            for slot in range(req.count):
                pool = roster.candidates_for(req.role_name, on, exclude=used)
                chosen, backup = self.select(pool, req.role_name, ledger) if pool else (None, None)
                if chosen is None:
                    reason = reason or roster.unavailable_reason(req.role_name, on)
                else:
                    used.add(chosen.person_id)
                    filled += 1
                assignments.append(
                    Assignment(
                        role_name=req.role_name,
                        slot=slot,
                        section_name=req.section,
                        person_id=chosen.person_id if chosen else None,
                        backup_person_id=backup.person_id if backup else None,
                        strategy=self.strategy,
                        is_manual=self.strategy != AssignmentStrategy.DETERMINISTIC_ROTATION,
                    )
                )
            if filled < req.count:
                unfilled.append(
                    UnfilledRole(
                        role_name=req.role_name,
                        needed=req.count,
                        filled=filled,
                        section_name=req.section,
                        required=req.required,
                        reason=reason or "no eligible candidates",
                    )
                )

        draft = DraftProgram(
            target_date=on,
            activity_type_id=definition.activity_type_id,
            assignments=tuple(assignments),
        )
        return draft, unfilled

    def get_strategy_name(self) -> str:
        return self.strategy.value

"""Fairness ranking for role candidates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Tuple

from church_rota.domain.types import Person
from church_rota.services.ledger import LedgerSnapshot


@dataclass(frozen=True)
class CandidateScore:
    """Ranking components for one candidate, in the order they are compared."""

    person_id: int
    full_name: str
    batch_uses: int
    last_served: Optional[date]
    priority: int
    participations: int
    rank: int = 0

    @property
    def never_served(self) -> bool:
        return self.last_served is None

    def days_since_last(self, on: date) -> Optional[int]:
        if self.last_served is None:
            return None
        return (on - self.last_served).days

    def to_dict(self, on: date | None = None) -> dict:
        out = {
            "rank": self.rank,
            "person_id": self.person_id,
            "full_name": self.full_name,
            "batch_uses": self.batch_uses,
            "last_served": self.last_served.isoformat() if self.last_served else None,
            "never_served": self.never_served,
            "priority": self.priority,
            "participations": self.participations,
        }
        if on is not None:
            out["days_since_last"] = self.days_since_last(on)
        return out


def rank_key(person: Person, role_name: str, ledger: LedgerSnapshot) -> Tuple:
    """
    Sort key for a candidate; lower sorts first.

    Args:
        person: Candidate
        role_name: Role being filled
        ledger: Ledger snapshot (with any provisional batch drafts)

    Returns:
        (batch uses, served-before flag, last served date, -priority, person id)
    """
    last = ledger.last_served(person.person_id, role_name)
    return (
        ledger.batch_uses(person.person_id),
        0 if last is None else 1,
        last or date.min,
        -person.priority,
        person.person_id,
    )


def rank_candidates(candidates: Sequence[Person], role_name: str, ledger: LedgerSnapshot) -> List[Person]:
    """Order candidates best-first."""
    return sorted(candidates, key=lambda p: rank_key(p, role_name, ledger))


def score_candidates(candidates: Sequence[Person], role_name: str, ledger: LedgerSnapshot) -> List[CandidateScore]:
    """Ranked candidates with the components that decided their order."""
    ranked = rank_candidates(candidates, role_name, ledger)
    return [
        CandidateScore(
            person_id=p.person_id,
            full_name=p.full_name,
            batch_uses=ledger.batch_uses(p.person_id),
            last_served=ledger.last_served(p.person_id, role_name),
            priority=p.priority,
            participations=ledger.participation_count(p.person_id),
            rank=i + 1,
        )
        for i, p in enumerate(ranked)
    ]

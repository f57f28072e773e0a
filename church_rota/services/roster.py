"""Read-only roster snapshot."""

from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional

from church_rota.domain.types import Person
from church_rota.errors import ConfigurationError
from church_rota.services.constraints import can_assign_person


class Roster:
    """
    Snapshot of the people the scheduler may draw from.

    People are kept in person-id order so every iteration over the roster is
    deterministic.
    """

    def __init__(self, people: Iterable[Person] = ()):
        by_id: Dict[int, Person] = {}
        for person in people:
            if person.person_id in by_id:
                raise ConfigurationError(f"Duplicate person id {person.person_id} in roster")
            by_id[person.person_id] = person
        self._people: List[Person] = [by_id[pid] for pid in sorted(by_id)]
        self._by_id = by_id

    def __len__(self) -> int:
        return len(self._people)

    def __iter__(self) -> Iterator[Person]:
        return iter(self._people)

    def __contains__(self, person_id: object) -> bool:
        return person_id in self._by_id

    def get(self, person_id: int) -> Optional[Person]:
        return self._by_id.get(person_id)

    def active_people(self) -> List[Person]:
        return [p for p in self._people if p.active]

    def qualified_for(self, role_name: str, on: Optional[date] = None) -> List[Person]:
        """Active people qualified for the role (availability not checked)."""
        return [p for p in self._people if p.active and p.is_qualified(role_name, on)]

    def candidates_for(self, role_name: str, on: date, exclude: Iterable[int] = ()) -> List[Person]:
        """Active, qualified, available people not in `exclude`."""
        excluded = set(exclude)
        return [p for p in self._people if can_assign_person(p, role_name, on, excluded)]

    def unavailable_reason(self, role_name: str, on: date) -> str:
        """Explain why a role has no candidates on a date."""
        qualified = self.qualified_for(role_name, on)
        if not qualified:
            return f"no active people qualified for {role_name}"
        if not any(p.is_available_on(on) for p in qualified):
            return f"all {len(qualified)} qualified people unavailable on {on.isoformat()}"
        return f"all qualified people already assigned in this program"

"""Role catalog: activity type -> ordered role requirements."""

from __future__ import annotations

from typing import Dict, Iterable, List

from church_rota.domain.types import ActivityDefinition, GenerationType, RoleRequirement
from church_rota.errors import ConfigurationError


MAX_PEOPLE_PER_ROLE = 10


def validate_definition(definition: ActivityDefinition) -> None:
    """
    Check an activity definition is usable by the scheduler.

    Raises:
        ConfigurationError: If no roles are defined, counts are out of range,
            or a role name repeats
    """
    if definition.generation_type == GenerationType.CLEANING_GROUPS:
        return
    if not definition.requirements:
        raise ConfigurationError(
            f"Activity {definition.activity_type_id} ('{definition.name}') defines no roles"
        )
    seen = set()
    for req in definition.requirements:
        if not req.role_name or not req.role_name.strip():
            raise ConfigurationError(f"Activity {definition.activity_type_id} has a role with an empty name")
        if req.role_name in seen:
            raise ConfigurationError(
                f"Activity {definition.activity_type_id} lists role '{req.role_name}' more than once"
            )
        seen.add(req.role_name)
        if not 1 <= req.count <= MAX_PEOPLE_PER_ROLE:
            raise ConfigurationError(
                f"Role '{req.role_name}' needs {req.count} people; allowed 1-{MAX_PEOPLE_PER_ROLE}"
            )


class RoleCatalog:
    """Lookup of activity definitions by activity type id."""

    def __init__(self, definitions: Iterable[ActivityDefinition] = ()):
        self._definitions: Dict[int, ActivityDefinition] = {}
        for definition in definitions:
            self._definitions[definition.activity_type_id] = definition

    def __contains__(self, activity_type_id: object) -> bool:
        return activity_type_id in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def add(self, definition: ActivityDefinition) -> None:
        self._definitions[definition.activity_type_id] = definition

    def resolve(self, activity_type_id: int) -> ActivityDefinition:
        definition = self._definitions.get(activity_type_id)
        if definition is None:
            raise ConfigurationError(f"Unknown activity type {activity_type_id}")
        validate_definition(definition)
        return definition

    def ordered_roles(self, activity_type_id: int) -> List[RoleRequirement]:
        return self.resolve(activity_type_id).ordered_requirements()

    def all(self) -> List[ActivityDefinition]:
        return [self._definitions[k] for k in sorted(self._definitions)]

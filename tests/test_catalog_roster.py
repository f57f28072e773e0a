"""Tests for the role catalog and roster snapshot."""

from datetime import date

import pytest

from church_rota.domain.types import (
    ActivityDefinition,
    BlackoutRange,
    GenerationType,
    Person,
    Qualification,
    RoleRequirement,
)
from church_rota.errors import ConfigurationError
from church_rota.services.catalog import MAX_PEOPLE_PER_ROLE, RoleCatalog, validate_definition
from church_rota.services.roster import Roster


SUNDAY = date(2024, 3, 10)


def test_catalog_orders_required_roles_first():
    catalog = RoleCatalog([
        ActivityDefinition(1, "Service", requirements=(
            RoleRequirement("Announcements", display_order=1, required=False),
            RoleRequirement("Usher", display_order=3),
            RoleRequirement("Preacher", display_order=2),
            RoleRequirement("Offering", display_order=2),
        )),
    ])

    assert [r.role_name for r in catalog.ordered_roles(1)] == ["Preacher", "Offering", "Usher", "Announcements"]
    assert 1 in catalog
    assert len(catalog) == 1


@pytest.mark.parametrize("requirements", [
    (),
    (RoleRequirement(""),),
    (RoleRequirement("Usher"), RoleRequirement("Usher")),
    (RoleRequirement("Usher", count=0),),
    (RoleRequirement("Usher", count=MAX_PEOPLE_PER_ROLE + 1),),
])
def test_invalid_definitions_rejected(requirements):
    with pytest.raises(ConfigurationError):
        validate_definition(ActivityDefinition(1, "Broken", requirements=requirements))


def test_cleaning_activity_needs_no_roles():
    validate_definition(ActivityDefinition(3, "Cleaning", generation_type=GenerationType.CLEANING_GROUPS))


def test_unknown_activity():
    with pytest.raises(ConfigurationError):
        RoleCatalog().resolve(7)


def test_catalog_add_replaces_definition():
    catalog = RoleCatalog([ActivityDefinition(1, "Old", requirements=(RoleRequirement("Usher"),))])
    catalog.add(ActivityDefinition(1, "New", requirements=(RoleRequirement("Usher"),), version=2))
    assert catalog.resolve(1).name == "New"
    assert [d.version for d in catalog.all()] == [2]


def test_roster_is_sorted_and_rejects_duplicate_ids():
    roster = Roster([Person(3, "C"), Person(1, "A"), Person(2, "B")])
    assert [p.person_id for p in roster] == [1, 2, 3]

    with pytest.raises(ConfigurationError):
        Roster([Person(1, "A"), Person(1, "A again")])


def test_candidates_for_filters_and_excludes():
    usher = (Qualification("Usher"),)
    roster = Roster([
        Person(1, "Available", qualifications=usher),
        Person(2, "Away", qualifications=usher, blackouts=(BlackoutRange(date(2024, 3, 9), date(2024, 3, 11)),)),
        Person(3, "Preacher", qualifications=(Qualification("Preacher"),)),
        Person(4, "Also available", qualifications=usher),
    ])

    assert [p.person_id for p in roster.candidates_for("Usher", SUNDAY)] == [1, 4]
    assert [p.person_id for p in roster.candidates_for("Usher", SUNDAY, exclude={1})] == [4]
    assert [p.person_id for p in roster.qualified_for("Usher")] == [1, 2, 4]


def test_unavailable_reason():
    usher = (Qualification("Usher"),)
    roster = Roster([
        Person(1, "Away", qualifications=usher, excluded_weekdays=frozenset({6})),
    ])

    assert "no active people qualified" in roster.unavailable_reason("Organist", SUNDAY)
    assert "unavailable on 2024-03-10" in roster.unavailable_reason("Usher", SUNDAY)
    assert "already assigned" in roster.unavailable_reason("Usher", date(2024, 3, 11))

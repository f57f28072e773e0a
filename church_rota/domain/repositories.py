"""Repository classes for data access."""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from church_rota.errors import DuplicateTargetError, ProgramNotFoundError

from . import types
from .models import (
    ActivityType,
    AssignmentRecord,
    Blackout,
    CleaningGroupMember,
    CleaningGroupRow,
    GroupTurnRecord,
    Person,
    PersonRole,
    Program,
    ProgramAssignment,
    RoleRequirement,
)


def _parse_weekdays(raw: Optional[str]) -> frozenset:
    if not raw:
        return frozenset()
    return frozenset(int(x) for x in str(raw).split(",") if x.strip() != "")


def _format_weekdays(days: Iterable[int]) -> str:
    return ",".join(str(d) for d in sorted(set(days)))


def _parse_ids(raw: Optional[str]) -> Tuple[int, ...]:
    if not raw:
        return ()
    return tuple(int(x) for x in raw.split(",") if x.strip())


class PersonRepository:
    """Repository for membership data (read side of the roster)."""

    @staticmethod
    def get_all(session: Session) -> List[Person]:
        """Get all persons."""
        return session.query(Person).order_by(Person.person_id).all()

    @staticmethod
    def get_by_id(session: Session, person_id: int) -> Optional[Person]:
        """Get person by ID."""
        return session.query(Person).filter(Person.person_id == person_id).first()

    @staticmethod
    def get_by_role(session: Session, role_name: str) -> List[Person]:
        """Get all persons qualified for a role."""
        return (
            session.query(Person)
            .join(PersonRole)
            .filter(PersonRole.role_name == role_name)
            .order_by(Person.person_id)
            .all()
        )

    @staticmethod
    def bulk_create(session: Session, persons: List[Person]) -> None:
        """Create multiple persons."""
        session.add_all(persons)
        session.commit()

    @staticmethod
    def to_snapshot(person: Person) -> types.Person:
        return types.Person(
            person_id=person.person_id,
            full_name=person.full_name,
            qualifications=tuple(
                types.Qualification(role_name=q.role_name, qualified_since=q.qualified_since)
                for q in person.qualifications
            ),
            priority=person.priority if person.priority is not None else 1,
            blackouts=tuple(
                types.BlackoutRange(start=b.start_date, end=b.end_date, reason=b.reason)
                for b in person.blackouts
            ),
            excluded_weekdays=_parse_weekdays(person.excluded_weekdays),
            active=bool(person.active),
        )

    @staticmethod
    def load_roster(session: Session):
        """Read-only roster snapshot of every person."""
        from church_rota.services.roster import Roster

        return Roster(PersonRepository.to_snapshot(p) for p in PersonRepository.get_all(session))

    @staticmethod
    def from_snapshot(person: types.Person, phone: str | None = None) -> Person:
        return Person(
            person_id=person.person_id,
            full_name=person.full_name,
            phone=phone,
            priority=person.priority,
            active=person.active,
            excluded_weekdays=_format_weekdays(person.excluded_weekdays) or None,
            qualifications=[
                PersonRole(role_name=q.role_name, qualified_since=q.qualified_since) for q in person.qualifications
            ],
            blackouts=[
                Blackout(start_date=b.start, end_date=b.end, reason=b.reason) for b in person.blackouts
            ],
        )


class ActivityTypeRepository:
    """Repository for activity configuration (read side of the role catalog)."""

    @staticmethod
    def get_all(session: Session) -> List[ActivityType]:
        """Get all activity types."""
        return session.query(ActivityType).order_by(ActivityType.activity_type_id).all()

    @staticmethod
    def get_by_id(session: Session, activity_type_id: int) -> Optional[ActivityType]:
        """Get activity type by ID."""
        return (
            session.query(ActivityType)
            .filter(ActivityType.activity_type_id == activity_type_id)
            .first()
        )

    @staticmethod
    def create(session: Session, activity: ActivityType) -> ActivityType:
        """Create a new activity type."""
        session.add(activity)
        session.commit()
        session.refresh(activity)
        return activity

    @staticmethod
    def to_definition(activity: ActivityType) -> types.ActivityDefinition:
        return types.ActivityDefinition(
            activity_type_id=activity.activity_type_id,
            name=activity.name,
            requirements=tuple(
                types.RoleRequirement(
                    role_name=r.role_name,
                    count=r.count,
                    display_order=r.display_order,
                    section_name=r.section_name,
                    required=bool(r.is_required),
                )
                for r in activity.requirements
            ),
            days_of_week=_parse_weekdays(activity.days_of_week),
            default_time=activity.default_time or "10:00",
            generation_type=types.GenerationType(activity.generation_type or "STANDARD"),
            version=activity.version or 1,
        )

    @staticmethod
    def from_definition(definition: types.ActivityDefinition) -> ActivityType:
        return ActivityType(
            activity_type_id=definition.activity_type_id,
            name=definition.name,
            days_of_week=_format_weekdays(definition.days_of_week) or None,
            default_time=definition.default_time,
            generation_type=definition.generation_type.value,
            version=definition.version,
            requirements=[
                RoleRequirement(
                    role_name=r.role_name,
                    count=r.count,
                    display_order=r.display_order,
                    section_name=r.section_name,
                    is_required=r.required,
                )
                for r in definition.requirements
            ],
        )

    @staticmethod
    def load_catalog(session: Session):
        """Role catalog of all active activity types."""
        from church_rota.services.catalog import RoleCatalog

        return RoleCatalog(
            ActivityTypeRepository.to_definition(a)
            for a in ActivityTypeRepository.get_all(session)
            if a.active
        )


class LedgerRepository:
    """Repository for the append-only assignment history."""

    @staticmethod
    def get_all(session: Session) -> List[AssignmentRecord]:
        """Get all assignment records in append order."""
        return session.query(AssignmentRecord).order_by(AssignmentRecord.id).all()

    @staticmethod
    def append(session: Session, entries: Sequence) -> None:
        """Add ledger entries to the session (caller commits)."""
        from church_rota.services.ledger import GroupTurnEntry

        for e in entries:
            if isinstance(e, GroupTurnEntry):
                session.add(
                    GroupTurnRecord(
                        group_id=e.group_id,
                        activity_type_id=e.activity_type_id,
                        record_date=e.record_date,
                        program_id=e.program_id,
                        kind=e.kind.value,
                        created_at=e.created_at,
                    )
                )
            else:
                session.add(
                    AssignmentRecord(
                        person_id=e.person_id,
                        role_name=e.role_name,
                        activity_type_id=e.activity_type_id,
                        record_date=e.record_date,
                        program_id=e.program_id,
                        kind=e.kind.value,
                        created_at=e.created_at,
                    )
                )

    @staticmethod
    def load_ledger(session: Session, lock_timeout: float = 5.0):
        """Rebuild the in-memory ledger from the stored history."""
        from church_rota.services.ledger import AssignmentLedger, GroupTurnEntry, LedgerEntry

        entries = [
            LedgerEntry(
                person_id=r.person_id,
                role_name=r.role_name,
                activity_type_id=r.activity_type_id,
                record_date=r.record_date,
                program_id=r.program_id,
                kind=types.RecordKind(r.kind),
                created_at=r.created_at,
            )
            for r in LedgerRepository.get_all(session)
        ]
        group_entries = [
            GroupTurnEntry(
                group_id=r.group_id,
                activity_type_id=r.activity_type_id,
                record_date=r.record_date,
                program_id=r.program_id,
                kind=types.RecordKind(r.kind),
                created_at=r.created_at,
            )
            for r in session.query(GroupTurnRecord).order_by(GroupTurnRecord.id).all()
        ]
        return AssignmentLedger(entries, group_entries, lock_timeout=lock_timeout)


class CleaningGroupRepository:
    """Repository for persisted cleaning groups."""

    @staticmethod
    def load_groups(session: Session) -> List[types.CleaningGroup]:
        rows = session.query(CleaningGroupRow).order_by(CleaningGroupRow.position).all()
        return [
            types.CleaningGroup(
                group_id=row.group_id,
                member_ids=tuple(m.person_id for m in row.members),
                position=row.position,
                last_assigned_date=row.last_assigned_date,
            )
            for row in rows
        ]

    @staticmethod
    def replace_groups(session: Session, groups: Sequence[types.CleaningGroup]) -> None:
        """Store a new partition, replacing the previous one."""
        for row in session.query(CleaningGroupRow).all():
            session.delete(row)  # members go with it (delete-orphan)
        session.flush()
        for g in groups:
            session.add(
                CleaningGroupRow(
                    group_id=g.group_id,
                    position=g.position,
                    last_assigned_date=g.last_assigned_date,
                    members=[
                        CleaningGroupMember(person_id=pid, position=i) for i, pid in enumerate(g.member_ids)
                    ],
                )
            )
        session.commit()

    @staticmethod
    def mark_assigned(session: Session, group_id: int, on: date) -> None:
        row = session.get(CleaningGroupRow, group_id)
        if row is not None and (row.last_assigned_date is None or on > row.last_assigned_date):
            row.last_assigned_date = on

    @staticmethod
    def set_last_assigned(session: Session, group_id: int, on: Optional[date]) -> None:
        """Overwrite a group's last turn (after a cancelled turn is tombstoned)."""
        row = session.get(CleaningGroupRow, group_id)
        if row is not None:
            row.last_assigned_date = on
            session.commit()


class ProgramRepository:
    """
    Repository for programs. The only writer of committed state.

    Uniqueness of PUBLISHED programs per (activity type, date) is enforced
    here and again by a partial unique index.
    """

    @staticmethod
    def get_all(session: Session, status: str | None = None) -> List[Program]:
        """Get all programs, optionally filtered by status."""
        query = session.query(Program)
        if status:
            query = query.filter(Program.status == status)
        return query.order_by(Program.program_date, Program.activity_type_id, Program.id).all()

    @staticmethod
    def get_by_id(session: Session, program_id: int) -> Optional[Program]:
        """Get program by ID."""
        return session.query(Program).filter(Program.id == program_id).first()

    @staticmethod
    def require(session: Session, program_id: int) -> Program:
        program = ProgramRepository.get_by_id(session, program_id)
        if program is None:
            raise ProgramNotFoundError(f"Program {program_id} not found")
        return program

    @staticmethod
    def find_published(session: Session, activity_type_id: int, on: date) -> Optional[Program]:
        return (
            session.query(Program)
            .filter(
                Program.activity_type_id == activity_type_id,
                Program.program_date == on,
                Program.status == types.ProgramStatus.PUBLISHED.value,
            )
            .first()
        )

    @staticmethod
    def published_targets(session: Session, targets: Iterable[types.BatchTarget]) -> Set[Tuple[int, date]]:
        """The subset of targets that already have a published program."""
        wanted = {t.key for t in targets}
        if not wanted:
            return set()
        rows = (
            session.query(Program.activity_type_id, Program.program_date)
            .filter(
                Program.status == types.ProgramStatus.PUBLISHED.value,
                Program.program_date.in_(sorted({d for _, d in wanted})),
            )
            .all()
        )
        return {(a, d) for a, d in rows if (a, d) in wanted}

    @staticmethod
    def to_draft(program: Program) -> types.DraftProgram:
        return types.DraftProgram(
            target_date=program.program_date,
            activity_type_id=program.activity_type_id,
            assignments=tuple(
                types.Assignment(
                    role_name=a.role_name,
                    slot=a.slot,
                    section_name=a.section_name,
                    person_id=a.person_id,
                    backup_person_id=a.backup_person_id,
                    strategy=types.AssignmentStrategy(a.strategy),
                    is_manual=bool(a.is_manual),
                )
                for a in program.assignments
            ),
            status=types.ProgramStatus(program.status),
            program_id=program.id,
            generation_type=types.GenerationType(program.generation_type),
            group_id=program.assigned_group_id,
            group_member_ids=_parse_ids(program.group_member_ids),
            total_groups=program.total_groups,
        )

    @staticmethod
    def save_draft(session: Session, draft: types.DraftProgram, notes: str | None = None) -> types.DraftProgram:
        """Persist a generated draft and return it with its new id."""
        program = Program(
            activity_type_id=draft.activity_type_id,
            program_date=draft.target_date,
            status=types.ProgramStatus.DRAFT.value,
            generation_type=draft.generation_type.value,
            assigned_group_id=draft.group_id,
            total_groups=draft.total_groups,
            group_member_ids=",".join(str(pid) for pid in draft.group_member_ids) or None,
            notes=notes,
            assignments=[
                ProgramAssignment(
                    role_name=a.role_name,
                    slot=a.slot,
                    section_name=a.section_name,
                    person_id=a.person_id,
                    backup_person_id=a.backup_person_id,
                    strategy=a.strategy.value,
                    is_manual=a.is_manual,
                )
                for a in draft.assignments
            ],
        )
        session.add(program)
        session.commit()
        return ProgramRepository.to_draft(program)

    @staticmethod
    def update_assignments(session: Session, program: Program, draft: types.DraftProgram) -> types.DraftProgram:
        """Write the draft's slots back onto an existing program row."""
        rows = {(a.role_name, a.slot): a for a in program.assignments}
        for a in draft.assignments:
            row = rows[(a.role_name, a.slot)]
            row.person_id = a.person_id
            row.backup_person_id = a.backup_person_id
            row.strategy = a.strategy.value
            row.is_manual = a.is_manual
        session.commit()
        return ProgramRepository.to_draft(program)

    @staticmethod
    def publish(session: Session, program: Program, ledger_entries: Sequence = ()) -> None:
        """
        Mark a program PUBLISHED and store its ledger entries in one transaction.

        Raises:
            DuplicateTargetError: If another program for the target is already published
        """
        existing = ProgramRepository.find_published(session, program.activity_type_id, program.program_date)
        if existing is not None:
            raise DuplicateTargetError(program.activity_type_id, program.program_date)

        program.status = types.ProgramStatus.PUBLISHED.value
        program.published_at = datetime.utcnow()
        LedgerRepository.append(session, ledger_entries)
        if program.generation_type == types.GenerationType.CLEANING_GROUPS.value and program.assigned_group_id:
            CleaningGroupRepository.mark_assigned(session, program.assigned_group_id, program.program_date)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise DuplicateTargetError(program.activity_type_id, program.program_date) from e

    @staticmethod
    def cancel(session: Session, program: Program, ledger_entries: Sequence = ()) -> None:
        """Mark a program CANCELLED, storing compensating ledger entries."""
        program.status = types.ProgramStatus.CANCELLED.value
        LedgerRepository.append(session, ledger_entries)
        session.commit()

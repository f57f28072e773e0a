"""SQLAlchemy models for the church rota system."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Person(Base):
    """Congregation member as supplied by the membership service."""

    __tablename__ = "persons"

    person_id = Column(Integer, primary_key=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    priority = Column(Integer, nullable=False, default=1)  # 1-10, higher preferred on ties
    active = Column(Boolean, nullable=False, default=True)
    excluded_weekdays = Column(String(20), nullable=True)  # e.g. "2,6" (0=Monday)

    # Relationships
    qualifications = relationship(
        "PersonRole", back_populates="person", cascade="all, delete-orphan", order_by="PersonRole.role_name"
    )
    blackouts = relationship(
        "Blackout", back_populates="person", cascade="all, delete-orphan", order_by="Blackout.start_date"
    )

    def __repr__(self) -> str:
        return f"<Person(id={self.person_id}, name='{self.full_name}', priority={self.priority}, active={self.active})>"


class PersonRole(Base):
    """A role a person is qualified to serve."""

    __tablename__ = "person_roles"
    __table_args__ = (UniqueConstraint("person_id", "role_name", name="uq_person_role"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    person_id = Column(Integer, ForeignKey("persons.person_id"), nullable=False, index=True)
    role_name = Column(String(100), nullable=False, index=True)
    qualified_since = Column(Date, nullable=True)

    person = relationship("Person", back_populates="qualifications")

    def __repr__(self) -> str:
        return f"<PersonRole(person={self.person_id}, role='{self.role_name}')>"


class Blackout(Base):
    """Inclusive date range during which a person is unavailable."""

    __tablename__ = "blackouts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    person_id = Column(Integer, ForeignKey("persons.person_id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String(200), nullable=True)

    person = relationship("Person", back_populates="blackouts")

    def __repr__(self) -> str:
        return f"<Blackout(person={self.person_id}, {self.start_date}..{self.end_date})>"


class ActivityType(Base):
    """Recurring activity (e.g. Sunday Service) with its role requirements."""

    __tablename__ = "activity_types"

    activity_type_id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    days_of_week = Column(String(20), nullable=True)  # e.g. "6" for Sunday (0=Monday)
    default_time = Column(String(5), nullable=False, default="10:00")
    generation_type = Column(String(20), nullable=False, default="STANDARD")
    version = Column(Integer, nullable=False, default=1)
    active = Column(Boolean, nullable=False, default=True)

    requirements = relationship(
        "RoleRequirement",
        back_populates="activity_type",
        cascade="all, delete-orphan",
        order_by="RoleRequirement.display_order",
    )

    def __repr__(self) -> str:
        return f"<ActivityType(id={self.activity_type_id}, name='{self.name}', v{self.version})>"


class RoleRequirement(Base):
    """One role an activity type needs filled."""

    __tablename__ = "role_requirements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    activity_type_id = Column(Integer, ForeignKey("activity_types.activity_type_id"), nullable=False, index=True)
    role_name = Column(String(100), nullable=False)
    count = Column(Integer, nullable=False, default=1)
    display_order = Column(Integer, nullable=False, default=1)
    section_name = Column(String(100), nullable=True)
    is_required = Column(Boolean, nullable=False, default=True)

    activity_type = relationship("ActivityType", back_populates="requirements")

    def __repr__(self) -> str:
        return f"<RoleRequirement(activity={self.activity_type_id}, role='{self.role_name}', count={self.count})>"


class Program(Base):
    """Generated program for one (activity type, date)."""

    __tablename__ = "programs"
    __table_args__ = (
        # Only one PUBLISHED program per target; drafts may repeat
        Index(
            "uq_published_program_target",
            "activity_type_id",
            "program_date",
            unique=True,
            sqlite_where=text("status = 'PUBLISHED'"),
            postgresql_where=text("status = 'PUBLISHED'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    activity_type_id = Column(Integer, ForeignKey("activity_types.activity_type_id"), nullable=False, index=True)
    program_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="DRAFT")  # DRAFT, PUBLISHED, CANCELLED
    generation_type = Column(String(20), nullable=False, default="STANDARD")

    # Cleaning-group programs
    assigned_group_id = Column(Integer, nullable=True)
    total_groups = Column(Integer, nullable=True)
    group_member_ids = Column(Text, nullable=True)  # comma-separated snapshot of the group

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    published_at = Column(DateTime, nullable=True)

    assignments = relationship(
        "ProgramAssignment",
        back_populates="program",
        cascade="all, delete-orphan",
        order_by="ProgramAssignment.id",
    )

    def __repr__(self) -> str:
        return f"<Program(id={self.id}, activity={self.activity_type_id}, date={self.program_date}, status={self.status})>"


class ProgramAssignment(Base):
    """One role slot of a program."""

    __tablename__ = "program_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    program_id = Column(Integer, ForeignKey("programs.id"), nullable=False, index=True)
    role_name = Column(String(100), nullable=False)
    slot = Column(Integer, nullable=False, default=0)
    section_name = Column(String(100), nullable=True)
    person_id = Column(Integer, ForeignKey("persons.person_id"), nullable=True)  # NULL = unfilled
    backup_person_id = Column(Integer, nullable=True)
    strategy = Column(String(30), nullable=False, default="DETERMINISTIC_ROTATION")
    is_manual = Column(Boolean, nullable=False, default=False)

    program = relationship("Program", back_populates="assignments")

    def __repr__(self) -> str:
        return f"<ProgramAssignment(program={self.program_id}, role='{self.role_name}', person={self.person_id})>"


class AssignmentRecord(Base):
    """Append-only ledger row: who served which role when."""

    __tablename__ = "assignment_records"
    __table_args__ = (Index("ix_assignment_records_person_role", "person_id", "role_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    person_id = Column(Integer, nullable=False)
    role_name = Column(String(100), nullable=False)
    activity_type_id = Column(Integer, nullable=False)
    record_date = Column(Date, nullable=False)
    program_id = Column(Integer, nullable=True)
    kind = Column(String(10), nullable=False, default="COMMIT")  # COMMIT, TOMBSTONE
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<AssignmentRecord(person={self.person_id}, role='{self.role_name}', date={self.record_date}, kind={self.kind})>"


class GroupTurnRecord(Base):
    """Append-only ledger row: which cleaning group took a turn when."""

    __tablename__ = "group_turn_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, nullable=False, index=True)
    activity_type_id = Column(Integer, nullable=False)
    record_date = Column(Date, nullable=False)
    program_id = Column(Integer, nullable=True)
    kind = Column(String(10), nullable=False, default="COMMIT")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<GroupTurnRecord(group={self.group_id}, date={self.record_date}, kind={self.kind})>"


class CleaningGroupRow(Base):
    """Persisted cleaning group."""

    __tablename__ = "cleaning_groups"

    group_id = Column(Integer, primary_key=True)
    position = Column(Integer, nullable=False)
    last_assigned_date = Column(Date, nullable=True)

    members = relationship(
        "CleaningGroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="CleaningGroupMember.position",
    )

    def __repr__(self) -> str:
        return f"<CleaningGroup(id={self.group_id}, position={self.position}, size={len(self.members)})>"


class CleaningGroupMember(Base):
    __tablename__ = "cleaning_group_members"
    __table_args__ = (UniqueConstraint("person_id", name="uq_cleaning_member_person"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey("cleaning_groups.group_id"), nullable=False, index=True)
    person_id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    group = relationship("CleaningGroupRow", back_populates="members")

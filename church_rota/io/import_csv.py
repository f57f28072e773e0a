"""CSV import utilities to load data into database."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from church_rota.domain.models import (
    ActivityType,
    AssignmentRecord,
    Blackout,
    Person,
    PersonRole,
    RoleRequirement,
)
from church_rota.domain.requests import parse_date
from church_rota.errors import ConfigurationError


TRUE_VALUES = ["TRUE", "T", "1", "YES", "Y"]


def _text(value) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def _flag(value, default: bool = True) -> bool:
    text = _text(value)
    if text is None:
        return default
    return text.upper() in TRUE_VALUES


def _weekdays(value) -> Optional[str]:
    """Normalize "6", "2;6", "2,6" or 6.0 to "2,6"."""
    text = _text(value)
    if text is None:
        return None
    days = sorted({int(float(x)) for x in text.replace(";", ",").split(",") if x.strip()})
    for d in days:
        if not 0 <= d <= 6:
            raise ConfigurationError(f"Weekday {d} out of range 0-6")
    return ",".join(str(d) for d in days)


def parse_roles(value) -> List[PersonRole]:
    """
    Parse a roles cell.

    Format: "Role[:YYYY-MM-DD];Role..." where the optional date is when the
    person became qualified.
    """
    text = _text(value)
    if text is None:
        return []
    roles = []
    for part in text.split(";"):
        part = part.strip()
        if not part:
            continue
        name, _, since = part.partition(":")
        roles.append(
            PersonRole(
                role_name=name.strip(),
                qualified_since=parse_date(since, "qualified_since") if since.strip() else None,
            )
        )
    return roles


def parse_blackouts(value) -> List[Blackout]:
    """Parse a blackouts cell: "YYYY-MM-DD..YYYY-MM-DD[;...]" (a single date blocks one day)."""
    text = _text(value)
    if text is None:
        return []
    blackouts = []
    for part in text.split(";"):
        part = part.strip()
        if not part:
            continue
        start, _, end = part.partition("..")
        start_date = parse_date(start, "blackout start")
        end_date = parse_date(end, "blackout end") if end.strip() else start_date
        if end_date < start_date:
            raise ConfigurationError(f"Blackout {part!r} ends before it starts")
        blackouts.append(Blackout(start_date=start_date, end_date=end_date))
    return blackouts


def import_persons_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import persons from CSV into database.

    Args:
        session: Database session
        csv_path: Path to persons CSV (person_id, full_name, roles, priority,
            active, blackouts, excluded_weekdays, phone)

    Returns:
        Number of persons imported
    """
    df = pd.read_csv(csv_path, dtype={"roles": str, "blackouts": str, "excluded_weekdays": str})

    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()

    persons = []
    for _, row in df.iterrows():
        person = Person(
            person_id=int(row["person_id"]),
            full_name=str(row["full_name"]).strip(),
            phone=_text(row.get("phone")),
            priority=int(row["priority"]) if pd.notna(row.get("priority")) else 1,
            active=_flag(row.get("active"), default=True),
            excluded_weekdays=_weekdays(row.get("excluded_weekdays")),
            qualifications=parse_roles(row.get("roles")),
            blackouts=parse_blackouts(row.get("blackouts")),
        )
        persons.append(person)

    # Bulk insert
    session.add_all(persons)
    session.commit()

    print(f"[INFO] Imported {len(persons)} persons from {csv_path}")
    return len(persons)


def import_activities_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import activity types from CSV into database.

    One row per role requirement; activity columns repeat on every row. A
    cleaning-group activity may have a single row with an empty role_name.

    Args:
        session: Database session
        csv_path: Path to activities CSV (activity_type_id, name, days_of_week,
            default_time, generation_type, role_name, count, display_order,
            section_name, is_required)

    Returns:
        Number of activity types imported
    """
    df = pd.read_csv(csv_path, dtype={"days_of_week": str, "default_time": str})

    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()

    if "generation_type" in df.columns:
        df["generation_type"] = df["generation_type"].fillna("STANDARD").str.upper()

    activities = []
    for activity_type_id, rows in df.groupby("activity_type_id", sort=True):
        first = rows.iloc[0]
        activity = ActivityType(
            activity_type_id=int(activity_type_id),
            name=str(first["name"]).strip(),
            days_of_week=_weekdays(first.get("days_of_week")),
            default_time=_text(first.get("default_time")) or "10:00",
            generation_type=str(first.get("generation_type", "STANDARD")),
        )
        for idx, (_, row) in enumerate(rows.iterrows()):
            role_name = _text(row.get("role_name"))
            if role_name is None:
                continue
            activity.requirements.append(
                RoleRequirement(
                    role_name=role_name,
                    count=int(row["count"]) if pd.notna(row.get("count")) else 1,
                    display_order=int(row["display_order"]) if pd.notna(row.get("display_order")) else idx + 1,
                    section_name=_text(row.get("section_name")),
                    is_required=_flag(row.get("is_required"), default=True),
                )
            )
        activities.append(activity)

    session.add_all(activities)
    session.commit()

    print(f"[INFO] Imported {len(activities)} activity types from {csv_path}")
    return len(activities)


def import_history_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import past assignments as committed ledger rows.

    Args:
        session: Database session
        csv_path: Path to history CSV (person_id, role_name, activity_type_id, date)

    Returns:
        Number of ledger rows imported
    """
    df = pd.read_csv(csv_path)

    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()

    # Convert date
    df["date"] = pd.to_datetime(df["date"]).dt.date

    # Duplicate history lines would count a service twice
    df = df.drop_duplicates(subset=["person_id", "role_name", "activity_type_id", "date"], keep="first")
    df = df.sort_values(["date", "activity_type_id", "person_id"])

    records = []
    for _, row in df.iterrows():
        served_on: date = row["date"]
        records.append(
            AssignmentRecord(
                person_id=int(row["person_id"]),
                role_name=str(row["role_name"]).strip(),
                activity_type_id=int(row["activity_type_id"]),
                record_date=served_on,
                kind="COMMIT",
            )
        )

    session.add_all(records)
    session.commit()

    print(f"[INFO] Imported {len(records)} history records from {csv_path}")
    return len(records)

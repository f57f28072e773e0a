"""CSV export of programs for rendering and messaging consumers."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd

from church_rota.domain.types import DraftProgram, GenerationType
from church_rota.services.roster import Roster


PROGRAM_COLUMNS = [
    "program_id",
    "date",
    "activity_type_id",
    "status",
    "section_name",
    "role_name",
    "slot",
    "person_id",
    "full_name",
    "backup_person_id",
    "strategy",
    "is_manual",
]


def programs_to_frame(programs: Iterable[DraftProgram], roster: Roster | None = None) -> pd.DataFrame:
    """
    Flatten programs to one row per slot.

    Cleaning-group programs get one row per group member with role_name
    "Group <id>".
    """
    rows: List[Dict] = []
    for program in programs:
        base = {
            "program_id": program.program_id,
            "date": program.target_date.isoformat(),
            "activity_type_id": program.activity_type_id,
            "status": program.status.value,
        }
        if program.generation_type == GenerationType.CLEANING_GROUPS:
            for i, pid in enumerate(program.group_member_ids):
                rows.append({
                    **base,
                    "section_name": None,
                    "role_name": f"Group {program.group_id}",
                    "slot": i,
                    "person_id": pid,
                    "backup_person_id": None,
                    "strategy": None,
                    "is_manual": False,
                })
            continue
        for a in program.assignments:
            rows.append({**base, **a.to_dict()})

    df = pd.DataFrame(rows, columns=[c for c in PROGRAM_COLUMNS if c != "full_name"])
    names = {p.person_id: p.full_name for p in roster} if roster is not None else {}
    df.insert(
        PROGRAM_COLUMNS.index("full_name"),
        "full_name",
        [names.get(pid) if pd.notna(pid) else None for pid in df["person_id"]],
    )
    return df


def export_programs_csv(
    path: str | Path,
    programs: Iterable[DraftProgram],
    roster: Roster | None = None,
) -> int:
    """
    Write programs to CSV.

    Args:
        path: Output path
        programs: Programs to export
        roster: Optional roster used to add person names

    Returns:
        Number of rows written
    """
    df = programs_to_frame(programs, roster)
    df.to_csv(path, index=False)
    print(f"[INFO] Exported {len(df)} program rows to {path}")
    return len(df)

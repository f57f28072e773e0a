from __future__ import annotations

from typing import Dict, List

import pandas as pd

from .domain.types import BatchResult, DraftProgram, GenerationType
from .services.roster import Roster


def batch_frame(result: BatchResult) -> pd.DataFrame:
    """One row per batch target, in submission order."""
    rows: List[Dict] = []
    for outcome in result:
        row = {
            "date": outcome.target.target_date.isoformat(),
            "activity_type_id": outcome.target.activity_type_id,
            "state": outcome.review_state,
            "program_id": None,
            "coverage_percent": None,
            "unfilled": ",".join(u.role_name for u in outcome.unfilled),
            "reason": outcome.reason,
        }
        if outcome.ok:
            row["program_id"] = outcome.program.program_id
            row["coverage_percent"] = outcome.program.coverage().coverage_percent
            if outcome.program.generation_type == GenerationType.CLEANING_GROUPS:
                row["unfilled"] = f"group {outcome.program.group_id}"
        rows.append(row)
    return pd.DataFrame(
        rows,
        columns=["date", "activity_type_id", "state", "program_id", "coverage_percent", "unfilled", "reason"],
    )


def summarize_batch(result: BatchResult) -> str:
    if len(result) == 0:
        return "No targets."
    df = batch_frame(result)
    states = df.groupby("state").size()

    lines = ["Targets by review state:"]
    lines.append(states.to_string())
    lines.append("")
    lines.append("Per target:")
    lines.append(df.fillna("").to_string(index=False))
    return "\n".join(lines)


def summarize_program(program: DraftProgram, roster: Roster | None = None) -> str:
    """Readable program listing with coverage, grouped by section."""
    stats = program.coverage()
    header = (
        f"Program {program.program_id} ({program.status.value}) for activity "
        f"{program.activity_type_id} on {program.target_date.isoformat()}"
    )
    names = {p.person_id: p.full_name for p in roster} if roster is not None else {}

    if program.generation_type == GenerationType.CLEANING_GROUPS:
        members = ", ".join(names.get(pid, str(pid)) for pid in program.group_member_ids)
        return "\n".join([
            header,
            f"Group {program.group_id} of {program.total_groups}: {members}",
        ])

    if not program.assignments:
        return "\n".join([header, "No assignments."])

    df = pd.DataFrame([a.to_dict() for a in program.assignments])
    df["section_name"] = df["section_name"].fillna(df["role_name"])
    df["person"] = [
        names.get(pid, str(int(pid))) if pd.notna(pid) else "(unfilled)" for pid in df["person_id"]
    ]
    per_section = df.groupby("section_name", sort=False).agg(
        roles=("role_name", lambda s: ",".join(dict.fromkeys(s))),
        people=("person", lambda s: ", ".join(s)),
    )

    lines = [header]
    lines.append(per_section.to_string())
    lines.append("")
    lines.append(
        f"Coverage: {stats.total_assigned}/{stats.total_needed} slots "
        f"({stats.coverage_percent}%), {stats.people_used} people"
    )
    return "\n".join(lines)

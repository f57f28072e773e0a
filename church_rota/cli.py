"""Command-line interface for the church rota scheduler."""

from __future__ import annotations

import argparse

from church_rota.config import SchedulerConfig, load_config
from church_rota.domain.db import get_session, get_session_factory, init_database
from church_rota.domain.repositories import PersonRepository
from church_rota.domain.requests import BatchRequest, GenerateRequest, ReassignRequest, parse_date
from church_rota.domain.types import AssignmentStrategy, ProgramStatus
from church_rota.io.export_csv import export_programs_csv
from church_rota.io.import_csv import import_activities_csv, import_history_csv, import_persons_csv
from church_rota.services.programs import ProgramService
from church_rota.validator import summarize_batch, summarize_program


def _config(args: argparse.Namespace) -> SchedulerConfig:
    cfg = load_config(args.config)
    if args.db:
        cfg.db_url = args.db
    return cfg


def _service(cfg: SchedulerConfig) -> ProgramService:
    return ProgramService(get_session_factory(cfg.db_url), cfg)


def _roster(cfg: SchedulerConfig):
    session = get_session(cfg.db_url)
    try:
        return PersonRepository.load_roster(session)
    finally:
        session.close()


def _cmd_init_db(args: argparse.Namespace) -> None:
    """Initialize the database."""
    cfg = _config(args)
    init_database(cfg.db_url)
    print(f"[OK] Database initialized: {cfg.db_url}")


def _cmd_import_csv(args: argparse.Namespace) -> None:
    """Import CSV data into database."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        if args.persons:
            count = import_persons_csv(session, args.persons)
            print(f"[OK] Imported {count} persons")

        if args.activities:
            count = import_activities_csv(session, args.activities)
            print(f"[OK] Imported {count} activity types")

        if args.history:
            count = import_history_csv(session, args.history)
            print(f"[OK] Imported {count} history records")

        session.close()
        print("[OK] CSV import complete")

    except Exception as e:
        session.rollback()
        session.close()
        print(f"[ERROR] Import failed: {e}")
        raise


def _cmd_generate(args: argparse.Namespace) -> None:
    """Draft one program."""
    cfg = _config(args)
    service = _service(cfg)
    request = GenerateRequest.from_dict({"activity_type_id": args.activity, "date": args.date})
    strategy = AssignmentStrategy.MANUAL_RANDOM if args.random else AssignmentStrategy.DETERMINISTIC_ROTATION
    try:
        program, _ = service.generate(request, strategy=strategy, seed=args.seed)
    except Exception as e:
        print(f"[ERROR] Generation failed: {e}")
        raise
    print(summarize_program(program, _roster(cfg)))


def _cmd_batch(args: argparse.Namespace) -> None:
    """Draft programs for every matching date in a range."""
    cfg = _config(args)
    service = _service(cfg)
    start = parse_date(args.start, "start")
    end = parse_date(args.end, "end")

    try:
        if args.cleaning:
            result = service.generate_cleaning_batch(args.activity, start, end)
        else:
            days = [int(d) for d in args.days.split(",")] if args.days else None
            request = BatchRequest.from_range(args.activity, start, end, days, max_targets=cfg.batch.max_targets)
            result = service.batch_generate(request)
    except Exception as e:
        print(f"[ERROR] Batch failed: {e}")
        raise
    print(summarize_batch(result))


def _cmd_commit(args: argparse.Namespace) -> None:
    """Publish a reviewed draft."""
    cfg = _config(args)
    try:
        program = _service(cfg).commit(args.program)
    except Exception as e:
        print(f"[ERROR] Commit failed: {e}")
        raise
    print(summarize_program(program, _roster(cfg)))


def _cmd_reassign(args: argparse.Namespace) -> None:
    """Manually pick the person for one slot."""
    cfg = _config(args)
    request = ReassignRequest.from_dict(
        {"program_id": args.program, "role_name": args.role, "person_id": args.person, "slot": args.slot}
    )
    try:
        program = _service(cfg).reassign(request)
    except Exception as e:
        print(f"[ERROR] Reassign failed: {e}")
        raise
    print(summarize_program(program, _roster(cfg)))


def _cmd_randomize(args: argparse.Namespace) -> None:
    """Redraw roles of a draft at random."""
    cfg = _config(args)
    roles = [r.strip() for r in args.roles.split(",")] if args.roles else None
    try:
        program = _service(cfg).randomize(args.program, roles=roles, seed=args.seed)
    except Exception as e:
        print(f"[ERROR] Randomize failed: {e}")
        raise
    print(summarize_program(program, _roster(cfg)))


def _cmd_cancel(args: argparse.Namespace) -> None:
    """Cancel a program."""
    cfg = _config(args)
    try:
        _service(cfg).cancel(args.program)
    except Exception as e:
        print(f"[ERROR] Cancel failed: {e}")
        raise


def _cmd_partition(args: argparse.Namespace) -> None:
    """(Re)build cleaning groups."""
    cfg = _config(args)
    roster = _roster(cfg)
    try:
        groups = _service(cfg).partition_groups(args.groups)
    except Exception as e:
        print(f"[ERROR] Partition failed: {e}")
        raise
    for g in groups:
        names = ", ".join(roster.get(pid).full_name if pid in roster else str(pid) for pid in g.member_ids)
        print(f"Group {g.group_id}: {names}")


def _cmd_export(args: argparse.Namespace) -> None:
    """Export programs to CSV."""
    cfg = _config(args)
    status = ProgramStatus(args.status.upper()) if args.status else None
    programs = _service(cfg).list_programs(status)
    count = export_programs_csv(args.out, programs, _roster(cfg))
    print(f"[OK] Exported {count} rows from {len(programs)} programs to {args.out}")


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="church-rota",
        description="Rotation-aware assignment scheduler for church programs and cleaning groups",
    )

    # Global options
    parser.add_argument("--db", help="Database URL (overrides config; default: sqlite:///church_rota.db)")
    parser.add_argument("--config", help="Path to config YAML or JSON")

    sub = parser.add_subparsers(dest="command", required=True)

    # init-db command
    init = sub.add_parser("init-db", help="Initialize database")
    init.set_defaults(func=_cmd_init_db)

    # import-csv command
    imp = sub.add_parser("import-csv", help="Import CSV data into database")
    imp.add_argument("--persons", help="Path to persons CSV")
    imp.add_argument("--activities", help="Path to activity types CSV")
    imp.add_argument("--history", help="Path to past assignments CSV")
    imp.set_defaults(func=_cmd_import_csv)

    # generate command
    gen = sub.add_parser("generate", help="Draft a program for one date")
    gen.add_argument("--activity", type=int, required=True, help="Activity type ID")
    gen.add_argument("--date", required=True, help="Program date (YYYY-MM-DD)")
    gen.add_argument("--random", action="store_true", help="Assign at random instead of by rotation")
    gen.add_argument("--seed", type=int, help="Random seed (with --random)")
    gen.set_defaults(func=_cmd_generate)

    # batch command
    bat = sub.add_parser("batch", help="Draft programs for a date range")
    bat.add_argument("--activity", type=int, required=True, help="Activity type ID")
    bat.add_argument("--start", required=True, help="First date (YYYY-MM-DD)")
    bat.add_argument("--end", required=True, help="Last date (YYYY-MM-DD)")
    bat.add_argument("--days", help="Weekdays to include, e.g. 6 or 2,6 (0=Monday)")
    bat.add_argument("--cleaning", action="store_true", help="Rotate cleaning groups on the activity's days")
    bat.set_defaults(func=_cmd_batch)

    # commit command
    com = sub.add_parser("commit", help="Publish a draft program")
    com.add_argument("--program", type=int, required=True, help="Program ID")
    com.set_defaults(func=_cmd_commit)

    # reassign command
    rea = sub.add_parser("reassign", help="Manually assign a person to a slot")
    rea.add_argument("--program", type=int, required=True, help="Program ID")
    rea.add_argument("--role", required=True, help="Role name")
    rea.add_argument("--person", type=int, help="Person ID (omit to clear the slot)")
    rea.add_argument("--slot", type=int, default=0, help="Slot index for multi-person roles")
    rea.set_defaults(func=_cmd_reassign)

    # randomize command
    ran = sub.add_parser("randomize", help="Redraw roles of a draft at random")
    ran.add_argument("--program", type=int, required=True, help="Program ID")
    ran.add_argument("--roles", help="Comma-separated role names (default: all)")
    ran.add_argument("--seed", type=int, help="Random seed")
    ran.set_defaults(func=_cmd_randomize)

    # cancel command
    can = sub.add_parser("cancel", help="Cancel a program")
    can.add_argument("--program", type=int, required=True, help="Program ID")
    can.set_defaults(func=_cmd_cancel)

    # partition command
    par = sub.add_parser("partition", help="Divide members into cleaning groups")
    par.add_argument("--groups", type=int, help="Number of groups (default from config)")
    par.set_defaults(func=_cmd_partition)

    # export command
    exp = sub.add_parser("export", help="Export programs to CSV")
    exp.add_argument("--out", required=True, help="Output CSV path")
    exp.add_argument("--status", help="Only DRAFT, PUBLISHED or CANCELLED programs")
    exp.set_defaults(func=_cmd_export)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()

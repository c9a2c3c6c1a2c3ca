import argparse
from pathlib import Path

from . import __version__
from .cleanup import CLEANUP_TARGETS, run_cleanup
from .database import POINT_SOURCES, init_database
from .env import get_settings, load_env
from .errors import ClubAdminError, NotFoundError
from .importer import import_document, load_document
from .leagues import get_league, next_league, points_to_next_league
from .ledger import award_points, get_history, reset_scores
from .logger import get_logger
from .scoring import audit_totals, reconcile, reconcile_all
from .store import ClubStore


def _open_store(args: argparse.Namespace):
    return ClubStore.open(args.db, max_retries=args.retries)


def _missing_database(database) -> bool:
    return "://" not in str(database) and not Path(database).exists()


def cmd_init_db(args: argparse.Namespace) -> None:
    init_database(args.db)
    print(f"Database ready: {args.db}")


def cmd_import(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    document = load_document(input_path)
    if args.dry_run and _missing_database(args.db):
        print(f"Database {args.db} does not exist yet; every record counts as new.")
        summary = import_document(None, document, dry_run=True)
    else:
        with _open_store(args) as store:
            summary = import_document(store, document, dry_run=args.dry_run)
    prefix = "[DRY RUN] " if args.dry_run else ""
    for kind, count in summary.imported.items():
        print(f"{prefix}{kind}: imported={count} skipped={summary.skipped.get(kind, 0)}")
    if summary.errors:
        print(f"{len(summary.errors)} record(s) rejected:")
        for e in summary.errors:
            print(f" - {e}")
    if not args.dry_run and summary.imported.get("point_history"):
        print("Point history imported. Run 'clubadmin reconcile' to rebuild member totals.")


def cmd_reconcile(args: argparse.Namespace) -> None:
    with _open_store(args) as store:
        if args.check:
            divergent = audit_totals(store)
            if not divergent:
                print("All member totals match the ledger.")
                return
            print(f"{len(divergent)} member(s) out of sync:")
            for d in divergent:
                print(f" - {d.member_id}: cached={d.cached} ledger={d.actual} ({d.delta:+d})")
            raise SystemExit(2)

        if args.member:
            total = reconcile(store, args.member)
            print(f"{args.member}: {total} points")
            return

        report = reconcile_all(store)
    print(
        f"Done. updated={report.updated} changed={len(report.changed)} "
        f"not-found={len(report.not_found)} failed={len(report.failures)}"
    )
    for member_id, error in report.failures.items():
        print(f"[error] {member_id} -> {error}")
    if report.failures:
        raise SystemExit(1)


def cmd_league(args: argparse.Namespace) -> None:
    if args.member:
        with _open_store(args) as store:
            member = store.fetch_member(args.member)
            if member is None:
                raise NotFoundError(f"Member not found: {args.member}")
            points = member.points or 0
    else:
        points = args.points
    league = get_league(points)
    print(f"Points: {points}")
    print(f"League: {league.name} - {league.description}")
    upcoming = next_league(points)
    if upcoming is not None:
        print(f"Next: {upcoming.name} in {points_to_next_league(points)} points")


def cmd_award(args: argparse.Namespace) -> None:
    with _open_store(args) as store:
        entry = award_points(
            store,
            args.member,
            args.amount,
            source=args.source,
            reason=args.reason,
            source_ref=args.ref,
        )
        member = store.fetch_member(args.member)
        print(f"Entry {entry.id}: {entry.amount:+d} ({entry.source})")
        print(f"Total: {member.points}")


def cmd_history(args: argparse.Namespace) -> None:
    with _open_store(args) as store:
        entries = get_history(store, args.member, limit=args.limit)
        if not entries:
            print("No point history.")
            return
        for entry in entries:
            print(
                f"{entry.created_at:%Y-%m-%d %H:%M} {entry.amount:+6d} "
                f"{entry.source:<11} {entry.reason or ''}"
            )


def cmd_reset_scores(args: argparse.Namespace) -> None:
    if not args.yes:
        raise SystemExit("This deletes the whole point ledger. Re-run with --yes to confirm.")
    with _open_store(args) as store:
        entries, members = reset_scores(store)
    print(f"Deleted {entries} ledger entries, reset {members} members to 0 points.")


def cmd_dedup(args: argparse.Namespace) -> None:
    with _open_store(args) as store:
        before, after = run_cleanup(
            store,
            args.target,
            dry_run=not args.apply,
            area=args.area,
            dbv_class=args.dbv_class,
            prefer_name=args.prefer_name,
        )
    if args.apply:
        print(f"Done. before={before} after={after} removed={before - after}")
    else:
        print(f"[DRY RUN] before={before} after={after} would remove={before - after}")
        if before != after:
            print("Re-run with --apply to delete.")


def _add_common(sub: argparse.ArgumentParser, settings) -> None:
    sub.add_argument("--db", default=settings.database, help=f"Database path or URL (default: {settings.database})")
    sub.add_argument("--retries", type=int, default=settings.store_retries, help="Retries for transient database errors")


def main():
    # Load .env if present (CLUBADMIN_DATABASE, CLUBADMIN_LOG_LEVEL, etc.)
    load_env()
    settings = get_settings()
    logger = get_logger()
    logger.set_level(settings.log_level)

    parser = argparse.ArgumentParser(prog="clubadmin", description="Club points and catalog maintenance")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    ini = subparsers.add_parser("init-db", help="Create database tables")
    _add_common(ini, settings)
    ini.set_defaults(func=cmd_init_db)

    imp = subparsers.add_parser("import", help="Import clubs, members, catalog and point history from JSON")
    imp.add_argument("--input", required=True, help="Path to JSON export")
    imp.add_argument("--dry-run", action="store_true", help="Validate without writing")
    _add_common(imp, settings)
    imp.set_defaults(func=cmd_import)

    rec = subparsers.add_parser("reconcile", help="Rebuild member point totals from the ledger")
    rec.add_argument("--member", help="Reconcile a single member")
    rec.add_argument("--check", action="store_true", help="Only list members whose total is out of sync")
    _add_common(rec, settings)
    rec.set_defaults(func=cmd_reconcile)

    lea = subparsers.add_parser("league", help="Show the league for a point total or member")
    group = lea.add_mutually_exclusive_group(required=True)
    group.add_argument("--points", type=int, help="Point total")
    group.add_argument("--member", help="Member id")
    _add_common(lea, settings)
    lea.set_defaults(func=cmd_league)

    awd = subparsers.add_parser("award", help="Record a point award (negative to revoke)")
    awd.add_argument("--member", required=True, help="Member id")
    awd.add_argument("--amount", required=True, type=int, help="Signed point amount")
    awd.add_argument("--source", default="MANUAL", choices=POINT_SOURCES, help="Point source")
    awd.add_argument("--reason", help="Reason shown in the member's history")
    awd.add_argument("--ref", help="Id of the originating activity/purchase")
    _add_common(awd, settings)
    awd.set_defaults(func=cmd_award)

    his = subparsers.add_parser("history", help="Show a member's point history")
    his.add_argument("--member", required=True, help="Member id")
    his.add_argument("--limit", type=int, default=100, help="Max entries (default 100)")
    _add_common(his, settings)
    his.set_defaults(func=cmd_history)

    rst = subparsers.add_parser("reset-scores", help="Delete the whole point ledger and zero all totals")
    rst.add_argument("--yes", action="store_true", help="Confirm the reset")
    _add_common(rst, settings)
    rst.set_defaults(func=cmd_reset_scores)

    ddp = subparsers.add_parser("dedup", help="Find and remove duplicate catalog records")
    ddp.add_argument("target", choices=list(CLEANUP_TARGETS), help="What to deduplicate")
    ddp.add_argument("--apply", action="store_true", help="Delete duplicates (default is a dry run)")
    ddp.add_argument("--area", help="Specialty area filter (specialties, requirement-codes)")
    ddp.add_argument("--class", dest="dbv_class", help="Class whose requirements to scan (class-requirements; default: every class)")
    ddp.add_argument("--prefer-name", help="Club name to keep when merging clubs; the kept club is renamed to it")
    _add_common(ddp, settings)
    ddp.set_defaults(func=cmd_dedup)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        args.func(args)
    except ClubAdminError as e:
        logger.error(str(e), command=args.command, error_type=type(e).__name__)
        raise SystemExit(f"{type(e).__name__}: {e}")
    finally:
        logger.log_metrics_summary()


if __name__ == "__main__":
    main()

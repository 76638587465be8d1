from __future__ import annotations

import argparse
import logging
import sys

from app.core.settings import settings
from app.db.session import build_engine, build_session_factory
from app.services.assigned_doctor_migration import format_summary, migrate_assigned_doctor_ids

logger = logging.getLogger("vitalink.migrate_assigned_doctor_ids")


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f'Invalid --limit value "{raw}". Use a positive integer.'
        )
    if value <= 0:
        raise argparse.ArgumentTypeError(
            f'Invalid --limit value "{raw}". Use a positive integer.'
        )
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m app.scripts.migrate_assigned_doctor_ids",
        allow_abbrev=False,
        description=(
            "Rewrite patient assigned_doctor_ref values that still hold a doctor "
            "profile id to the owning doctor user id."
        ),
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview changes without writing to the database.",
    )
    parser.add_argument(
        "--limit",
        type=_positive_int,
        default=None,
        help="Scan only the first N patient profiles (useful for smoke checks).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)

    logging.basicConfig(level=settings.log_level.upper())

    engine = None
    session = None
    try:
        engine = build_engine(settings.database_url)
        session = build_session_factory(engine)()
        stats = migrate_assigned_doctor_ids(session, dry_run=args.dry_run, limit=args.limit)
    except Exception as exc:
        if session is not None:
            session.rollback()
        logger.error("Migration failed: %s", exc)
        print(f"Migration failed: {exc}", file=sys.stderr)
        return 1
    finally:
        if session is not None:
            session.close()
        if engine is not None:
            engine.dispose()

    for line in format_summary(stats):
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

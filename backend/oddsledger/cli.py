"""Command line entrypoint for the collect and grade jobs."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from sqlalchemy.exc import NoResultFound

from oddsledger.config import get_settings


def _print(payload: object) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def _cmd_collect(args: argparse.Namespace) -> int:
    from oddsledger.db import SessionLocal
    from oddsledger.services.runs import run_and_log

    with SessionLocal() as session:
        summary = run_and_log(session, get_settings(), run_type="collect", sports=args.sport or None)
    _print(summary)
    return 1 if "error" in summary else 0


def _cmd_grade(args: argparse.Namespace) -> int:
    from oddsledger.db import SessionLocal
    from oddsledger.services.runs import run_and_log

    with SessionLocal() as session:
        summary = run_and_log(session, get_settings(), run_type="grade")
    _print(summary)
    return 1 if "error" in summary else 0


def _cmd_recompute_stats(args: argparse.Namespace) -> int:
    from oddsledger.db import SessionLocal
    from oddsledger.services.stats import recompute_capper_stats

    with SessionLocal() as session:
        try:
            stats = recompute_capper_stats(session, args.capper_id, persist=not args.dry_run)
        except NoResultFound:
            print(f"capper {args.capper_id} not found", file=sys.stderr)
            return 2
    _print(stats)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oddsledger", description="Odds snapshot and pick grading jobs.")
    subparsers = parser.add_subparsers(dest="command")

    collect = subparsers.add_parser("collect", help="Fetch current lines and store snapshots.")
    collect.add_argument(
        "--sport",
        action="append",
        help="Limit the run to a sport (repeatable). Defaults to every configured in-season sport.",
    )
    collect.set_defaults(func=_cmd_collect)

    grade = subparsers.add_parser("grade", help="Settle pending picks whose games are final.")
    grade.set_defaults(func=_cmd_grade)

    recompute = subparsers.add_parser("recompute-stats", help="Rebuild a capper's record from the pick ledger.")
    recompute.add_argument("capper_id", type=int)
    recompute.add_argument("--dry-run", action="store_true", help="Print the rebuilt stats without saving them.")
    recompute.set_defaults(func=_cmd_recompute_stats)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 0
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())

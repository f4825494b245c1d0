from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .cache import SQLiteCacheStore
from .config import Config, load_config
from .courses import parse_course_records
from .extender import ActivityCacheExtender
from .generator import ActivityGenerator
from .merger import merge_activity_records
from .quota import QuotaBand, QuotaEnforcer
from .reporter import build_report_content, monthly_breakdown
from .timeutil import from_millis, parse_timestamp, utc_now

logger = logging.getLogger("activity-tracker")


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="activity-tracker")
    subparsers = parser.add_subparsers(dest="command", required=True)

    simulate = subparsers.add_parser("simulate", help="Resolve a user's login/logout history")
    simulate.add_argument("courses", type=Path, help="JSON mapping of course id to progress record")
    simulate.add_argument("--user", required=True, help="User identifier used as cache key")
    simulate.add_argument("--now", help="ISO timestamp to treat as the current instant")
    simulate.add_argument("--json", action="store_true", help="Print the raw payload instead of a report")

    sessions = subparsers.add_parser("sessions", help="Merge real activity records into sessions")
    sessions.add_argument("activities", type=Path, help="JSON list of activity records")

    return parser


def build_extender(config: Config, store: SQLiteCacheStore) -> ActivityCacheExtender:
    band = QuotaBand(config.monthly_min_hours, config.monthly_max_hours)
    generator = ActivityGenerator(
        tz=config.timezone,
        holidays=config.holidays,
        enforcer=QuotaEnforcer(config.timezone, band=band),
    )
    return ActivityCacheExtender(store, generator, refresh_minutes=config.cache_refresh_minutes)


def _read_json(path: Path):
    with path.open(encoding="utf-8") as handle:
        return json.load(handle)


def run_simulate(args: argparse.Namespace, config: Config) -> int:
    now = utc_now()
    if args.now:
        now_ms = parse_timestamp(args.now)
        if now_ms is None:
            logger.error("Invalid --now value: %s", args.now)
            return 2
        now = from_millis(now_ms)

    courses = parse_course_records(_read_json(args.courses))

    store = SQLiteCacheStore(config.cache_path)
    store.initialize()
    try:
        record = build_extender(config, store).resolve(args.user, courses, now)
    finally:
        store.close()

    rows = monthly_breakdown(record.activities, config.timezone)
    if args.json:
        payload = record.to_payload()
        payload["monthly"] = [row.to_payload() for row in rows]
        print(json.dumps(payload, indent=2))
    else:
        print(build_report_content(args.user, record, rows, config.timezone))
    return 0


def run_sessions(args: argparse.Namespace) -> int:
    records = _read_json(args.activities)
    if not isinstance(records, list):
        logger.error("Expected a JSON list of activity records in %s", args.activities)
        return 2

    sessions = merge_activity_records(item for item in records if isinstance(item, dict))
    print(json.dumps([session.to_payload() for session in sessions], indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    configure_logging()

    args = build_parser().parse_args(argv)
    config = load_config()

    try:
        if args.command == "simulate":
            return run_simulate(args, config)
        return run_sessions(args)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read input: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())

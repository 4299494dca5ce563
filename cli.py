#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import os
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from storage import create_activity_repository, detect_db_type

REPO_ROOT = Path(__file__).resolve().parent


def _load_dotenv(path: Path) -> int:
    """
    Load a .env file into process environment (without overriding existing vars).

    Keeps dependencies minimal (avoids python-dotenv).
    """
    if not path.exists():
        return 0
    loaded = 0
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key or key in os.environ:
            continue
        if (len(value) >= 2) and ((value[0] == value[-1]) and value[0] in {"'", '"'}):
            value = value[1:-1]
        os.environ[key] = value
        loaded += 1
    return loaded


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}', expected YYYY-MM-DD"
        ) from exc


def _require_db(db_url: Optional[str]) -> str:
    if not db_url:
        raise SystemExit("Database URI is required (pass --db or set DB_CONN_STRING).")
    try:
        detect_db_type(db_url)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    return db_url


def _cmd_wellness_daily(ns: argparse.Namespace) -> int:
    # Import lazily to keep CLI startup fast.
    from wellness.job_daily import run_daily_wellness_job

    try:
        result = run_daily_wellness_job(
            db_url=_require_db(ns.db),
            day=ns.date or datetime.now(timezone.utc).date(),
            backfill_days=max(1, int(ns.backfill)),
            user_ids=ns.user_id or None,
            timezone_name=ns.timezone,
            team_id=ns.team_id,
        )
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    for user_id, day, error in result.failures:
        logging.error("Failed user=%s day=%s: %s", user_id, day.isoformat(), error)
    return 0 if result.ok else 1


def _cmd_wellness_prune(ns: argparse.Namespace) -> int:
    from wellness.job_daily import prune_expired_insights

    try:
        prune_expired_insights(db_url=_require_db(ns.db))
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    return 0


def _cmd_fixtures_generate(ns: argparse.Namespace) -> int:
    from fixtures.generator import SyntheticActivityGenerator

    db_url = _require_db(ns.db)
    end_day = ns.date or datetime.now(timezone.utc).date()
    days = max(1, int(ns.days))

    repository = create_activity_repository(db_url)
    try:
        repository.ensure_tables()
        total = 0
        for offset, user_id in enumerate(ns.user_id or ["alice@example.com"]):
            seed = None if ns.seed is None else ns.seed + offset
            generator = SyntheticActivityGenerator(user_id=user_id, seed=seed)
            events = generator.generate_activities(end_day, days=days)
            total += repository.insert_activities(events)
            logging.info("Generated %d activities for %s", len(events), user_id)
    finally:
        repository.close()

    logging.info(
        "Generated synthetic activity: rows=%d days=%d ending %s",
        total,
        days,
        end_day.isoformat(),
    )

    if ns.with_metrics:
        from wellness.job_daily import run_daily_wellness_job

        result = run_daily_wellness_job(
            db_url=db_url,
            # Activity that runs past midnight lands on the following day.
            day=end_day + timedelta(days=1),
            backfill_days=days + 1,
            user_ids=ns.user_id or None,
        )
        return 0 if result.ok else 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devflow-wellness",
        description="Compute developer wellness metrics and insights from activity.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING). Defaults to env LOG_LEVEL or INFO.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # ---- wellness ----
    wellness = sub.add_parser(
        "wellness", help="Compute and maintain wellness metrics and insights."
    )
    wellness_sub = wellness.add_subparsers(dest="wellness_command", required=True)

    daily = wellness_sub.add_parser(
        "daily", help="Compute daily wellness metrics (optionally backfill)."
    )
    daily.add_argument(
        "--date",
        type=_parse_date,
        help="Target day as YYYY-MM-DD (defaults to today, UTC).",
    )
    daily.add_argument(
        "--backfill",
        type=int,
        default=1,
        help="Compute N days ending at --date (inclusive).",
    )
    daily.add_argument(
        "--db",
        default=os.getenv("DB_CONN_STRING") or os.getenv("DATABASE_URL"),
        help="Source DB URI (activity) and sink for metrics/insights.",
    )
    daily.add_argument(
        "--user-id",
        action="append",
        help="Only compute for this user (repeatable). Defaults to every active user.",
    )
    daily.add_argument(
        "--timezone",
        default=os.getenv("WELLNESS_TIMEZONE"),
        help="IANA timezone for day boundaries and time bands (default UTC).",
    )
    daily.add_argument(
        "--team-id",
        default=os.getenv("WELLNESS_TEAM_ID"),
        help="Team id stamped on generated insights.",
    )
    daily.set_defaults(func=_cmd_wellness_daily)

    prune = wellness_sub.add_parser(
        "prune", help="Delete insights whose validity window has passed."
    )
    prune.add_argument(
        "--db",
        default=os.getenv("DB_CONN_STRING") or os.getenv("DATABASE_URL"),
        help="Target DB URI.",
    )
    prune.set_defaults(func=_cmd_wellness_prune)

    # ---- fixtures ----
    fix = sub.add_parser("fixtures", help="Data simulation and fixtures.")
    fix_sub = fix.add_subparsers(dest="fixtures_command", required=True)
    fix_gen = fix_sub.add_parser("generate", help="Generate synthetic activity.")
    fix_gen.add_argument(
        "--db",
        default=os.getenv("DB_CONN_STRING") or os.getenv("DATABASE_URL"),
        help="Target DB URI.",
    )
    fix_gen.add_argument(
        "--user-id",
        action="append",
        help="User to generate activity for (repeatable).",
    )
    fix_gen.add_argument("--days", type=int, default=30, help="Number of days of data.")
    fix_gen.add_argument(
        "--date", type=_parse_date, help="Last generated day (defaults to today, UTC)."
    )
    fix_gen.add_argument("--seed", type=int, help="Random seed for repeatable data.")
    fix_gen.add_argument(
        "--with-metrics",
        action="store_true",
        help="Also compute wellness metrics for the generated range.",
    )
    fix_gen.set_defaults(func=_cmd_fixtures_generate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    if os.getenv("DISABLE_DOTENV", "").strip().lower() not in {
        "1",
        "true",
        "yes",
        "on",
    }:
        _load_dotenv(REPO_ROOT / ".env")

    parser = build_parser()
    ns = parser.parse_args(argv)

    level_name = str(getattr(ns, "log_level", "") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    func = getattr(ns, "func", None)
    if func is None:
        parser.print_help()
        return 2
    return int(func(ns))


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""
Daily Aggregation Runner

Aggregates, ranks and scores all entity types for one date or a range of
dates (backfill). Dates are challenge-local calendar days.

Usage:
    python scripts/run_daily_aggregation.py                      # yesterday
    python scripts/run_daily_aggregation.py --date 2026-03-14
    python scripts/run_daily_aggregation.py --start 2026-03-01 --end 2026-03-14
    python scripts/run_daily_aggregation.py --date 2026-03-14 --types strain brand
"""
import argparse
import asyncio
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dailychallenge.core.config import settings
from dailychallenge.core.database import SessionLocal
from dailychallenge.core.exceptions import DataSourceUnavailableError
from dailychallenge.core.logging import configure_logging
from dailychallenge.services.aggregation.orchestrator import AggregationOptions, DailyAggregationOrchestrator
from dailychallenge.services.scoring.entity_types import get_all_entity_types
from dailychallenge.utils.timezone import local_date, utcnow

logger = logging.getLogger(__name__)


def _date_range(start: date, end: date):
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


async def run(dates, entity_types) -> int:
    """Aggregate each date in order. Returns the number of failed dates."""
    failures = 0
    options = AggregationOptions(entity_types=entity_types)

    for stat_date in dates:
        db = SessionLocal()
        try:
            summary = await DailyAggregationOrchestrator(db).aggregate_for_date(stat_date, options)
            logger.info(f"✅ {stat_date}: {summary.total_orders} orders")
            for entity_type, counts in summary.per_entity_type.items():
                logger.info(f"   {entity_type:<13} processed={counts.processed} skipped={counts.skipped}")
        except DataSourceUnavailableError as e:
            db.rollback()
            failures += 1
            logger.error(f"❌ {e}")
        finally:
            db.close()

    return failures


def main():
    parser = argparse.ArgumentParser(description="Aggregate and score daily entity rankings")
    parser.add_argument("--date", type=date.fromisoformat, help="Single date (YYYY-MM-DD), default yesterday")
    parser.add_argument("--start", type=date.fromisoformat, help="Backfill start date (inclusive)")
    parser.add_argument("--end", type=date.fromisoformat, help="Backfill end date (inclusive)")
    parser.add_argument(
        "--types",
        nargs="+",
        choices=[t.value for t in get_all_entity_types()],
        help="Restrict to these entity types",
    )
    args = parser.parse_args()

    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    if args.start or args.end:
        if not (args.start and args.end):
            parser.error("--start and --end must be used together")
        if args.start > args.end:
            parser.error("--start must not be after --end")
        dates = list(_date_range(args.start, args.end))
    else:
        dates = [args.date or local_date(utcnow()) - timedelta(days=1)]

    logger.info("=" * 60)
    logger.info(f"Daily aggregation: {dates[0]} .. {dates[-1]} ({len(dates)} day(s))")
    logger.info("=" * 60)

    failures = asyncio.run(run(dates, args.types))
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())

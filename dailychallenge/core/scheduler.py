"""
Automated task scheduler for the daily challenge service.

This module provides scheduled background jobs for:
- Daily aggregation of the previous challenge day
- Intraday re-aggregation of the current day (live rankings)
- Halftime sweep: snapshot challenges whose halftime has passed

All schedules run in the challenge timezone (settings.CHALLENGE_TIMEZONE).

Scheduler: APScheduler (AsyncIOScheduler)
"""
import logging
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from dailychallenge.core.config import settings
from dailychallenge.core.database import SessionLocal
from dailychallenge.services.aggregation.orchestrator import DailyAggregationOrchestrator
from dailychallenge.services.challenge.halftime_service import HalftimeService
from dailychallenge.utils.timezone import local_date, utcnow

logger = logging.getLogger(__name__)


class AutomationScheduler:
    """
    Main scheduler for automated background tasks.

    Every job opens its own session and logs failures instead of raising,
    so one bad run never stops the scheduler.
    """

    def __init__(self, session_factory=SessionLocal, timezone: Optional[str] = None):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False
        self.session_factory = session_factory
        self.timezone = timezone or settings.CHALLENGE_TIMEZONE

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting automation scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone=self.timezone,
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,
                'misfire_grace_time': 300
            }
        )

        self._schedule_daily_aggregation()
        self._schedule_intraday_aggregation()
        self._schedule_halftime_sweep()

        self.scheduler.start()
        self.running = True

        logger.info("✅ Scheduler started with %d jobs", len(self.scheduler.get_jobs()))
        self._log_scheduled_jobs()

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=True)
        self.running = False
        logger.info("✅ Scheduler stopped")

    # ========================================================================
    # Job Bodies
    # ========================================================================

    async def run_aggregation(self, days_back: int = 0):
        """Aggregate the local date days_back days ago."""
        stat_date = local_date(utcnow()) - timedelta(days=days_back)
        db = self.session_factory()
        try:
            summary = await DailyAggregationOrchestrator(db).aggregate_for_date(stat_date)
            processed = sum(s.processed for s in summary.per_entity_type.values())
            logger.info(
                f"✅ Aggregation {stat_date}: {summary.total_orders} orders, "
                f"{processed} entities scored"
            )
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Aggregation for {stat_date} failed: {e}")
        finally:
            db.close()

    async def run_halftime_sweep(self):
        """Snapshot every challenge whose halftime has passed."""
        db = self.session_factory()
        try:
            snapshots = await HalftimeService(db).snapshot_due_challenges()
            if snapshots:
                logger.info(f"✅ Halftime sweep: {len(snapshots)} snapshot(s) taken")
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Halftime sweep failed: {e}")
        finally:
            db.close()

    # ========================================================================
    # Schedules
    # ========================================================================

    def _schedule_daily_aggregation(self):
        """
        Schedule: Final aggregation of the previous day.

        Frequency: Daily at AGGREGATION_CRON_HOUR:AGGREGATION_CRON_MINUTE local
        Purpose: Settle yesterday's rankings once all orders are in
        """
        if self.scheduler is None:
            return

        self.scheduler.add_job(
            self.run_aggregation,
            trigger=CronTrigger(
                hour=settings.AGGREGATION_CRON_HOUR,
                minute=settings.AGGREGATION_CRON_MINUTE,
                timezone=self.timezone
            ),
            kwargs={'days_back': 1},
            id='daily_aggregation',
            name='Daily Aggregation (previous day)',
            misfire_grace_time=3600
        )

        logger.info(
            f"📅 Scheduled: Daily aggregation "
            f"({settings.AGGREGATION_CRON_HOUR:02d}:{settings.AGGREGATION_CRON_MINUTE:02d} local)"
        )

    def _schedule_intraday_aggregation(self):
        """
        Schedule: Re-aggregate today so live rankings stay current.

        Frequency: Every INTRADAY_AGGREGATION_MINUTES
        """
        if self.scheduler is None:
            return

        self.scheduler.add_job(
            self.run_aggregation,
            trigger=IntervalTrigger(minutes=settings.INTRADAY_AGGREGATION_MINUTES),
            kwargs={'days_back': 0},
            id='intraday_aggregation',
            name='Intraday Aggregation (today)',
        )

        logger.info(f"📅 Scheduled: Intraday aggregation (every {settings.INTRADAY_AGGREGATION_MINUTES} min)")

    def _schedule_halftime_sweep(self):
        """
        Schedule: Take due halftime snapshots.

        Frequency: Every HALFTIME_SWEEP_SECONDS
        Purpose: Freeze scores shortly after each challenge's halftime
        """
        if self.scheduler is None:
            return

        self.scheduler.add_job(
            self.run_halftime_sweep,
            trigger=IntervalTrigger(seconds=settings.HALFTIME_SWEEP_SECONDS),
            id='halftime_sweep',
            name='Halftime Snapshot Sweep',
            misfire_grace_time=30
        )

        logger.info(f"⏱️ Scheduled: Halftime sweep (every {settings.HALFTIME_SWEEP_SECONDS}s)")

    def _log_scheduled_jobs(self):
        """Log all scheduled jobs for visibility."""
        jobs = self.scheduler.get_jobs()

        logger.info("=" * 60)
        logger.info("SCHEDULED AUTOMATION JOBS")
        logger.info("=" * 60)

        for job in jobs:
            next_run = job.next_run_time
            next_run_str = next_run.strftime('%Y-%m-%d %H:%M %Z') if next_run else 'Pending'

            logger.info(f"  • {job.name}")
            logger.info(f"    ID: {job.id}")
            logger.info(f"    Next run: {next_run_str}")

        logger.info("=" * 60)
        logger.info(f"Total jobs scheduled: {len(jobs)}")
        logger.info("=" * 60)

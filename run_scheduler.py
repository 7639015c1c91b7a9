#!/usr/bin/env python3
"""
Background runner for the daily challenge automation scheduler.

Runs the scheduler as a standalone service (systemd, supervisor, or
directly) until SIGTERM/SIGINT.

Usage:
    python run_scheduler.py                          # Run in foreground
    python run_scheduler.py --list-jobs              # Show the job table and exit
    python run_scheduler.py --trigger halftime_sweep # Run one job now and exit
"""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from dailychallenge.core.config import settings
from dailychallenge.core.logging import configure_logging
from dailychallenge.core.scheduler import AutomationScheduler

logger = logging.getLogger(__name__)

TRIGGERABLE_JOBS = {
    'daily_aggregation': lambda s: s.run_aggregation(days_back=1),
    'intraday_aggregation': lambda s: s.run_aggregation(days_back=0),
    'halftime_sweep': lambda s: s.run_halftime_sweep(),
}


class SchedulerRunner:
    """Runner for the automation scheduler."""

    def __init__(self):
        self.scheduler: AutomationScheduler = None
        self.shutdown = False

    async def start(self):
        """Start the scheduler and run until shutdown."""
        logger.info("🚀 Starting scheduler runner...")

        self.scheduler = AutomationScheduler()
        await self.scheduler.start()

        logger.info("✅ Scheduler is now running")
        logger.info("Press Ctrl+C to stop")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        while not self.shutdown:
            await asyncio.sleep(1)

        await self.scheduler.stop()
        logger.info("✅ Scheduler runner stopped")

    def _set_shutdown(self):
        logger.info("⏹️  Shutdown signal received")
        self.shutdown = True


async def run_trigger_job(job_id: str) -> bool:
    """Run a single job immediately, outside the schedule."""
    job = TRIGGERABLE_JOBS.get(job_id)
    if job is None:
        print(f"❌ Job '{job_id}' not found (choose from: {', '.join(TRIGGERABLE_JOBS)})")
        return False

    print(f"🔄 Triggering job: {job_id}")
    await job(AutomationScheduler())
    print(f"✅ Job '{job_id}' finished")
    return True


async def list_jobs():
    """Start a paused scheduler just long enough to print its job table."""
    scheduler = AutomationScheduler()
    await scheduler.start()
    scheduler.scheduler.pause()

    print("=" * 60)
    print("SCHEDULED AUTOMATION JOBS")
    print("=" * 60)
    for job in scheduler.scheduler.get_jobs():
        print(f"📋 {job.name}")
        print(f"   ID: {job.id}")
        print(f"   Schedule: {job.trigger}")
        print()
    print("=" * 60)

    await scheduler.stop()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Run the daily challenge automation scheduler'
    )
    parser.add_argument(
        '--trigger',
        type=str,
        metavar='JOB_ID',
        help='Run a specific job once and exit'
    )
    parser.add_argument(
        '--list-jobs',
        action='store_true',
        help='List all scheduled jobs and exit'
    )
    args = parser.parse_args()

    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    if args.list_jobs:
        asyncio.run(list_jobs())
        return 0

    if args.trigger:
        return 0 if asyncio.run(run_trigger_job(args.trigger)) else 1

    runner = SchedulerRunner()
    try:
        asyncio.run(runner.start())
    except KeyboardInterrupt:
        logger.info("🛑 Received interrupt, shutting down...")
    except Exception as e:
        logger.error(f"❌ Scheduler error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

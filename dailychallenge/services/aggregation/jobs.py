"""
Aggregation job runner.

Turns aggregate_for_date() into a submitted job: submit() records an
AggregationJob row, starts the run as an asyncio task and returns the job
id immediately. Callers poll get_status() or await wait().

Status flow: pending -> running -> success | failed

Each job runs on its own session from the session factory, so a job never
shares a transaction with the caller that submitted it.
"""
import asyncio
import logging
import uuid
from datetime import date
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from dailychallenge.core.database import SessionLocal
from dailychallenge.core.logging import clear_run_id, set_run_id
from dailychallenge.repositories import JobRepository
from dailychallenge.services.aggregation.orchestrator import AggregationOptions, DailyAggregationOrchestrator
from dailychallenge.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class AggregationJobRunner:
    """Runs aggregation jobs in the background of the current event loop."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        orchestrator_factory: Optional[Callable[[Session], DailyAggregationOrchestrator]] = None,
    ):
        """
        Args:
            session_factory: Creates a new session per job and per status write
            orchestrator_factory: Builds the orchestrator for a job's session
        """
        self.session_factory = session_factory
        self.orchestrator_factory = orchestrator_factory or DailyAggregationOrchestrator
        self._tasks: Dict[str, asyncio.Task] = {}

    async def submit(self, stat_date: date, options: Optional[AggregationOptions] = None) -> str:
        """
        Record a pending job, start it, and return its id.

        A date that already has a pending or running job returns that job's id.
        """
        job_id = str(uuid.uuid4())

        db = self.session_factory()
        try:
            jobs = JobRepository(db)
            active = jobs.find_active_for_date(stat_date)
            if active is not None:
                logger.info(f"Aggregation for {stat_date} already queued as job {active.id}")
                return active.id
            jobs.create(id=job_id, stat_date=stat_date, status="pending", submitted_at=utcnow())
            db.commit()
        finally:
            db.close()

        task = asyncio.create_task(self._run(job_id, stat_date, options), name=f"aggregation-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))

        logger.info(f"Submitted aggregation job {job_id} for {stat_date}")
        return job_id

    async def wait(self, job_id: str) -> Optional[dict]:
        """Wait for a job submitted by this runner to finish, then return its status."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return self.get_status(job_id)

    def get_status(self, job_id: str) -> Optional[dict]:
        """Current job state, or None for an unknown id."""
        db = self.session_factory()
        try:
            job = JobRepository(db).find_by_id(job_id)
            if job is None:
                return None
            return {
                "job_id": job.id,
                "stat_date": job.stat_date.isoformat(),
                "status": job.status,
                "summary": job.summary,
                "error": job.error_message,
                "submitted_at": job.submitted_at,
                "started_at": job.started_at,
                "completed_at": job.completed_at,
                "duration_ms": job.duration_ms,
            }
        finally:
            db.close()

    async def _run(self, job_id: str, stat_date: date, options: Optional[AggregationOptions]) -> None:
        token = set_run_id(job_id)
        db = self.session_factory()
        jobs = JobRepository(db)
        try:
            job = jobs.find_by_id(job_id)
            job.status = "running"
            job.started_at = utcnow()
            db.commit()

            try:
                summary = await self.orchestrator_factory(db).aggregate_for_date(stat_date, options)
            except Exception as e:
                db.rollback()
                logger.error(f"❌ Aggregation job {job_id} failed: {e}")
                self._finish(db, job_id, status="failed", error_message=str(e))
                return

            self._finish(db, job_id, status="success", summary=summary.to_dict())
            logger.info(f"✅ Aggregation job {job_id} finished: {summary.total_orders} orders")
        finally:
            db.close()
            clear_run_id(token)

    @staticmethod
    def _finish(db: Session, job_id: str, status: str, **fields) -> None:
        job = JobRepository(db).find_by_id(job_id)
        job.status = status
        job.completed_at = utcnow()
        if job.started_at is not None:
            job.duration_ms = int((job.completed_at - job.started_at).total_seconds() * 1000)
        for key, value in fields.items():
            setattr(job, key, value)
        db.commit()

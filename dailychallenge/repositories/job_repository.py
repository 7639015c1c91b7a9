"""
Job Repository for aggregation job tracking.
"""
from typing import List, Optional

from dailychallenge.models import AggregationJob
from dailychallenge.repositories.base import BaseRepository


class JobRepository(BaseRepository[AggregationJob]):
    """Repository for AggregationJob rows."""

    def __init__(self, db):
        super().__init__(AggregationJob, db)

    def find_recent(self, limit: int = 20) -> List[AggregationJob]:
        return self.query().order_by(AggregationJob.submitted_at.desc()).limit(limit).all()

    def find_active_for_date(self, stat_date) -> Optional[AggregationJob]:
        """A pending or running job for the date, if any."""
        return self.where_first(
            AggregationJob.stat_date == stat_date,
            AggregationJob.status.in_(("pending", "running")),
        )

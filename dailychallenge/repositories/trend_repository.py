"""
Trend Repository for rolling-window volume metrics.

TrendMetric rows are loaded by the trend feed keyed by
(entity_type, entity_name); this repository only reads them, plus an
upsert used by loaders and fixtures.
"""
from typing import Any, Dict, Optional

from sqlalchemy import func

from dailychallenge.models import TrendMetric
from dailychallenge.repositories.base import BaseRepository
from dailychallenge.utils.timezone import utcnow


class TrendRepository(BaseRepository[TrendMetric]):
    """Repository for TrendMetric rows."""

    def __init__(self, db):
        super().__init__(TrendMetric, db)
        self._days7_totals: Dict[str, float] = {}

    def find_by_name(self, entity_type: str, entity_name: str) -> Optional[TrendMetric]:
        return self.where_first(
            TrendMetric.entity_type == entity_type,
            TrendMetric.entity_name == entity_name,
        )

    def total_days7(self, entity_type: str) -> float:
        """Category-wide 7-day volume, cached per repository instance."""
        if entity_type not in self._days7_totals:
            total = (
                self.db.query(func.coalesce(func.sum(TrendMetric.days7), 0))
                .filter(TrendMetric.entity_type == entity_type)
                .scalar()
            )
            self._days7_totals[entity_type] = float(total or 0)
        return self._days7_totals[entity_type]

    def upsert_metric(self, entity_type: str, entity_name: str, values: Dict[str, Any]) -> None:
        row = {"entity_type": entity_type, "entity_name": entity_name, "updated_at": utcnow(), **values}
        self.upsert(row, conflict_columns=("entity_type", "entity_name"))
        self._days7_totals.pop(entity_type, None)

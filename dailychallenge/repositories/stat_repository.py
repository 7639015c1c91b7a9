"""
Stat Repository for per-entity daily stat rows.

Rows are keyed by (entity_type, entity_id, stat_date) and written with an
upsert, so re-aggregating a date overwrites in place.

Usage:
    repo = StatRepository(db)
    repo.upsert_stat({...})
    history = repo.find_rank_history("strain", 42, before=date(2026, 3, 2), days=30)
"""
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from dailychallenge.models import EntityDailyStat
from dailychallenge.repositories.base import BaseRepository
from dailychallenge.utils.timezone import utcnow

STAT_KEY = ("entity_type", "entity_id", "stat_date")


class StatRepository(BaseRepository[EntityDailyStat]):
    """Repository for EntityDailyStat rows."""

    def __init__(self, db):
        super().__init__(EntityDailyStat, db)

    # ========================================================================
    # Writes
    # ========================================================================

    def upsert_stat(self, values: Dict[str, Any]) -> None:
        """Insert or overwrite the stat row for values' (entity_type, entity_id, stat_date)."""
        now = utcnow()
        row = dict(values)
        row.setdefault("created_at", now)
        row["updated_at"] = now

        update_columns = [key for key in row if key not in STAT_KEY and key != "created_at"]
        self.upsert(row, conflict_columns=STAT_KEY, update_columns=update_columns)

    # ========================================================================
    # Reads
    # ========================================================================

    def find_stat(self, entity_type: str, entity_id: int, stat_date: date) -> Optional[EntityDailyStat]:
        return self.where_first(
            EntityDailyStat.entity_type == entity_type,
            EntityDailyStat.entity_id == entity_id,
            EntityDailyStat.stat_date == stat_date,
        )

    def find_for_date(self, entity_type: str, stat_date: date) -> List[EntityDailyStat]:
        """All stat rows for a type and date, best rank first."""
        return (
            self.query()
            .filter(EntityDailyStat.entity_type == entity_type, EntityDailyStat.stat_date == stat_date)
            .order_by(EntityDailyStat.rank)
            .all()
        )

    def find_rank(self, entity_type: str, entity_id: int, stat_date: date) -> Optional[int]:
        stat = self.find_stat(entity_type, entity_id, stat_date)
        return stat.rank if stat else None

    def find_rank_history(
        self,
        entity_type: str,
        entity_id: int,
        before: date,
        days: int,
    ) -> Dict[date, int]:
        """
        Ranks on the `days` dates strictly before `before`.

        Returns:
            {stat_date: rank}; dates without a row are absent
        """
        rows = (
            self.db.query(EntityDailyStat.stat_date, EntityDailyStat.rank)
            .filter(
                EntityDailyStat.entity_type == entity_type,
                EntityDailyStat.entity_id == entity_id,
                EntityDailyStat.stat_date < before,
                EntityDailyStat.stat_date >= before - timedelta(days=days),
            )
            .all()
        )
        return {stat_date: rank for stat_date, rank in rows}

"""
Historical trend data for scoring.

For each ranked entity the provider assembles:
- Rolling volumes (days1/7/14) from the trend_metrics feed
- previous_rank: the entity's rank on the day before stat_date (0 if unranked)
- streak_days: consecutive top-10 days ending today, walking stat rows
  backward from the day before stat_date
- market_share_percent: entity days7 / category days7 x 100
- daily_volumes: [days1] + six equal shares of (days7 - days1), an estimate
  since the feed only carries cumulative windows

Only dates strictly before stat_date are read, so re-running a date sees
the same history.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dailychallenge.core.config import settings
from dailychallenge.core.exceptions import TrendDataError
from dailychallenge.repositories import StatRepository, TrendRepository
from dailychallenge.services.scoring.entity_types import EntityType
from dailychallenge.services.scoring.trend_scoring import calculate_market_share

logger = logging.getLogger(__name__)

TOP_TIER_RANK = 10


@dataclass
class TrendSnapshot:
    days1: float = 0.0
    days7: float = 0.0
    days14: Optional[float] = None
    days30: float = 0.0
    days60: float = 0.0
    days90: float = 0.0
    previous_rank: int = 0
    streak_days: int = 0
    market_share_percent: float = 0.0
    daily_volumes: List[float] = field(default_factory=list)


class TrendProvider(Protocol):
    async def get_trend(
        self,
        entity_type: EntityType,
        entity_id: int,
        entity_name: str,
        stat_date: date,
        current_rank: int,
    ) -> TrendSnapshot: ...


def estimate_daily_volumes(days1: float, days7: float) -> List[float]:
    """Split the cumulative 7-day window into 7 daily values (today first)."""
    if days7 <= 0 and days1 <= 0:
        return []
    rest = max(0.0, days7 - days1) / 6
    return [days1] + [rest] * 6


def compute_streak_days(current_rank: int, rank_history: Dict[date, int], stat_date: date) -> int:
    """
    Consecutive top-10 days including today.

    Today counts once it is top-10 itself; the walk stops at the first
    earlier day that is missing or outside the top 10.
    """
    if current_rank <= 0 or current_rank > TOP_TIER_RANK:
        return 0

    streak = 1
    day = stat_date - timedelta(days=1)
    while True:
        rank = rank_history.get(day)
        if rank is None or rank <= 0 or rank > TOP_TIER_RANK:
            break
        streak += 1
        day -= timedelta(days=1)
    return streak


class SqlTrendProvider:
    """TrendProvider reading trend_metrics and past entity_daily_stats rows."""

    def __init__(self, db: Session, lookback_days: Optional[int] = None):
        self.trends = TrendRepository(db)
        self.stats = StatRepository(db)
        self.lookback_days = lookback_days or settings.STREAK_LOOKBACK_DAYS

    async def get_trend(
        self,
        entity_type: EntityType,
        entity_id: int,
        entity_name: str,
        stat_date: date,
        current_rank: int,
    ) -> TrendSnapshot:
        entity_type = EntityType(entity_type)
        try:
            metric = self.trends.find_by_name(entity_type.value, entity_name)
            total_days7 = self.trends.total_days7(entity_type.value)
            history = self.stats.find_rank_history(
                entity_type.value, entity_id, before=stat_date, days=self.lookback_days
            )
        except SQLAlchemyError as e:
            raise TrendDataError(f"Trend lookup failed for {entity_type.value} '{entity_name}': {e}") from e

        snapshot = TrendSnapshot(
            previous_rank=history.get(stat_date - timedelta(days=1), 0),
            streak_days=compute_streak_days(current_rank, history, stat_date),
        )

        if metric is not None:
            snapshot.days1 = metric.days1 or 0.0
            snapshot.days7 = metric.days7 or 0.0
            snapshot.days14 = metric.days14 or 0.0
            snapshot.days30 = metric.days30 or 0.0
            snapshot.days60 = metric.days60 or 0.0
            snapshot.days90 = metric.days90 or 0.0
            snapshot.market_share_percent = calculate_market_share(snapshot.days7, total_days7)
            snapshot.daily_volumes = estimate_daily_volumes(snapshot.days1, snapshot.days7)

        return snapshot

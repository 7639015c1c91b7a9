"""Daily aggregation orchestrator.

Drives one calendar date through the pipeline for every entity type:

    fetch records -> aggregate -> rank -> (resolve -> trend -> score -> upsert) per entity

Record Fetching:
- Date-filtered query first
- On any failure: all-orders query + client-side filtering by local date
- Both failing raises DataSourceUnavailableError (fatal for the run)

Pipelines:
- The five entity types run concurrently (asyncio.gather)
- Ranking is fully materialized before per-entity work starts
- Per-entity work is bounded by AGGREGATION_CONCURRENCY
- A resolution miss or per-entity error counts as skipped and never aborts
  the type
- Each entity's upsert runs in its own savepoint, so a failed write rolls
  back only that entity

Idempotent: stat rows upsert on (entity_type, entity_id, stat_date), and
trend history only reads dates before stat_date.
"""
import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from dailychallenge.core.config import settings
from dailychallenge.core.exceptions import DataSourceUnavailableError, EntityResolutionError
from dailychallenge.core.logging import clear_run_id, get_run_id, set_run_id
from dailychallenge.repositories import StatRepository
from dailychallenge.services.aggregation.aggregator import (
    RankedEntity,
    aggregate_records,
    merge_brand_ratings,
    rank_entities,
)
from dailychallenge.services.aggregation.entity_resolver import EntityResolver, SqlEntityResolver
from dailychallenge.services.aggregation.record_source import (
    CardQueryRecordSource,
    OrderRecord,
    RecordSource,
    filter_records_for_date,
)
from dailychallenge.services.aggregation.trend_provider import SqlTrendProvider, TrendProvider
from dailychallenge.services.scoring.brand_scoring import (
    BrandScoringInput,
    calculate_bayesian_average,
    score_brand,
)
from dailychallenge.services.scoring.entity_types import EntityType, get_all_entity_types
from dailychallenge.services.scoring.trend_scoring import ScoreBreakdown, TrendScoringInput, score_entity

logger = logging.getLogger(__name__)


@dataclass
class EntityTypeSummary:
    processed: int = 0
    skipped: int = 0


@dataclass
class AggregationSummary:
    stat_date: date
    total_orders: int
    per_entity_type: Dict[str, EntityTypeSummary] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stat_date": self.stat_date.isoformat(),
            "total_orders": self.total_orders,
            "per_entity_type": {
                entity_type: {"processed": summary.processed, "skipped": summary.skipped}
                for entity_type, summary in self.per_entity_type.items()
            },
        }


@dataclass
class AggregationOptions:
    """
    Per-run options.

    Attributes:
        logger: Optional structured logger exposing info/warn/error callables,
            sync or async, called as fn(message, data). Failures inside it
            are logged and ignored.
        entity_types: Restrict the run to these types (default: all five)
    """
    logger: Optional[Any] = None
    entity_types: Optional[Sequence[EntityType]] = None


class DailyAggregationOrchestrator:
    """
    Aggregates, ranks and scores all entity types for a date.

    Collaborators default to the SQL/HTTP implementations and can be
    replaced for tests or alternate sources.
    """

    def __init__(
        self,
        db: Session,
        record_source: Optional[RecordSource] = None,
        resolver: Optional[EntityResolver] = None,
        trend_provider: Optional[TrendProvider] = None,
        concurrency: Optional[int] = None,
        tz_name: Optional[str] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            db: SQLAlchemy database session (committed once per run)
            record_source: Raw order provider (default: card query client)
            resolver: Name -> entity id resolver (default: entities table)
            trend_provider: Trend history provider (default: SQL tables)
            concurrency: Max in-flight per-entity pipelines per type
            tz_name: Zone used to match order timestamps to stat_date
        """
        self.db = db
        self.record_source = record_source or CardQueryRecordSource()
        self.resolver = resolver or SqlEntityResolver(db)
        self.trend_provider = trend_provider or SqlTrendProvider(db)
        self.concurrency = concurrency or settings.AGGREGATION_CONCURRENCY
        self.tz_name = tz_name
        self.stats = StatRepository(db)

    async def aggregate_for_date(
        self,
        stat_date: date,
        options: Optional[AggregationOptions] = None,
    ) -> AggregationSummary:
        """
        Aggregate every entity type for stat_date.

        Raises:
            DataSourceUnavailableError: Neither record query succeeded
        """
        options = options or AggregationOptions()
        token = None
        if not get_run_id():
            token = set_run_id(f"agg-{stat_date.isoformat()}-{uuid.uuid4().hex[:8]}")

        try:
            await self._emit(options, "info", f"Starting aggregation for {stat_date}")
            records = await self._fetch_records(stat_date, options)

            entity_types = [EntityType(t) for t in (options.entity_types or get_all_entity_types())]
            results = await asyncio.gather(
                *(self._run_pipeline(entity_type, stat_date, records, options) for entity_type in entity_types)
            )
            self.db.commit()

            summary = AggregationSummary(
                stat_date=stat_date,
                total_orders=len(records),
                per_entity_type={t.value: result for t, result in zip(entity_types, results)},
            )
            await self._emit(options, "info", f"Aggregation complete for {stat_date}", summary.to_dict())
            return summary
        finally:
            if token is not None:
                clear_run_id(token)

    # ========================================================================
    # Record Fetching
    # ========================================================================

    async def _fetch_records(self, stat_date: date, options: AggregationOptions) -> List[OrderRecord]:
        try:
            records = await self.record_source.fetch_records_for_date(stat_date)
            await self._emit(options, "info", f"Date-filtered query returned {len(records)} orders")
            return records
        except Exception as e:
            await self._emit(
                options, "warn", "Date-filtered query failed, falling back to client-side filtering",
                {"error": str(e)},
            )

        try:
            all_records = await self.record_source.fetch_all_records()
        except Exception as e:
            await self._emit(options, "error", f"All-orders query failed for {stat_date}", {"error": str(e)})
            raise DataSourceUnavailableError(stat_date, e) from e

        records = filter_records_for_date(all_records, stat_date, self.tz_name)
        await self._emit(options, "info", f"Filtered {len(all_records)} orders to {len(records)} for {stat_date}")
        return records

    # ========================================================================
    # Per-Type Pipeline
    # ========================================================================

    async def _run_pipeline(
        self,
        entity_type: EntityType,
        stat_date: date,
        records: List[OrderRecord],
        options: AggregationOptions,
    ) -> EntityTypeSummary:
        aggregates = aggregate_records(records, entity_type)

        if entity_type is EntityType.BRAND:
            try:
                ratings = await self.record_source.fetch_brand_ratings()
            except Exception as e:
                await self._emit(options, "error", "Brand ratings fetch failed", {"error": str(e)})
                return EntityTypeSummary()
            aggregates = merge_brand_ratings(aggregates, ratings)

        ranked = rank_entities(aggregates, entity_type)
        if not ranked:
            await self._emit(options, "info", f"No {entity_type.value} activity for {stat_date}")
            return EntityTypeSummary()

        semaphore = asyncio.Semaphore(self.concurrency)
        outcomes = await asyncio.gather(
            *(self._process_entity(entity_type, entry, stat_date, semaphore, options) for entry in ranked)
        )

        summary = EntityTypeSummary(processed=sum(outcomes), skipped=len(outcomes) - sum(outcomes))
        await self._emit(
            options, "info",
            f"{entity_type.value}: {summary.processed} processed, {summary.skipped} skipped",
        )
        return summary

    async def _process_entity(
        self,
        entity_type: EntityType,
        entry: RankedEntity,
        stat_date: date,
        semaphore: asyncio.Semaphore,
        options: AggregationOptions,
    ) -> bool:
        """Resolve, score and persist one ranked entity. Returns False when skipped."""
        async with semaphore:
            try:
                entity_id = await self.resolver.resolve(entity_type, entry.name)
                if entity_id is None:
                    raise EntityResolutionError(entity_type.value, entry.name)

                trend = await self.trend_provider.get_trend(
                    entity_type, entity_id, entry.name, stat_date, entry.rank
                )
                breakdown = self._score(entity_type, entry, trend)
                values = self._stat_values(entity_type, entity_id, stat_date, entry, breakdown)
                # No await inside the savepoint: sibling pipelines share this session
                with self.db.begin_nested():
                    self.stats.upsert_stat(values)
                return True
            except EntityResolutionError as e:
                await self._emit(options, "warn", str(e))
                return False
            except Exception as e:
                logger.exception(f"Failed to score {entity_type.value} '{entry.name}'")
                await self._emit(
                    options, "error", f"Skipped {entity_type.value} '{entry.name}'", {"error": str(e)}
                )
                return False

    def _score(self, entity_type: EntityType, entry: RankedEntity, trend) -> ScoreBreakdown:
        counters = entry.counters
        if entity_type is EntityType.BRAND:
            if counters.bayesian_average <= 0 and counters.total_ratings > 0:
                counters.bayesian_average = calculate_bayesian_average(
                    counters.average_rating, counters.total_ratings
                )
            return score_brand(BrandScoringInput(
                total_ratings=counters.total_ratings,
                average_rating=counters.average_rating,
                bayesian_average=counters.bayesian_average,
                current_rank=entry.rank,
                previous_rank=trend.previous_rank,
                streak_days=trend.streak_days,
            ))

        return score_entity(TrendScoringInput(
            entity_type=entity_type,
            volume=counters.volume,
            order_count=counters.order_count,
            revenue_cents=counters.revenue_cents,
            current_rank=entry.rank,
            days1=trend.days1,
            days7=trend.days7,
            days14=trend.days14,
            previous_rank=trend.previous_rank,
            streak_days=trend.streak_days,
            market_share_percent=trend.market_share_percent,
            daily_volumes=trend.daily_volumes,
        ))

    @staticmethod
    def _stat_values(
        entity_type: EntityType,
        entity_id: int,
        stat_date: date,
        entry: RankedEntity,
        breakdown: ScoreBreakdown,
    ) -> Dict[str, Any]:
        counters = entry.counters
        is_brand = entity_type is EntityType.BRAND
        return {
            "entity_type": entity_type.value,
            "entity_id": entity_id,
            "stat_date": stat_date,
            "volume": counters.volume,
            "order_count": counters.order_count,
            "revenue_cents": counters.revenue_cents,
            "total_ratings": counters.total_ratings if is_brand else None,
            "average_rating": counters.average_rating if is_brand else None,
            "bayesian_average": counters.bayesian_average if is_brand else None,
            "rank": entry.rank,
            "previous_rank": breakdown.previous_rank,
            "trend_multiplier": breakdown.trend_multiplier,
            "consistency_score": breakdown.consistency_score,
            "velocity_score": breakdown.velocity_score,
            "streak_days": breakdown.streak_days,
            "market_share_percent": breakdown.market_share_percent,
            "base_points": breakdown.base_points,
            "rank_bonus_points": breakdown.rank_bonus,
            "trend_bonus_points": breakdown.trend_bonus,
            "total_points": breakdown.total_points,
        }

    # ========================================================================
    # Logging
    # ========================================================================

    async def _emit(
        self,
        options: AggregationOptions,
        level: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log via the module logger and the caller's optional structured logger."""
        log_level = {"info": logging.INFO, "warn": logging.WARNING, "error": logging.ERROR}[level]
        logger.log(log_level, message, extra={"data": data} if data else None)

        if options.logger is None:
            return

        callback = getattr(options.logger, level, None)
        if callback is None and level == "warn":
            callback = getattr(options.logger, "warning", None)
        if callback is None:
            return

        try:
            result = callback(message, data)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Aggregation logger callback failed: {e}")

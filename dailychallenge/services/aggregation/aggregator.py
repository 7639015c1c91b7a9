"""
Per-entity aggregation and ranking.

Pure functions over parsed order records:

    records --aggregate_records--> {name: EntityCounters} --rank_entities--> [RankedEntity]

Ranking:
- Descending by the type's primary metric (volume, revenue_cents or
  total_ratings, see entity_types)
- Stable: ties keep first-seen order from aggregation
- rank is the 1-based position in the full sorted list. Entities that later
  fail to resolve are skipped without renumbering the rest.
"""
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Iterable, List

from dailychallenge.services.aggregation.record_source import BrandRatings, OrderRecord
from dailychallenge.services.scoring.entity_types import EntityType, get_entity_type_config


@dataclass
class EntityCounters:
    """Summed daily counters for one entity."""
    name: str
    volume: float = 0.0
    order_count: int = 0
    revenue_cents: int = 0

    # Brands only
    total_ratings: int = 0
    average_rating: float = 0.0
    bayesian_average: float = 0.0


@dataclass
class RankedEntity:
    rank: int
    counters: EntityCounters

    @property
    def name(self) -> str:
        return self.counters.name


def to_cents(amount) -> int:
    """
    Convert a currency amount to integer cents, rounding half away from zero.

    Goes through str() so binary float error does not flip the rounding:
    to_cents(2.675) == 268, to_cents(-0.005) == -1. NaN and
    infinities count as 0.
    """
    if amount is None or amount == "":
        return 0
    try:
        cents = Decimal(str(amount)) * 100
    except InvalidOperation:
        return 0
    if not cents.is_finite():
        return 0
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def aggregate_records(records: Iterable[OrderRecord], entity_type: EntityType) -> Dict[str, EntityCounters]:
    """
    Group records by the type's entity name and sum their counters.

    Records without a name for this type are dropped. Dict order is
    first-seen order.
    """
    config = get_entity_type_config(entity_type)
    aggregates: Dict[str, EntityCounters] = {}

    for record in records:
        name = config.record_name(record)
        if not name:
            continue

        counters = aggregates.get(name)
        if counters is None:
            counters = aggregates[name] = EntityCounters(name=name)

        if record.quantity and math.isfinite(record.quantity):
            counters.volume += record.quantity
        counters.order_count += 1
        counters.revenue_cents += to_cents(record.total_price)

    return aggregates


def merge_brand_ratings(
    aggregates: Dict[str, EntityCounters],
    ratings: Iterable[BrandRatings],
) -> Dict[str, EntityCounters]:
    """
    Attach rating counters to brand aggregates.

    Only brands with at least one rating are kept (unrated brands are not
    ranked). Order follows the ratings feed; order-derived counters carry
    over where the brand also appears in today's records.
    """
    merged: Dict[str, EntityCounters] = {}
    for rating in ratings:
        if rating.total_ratings <= 0 or rating.name in merged:
            continue
        counters = aggregates.get(rating.name) or EntityCounters(name=rating.name)
        counters.total_ratings = rating.total_ratings
        counters.average_rating = rating.average_rating
        counters.bayesian_average = rating.bayesian_average
        merged[rating.name] = counters
    return merged


def rank_entities(aggregates: Dict[str, EntityCounters], entity_type: EntityType) -> List[RankedEntity]:
    """Rank aggregates by the type's primary metric (stable, descending)."""
    config = get_entity_type_config(entity_type)
    ordered = sorted(aggregates.values(), key=config.primary_metric, reverse=True)
    return [RankedEntity(rank=index + 1, counters=counters) for index, counters in enumerate(ordered)]

"""
Entity type configuration for daily rankings.

This module centralizes everything that differs between the five ranked
entity types:
- Which order record field carries the entity's display name
- The primary metric the ranker sorts by
- Base point multipliers (volume multiplier, order weight, revenue scoring)
- The rank bonus tier table

The aggregator, ranker and scoring engine look up an EntityTypeConfig
instead of branching on type names.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union


class EntityType(str, Enum):
    """Ranked marketplace entity types."""
    MANUFACTURER = "manufacturer"
    STRAIN = "strain"
    PRODUCT = "product"
    PHARMACY = "pharmacy"
    BRAND = "brand"


# (max_rank, points) pairs, checked in order; ranks beyond the last tier score 0
MAJOR_RANK_TIERS: Tuple[Tuple[int, int], ...] = ((1, 50), (2, 30), (3, 20), (5, 15), (10, 10))
MINOR_RANK_TIERS: Tuple[Tuple[int, int], ...] = ((1, 40), (2, 25), (3, 15), (5, 10), (10, 5))


@dataclass(frozen=True)
class EntityTypeConfig:
    """
    Complete configuration for one entity type.

    record_name and primary_metric are accessors, so a new type only needs
    a new config entry.
    """
    entity_type: EntityType
    label: str

    # Aggregation
    record_name: Callable[[Any], Optional[str]]  # OrderRecord -> display name
    primary_metric: Callable[[Any], float]  # EntityCounters -> ranking key
    primary_metric_name: str

    # Base points
    volume_multiplier: int
    order_weight: int
    revenue_scored: bool

    # Rank bonus
    rank_tiers: Tuple[Tuple[int, int], ...]

    # Brands are scored from ratings and carry no trend bonus
    uses_trend: bool = True


# =============================================================================
# ENTITY TYPE CONFIGURATIONS
# =============================================================================

ENTITY_TYPE_CONFIGS: Dict[EntityType, EntityTypeConfig] = {
    EntityType.MANUFACTURER: EntityTypeConfig(
        entity_type=EntityType.MANUFACTURER,
        label="Manufacturer",
        record_name=lambda record: record.manufacturer,
        primary_metric=lambda counters: counters.volume,
        primary_metric_name="volume",
        volume_multiplier=1,
        order_weight=5,
        revenue_scored=True,
        rank_tiers=MAJOR_RANK_TIERS,
    ),
    EntityType.STRAIN: EntityTypeConfig(
        entity_type=EntityType.STRAIN,
        label="Strain",
        record_name=lambda record: record.strain,
        primary_metric=lambda counters: counters.volume,
        primary_metric_name="volume",
        volume_multiplier=2,
        order_weight=10,
        revenue_scored=False,
        rank_tiers=MINOR_RANK_TIERS,
    ),
    EntityType.PRODUCT: EntityTypeConfig(
        entity_type=EntityType.PRODUCT,
        label="Product",
        record_name=lambda record: record.product,
        primary_metric=lambda counters: counters.volume,
        primary_metric_name="volume",
        volume_multiplier=3,
        order_weight=15,
        revenue_scored=False,
        rank_tiers=MAJOR_RANK_TIERS,
    ),
    EntityType.PHARMACY: EntityTypeConfig(
        entity_type=EntityType.PHARMACY,
        label="Pharmacy",
        record_name=lambda record: record.pharmacy,
        primary_metric=lambda counters: counters.revenue_cents,
        primary_metric_name="revenue_cents",
        volume_multiplier=1,
        order_weight=5,
        revenue_scored=True,
        rank_tiers=MINOR_RANK_TIERS,
    ),
    EntityType.BRAND: EntityTypeConfig(
        entity_type=EntityType.BRAND,
        label="Brand",
        record_name=lambda record: record.brand,
        primary_metric=lambda counters: counters.total_ratings,
        primary_metric_name="total_ratings",
        volume_multiplier=1,
        order_weight=5,
        revenue_scored=False,
        rank_tiers=MAJOR_RANK_TIERS,
        uses_trend=False,
    ),
}

_missing = set(EntityType) - set(ENTITY_TYPE_CONFIGS)
if _missing:
    raise RuntimeError(f"Missing entity type configs: {sorted(t.value for t in _missing)}")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_entity_type_config(entity_type: Union[EntityType, str]) -> EntityTypeConfig:
    """
    Get configuration for an entity type.

    Raises:
        ValueError: If entity_type is not a known type
    """
    return ENTITY_TYPE_CONFIGS[EntityType(entity_type)]


def get_all_entity_types() -> list[EntityType]:
    """Entity types in pipeline order."""
    return list(EntityType)


def rank_bonus_for(rank: int, tiers: Tuple[Tuple[int, int], ...]) -> int:
    """Points for a final rank; unranked (rank <= 0) scores 0."""
    if rank is None or rank <= 0:
        return 0
    for max_rank, points in tiers:
        if rank <= max_rank:
            return points
    return 0

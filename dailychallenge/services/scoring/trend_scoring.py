"""
Trend-based scoring engine for ranked entities.

Points for one entity on one date:

    total_points = base_points + rank_bonus + trend_bonus

Base Points:
- floor(volume / 10) x volume multiplier (manufacturer/pharmacy 1, strain 2, product 3)
- order_count x order weight (5 / 10 / 15)
- floor(revenue_cents / 1000) for manufacturers and pharmacies

Rank Bonus:
- manufacturer/product/brand: 1:50, 2:30, 3:20, 4-5:15, 6-10:10
- strain/pharmacy:            1:40, 2:25, 3:15, 4-5:10, 6-10:5

Trend Sub-scores:
- trend_multiplier: days1 / (days7 / 7), clamped to [1.0, 5.0]
  (no 7-day history but sales today: 5.0, new-release hype)
- consistency_score (0-100): min(70, streak x 7) + stability (0-30) from the
  coefficient of variation of the trailing week's daily volumes
- velocity_score (-50..100): week-over-week momentum x 50

Trend Bonus:
- floor((trend_multiplier - 1) x 25)
- + min(20, floor(consistency x 0.2))
- + min(15, max(0, floor(velocity x 0.15)))

Every term is non-negative and non-decreasing in its sub-score, so better
trend data never lowers total_points. Missing inputs are treated as 0 and
the engine never raises on them.
"""
import math
from dataclasses import dataclass, field, asdict
from typing import List, Optional

from dailychallenge.services.scoring.entity_types import (
    EntityType,
    get_entity_type_config,
    rank_bonus_for,
)

NEUTRAL_MULTIPLIER = 1.0
MAX_TREND_MULTIPLIER = 5.0

MAX_STREAK_POINTS = 70
STREAK_POINTS_PER_DAY = 7
MAX_STABILITY_POINTS = 30
MIN_VOLUMES_FOR_STABILITY = 3

MIN_VELOCITY = -50
MAX_VELOCITY = 100
VELOCITY_SCALE = 50

MULTIPLIER_BONUS_PER_STEP = 25
MAX_CONSISTENCY_BONUS = 20
MAX_VELOCITY_BONUS = 15


@dataclass
class TrendScoringInput:
    """Everything the engine needs for one entity. Optional numerics default to 0."""
    entity_type: EntityType
    volume: float = 0
    order_count: int = 0
    revenue_cents: int = 0
    current_rank: int = 0
    days1: float = 0
    days7: float = 0
    days14: Optional[float] = None
    previous_rank: int = 0
    streak_days: int = 0
    market_share_percent: float = 0.0
    daily_volumes: List[float] = field(default_factory=list)

    # Precomputed sub-scores from the trend feed, used when present
    trend_multiplier: Optional[float] = None
    consistency_score: Optional[int] = None
    velocity_score: Optional[int] = None


@dataclass
class ScoreBreakdown:
    """Auditable point breakdown persisted alongside the stat row."""
    base_points: int
    volume_points: int
    order_points: int
    revenue_points: int
    rank_bonus: int
    trend_bonus: int
    trend_multiplier: float
    consistency_score: int
    velocity_score: int
    market_share_percent: float
    streak_days: int
    previous_rank: int
    total_points: int

    def to_dict(self) -> dict:
        return asdict(self)


def to_number(value, default=0):
    """Coerce None/NaN/garbage to a number."""
    if value is None:
        return default
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(value) or math.isinf(value):
        return default
    return value


def _clamp(value, low, high):
    return max(low, min(high, value))


# =============================================================================
# COMPONENT CALCULATIONS
# =============================================================================

def calculate_base_points(
    entity_type: EntityType,
    volume: float,
    order_count: int,
    revenue_cents: int,
) -> tuple[int, int, int, int]:
    """
    Calculate base points for an entity.

    Returns:
        (base_points, volume_points, order_points, revenue_points)
    """
    config = get_entity_type_config(entity_type)

    volume_points = math.floor(max(0.0, to_number(volume)) / 10) * config.volume_multiplier
    order_points = int(max(0.0, to_number(order_count))) * config.order_weight
    revenue_points = 0
    if config.revenue_scored:
        revenue_points = int(max(0.0, to_number(revenue_cents)) // 1000)

    return volume_points + order_points + revenue_points, volume_points, order_points, revenue_points


def calculate_rank_bonus(entity_type: EntityType, rank: int) -> int:
    """Tiered bonus for the final rank. Non-increasing as rank worsens."""
    config = get_entity_type_config(entity_type)
    return rank_bonus_for(int(to_number(rank)), config.rank_tiers)


def calculate_trend_multiplier(
    days1: float,
    days7: float,
    precomputed: Optional[float] = None,
) -> float:
    """
    Today's volume relative to the trailing 7-day daily average.

    Never below 1.0: a multiplier is "no worse than neutral", never a
    penalty.

    Examples:
        >>> calculate_trend_multiplier(20, 70)   # 2x the daily average
        2.0
        >>> calculate_trend_multiplier(5, 0)     # brand new, no history
        5.0
        >>> calculate_trend_multiplier(0, 0)
        1.0
    """
    precomputed = to_number(precomputed)
    if precomputed > 0:
        return round(_clamp(precomputed, NEUTRAL_MULTIPLIER, MAX_TREND_MULTIPLIER), 2)

    days1 = max(0.0, to_number(days1))
    days7 = max(0.0, to_number(days7))

    if days1 <= 0 and days7 <= 0:
        return NEUTRAL_MULTIPLIER
    if days7 <= 0:
        # Sales today with no history: new release hype
        return MAX_TREND_MULTIPLIER

    ratio = days1 / (days7 / 7)
    return round(_clamp(ratio, NEUTRAL_MULTIPLIER, MAX_TREND_MULTIPLIER), 2)


def calculate_stability_points(daily_volumes: List[float]) -> int:
    """
    0-30 points for steady daily volume (low coefficient of variation).

    Needs at least three days of data; fewer scores 0.
    """
    volumes = [max(0.0, to_number(v)) for v in daily_volumes or []]
    if len(volumes) < MIN_VOLUMES_FOR_STABILITY:
        return 0

    mean = sum(volumes) / len(volumes)
    if mean <= 0:
        return 0

    variance = sum((v - mean) ** 2 for v in volumes) / len(volumes)
    cv = math.sqrt(variance) / mean
    return int(_clamp(math.floor((1 - cv) * MAX_STABILITY_POINTS), 0, MAX_STABILITY_POINTS))


def calculate_consistency_score(
    streak_days: int,
    daily_volumes: Optional[List[float]] = None,
    precomputed: Optional[int] = None,
) -> int:
    """Consistency (0-100). Non-decreasing in streak_days."""
    if precomputed is not None:
        return int(_clamp(to_number(precomputed), 0, 100))

    streak_points = min(MAX_STREAK_POINTS, int(max(0.0, to_number(streak_days))) * STREAK_POINTS_PER_DAY)
    return streak_points + calculate_stability_points(daily_volumes or [])


def calculate_velocity_score(
    days7: float,
    days14: Optional[float],
    precomputed: Optional[int] = None,
) -> int:
    """
    Week-over-week momentum (-50..100).

    momentum = (this week's daily average - last week's daily average)
               / last week's daily average (or / 1 when last week is empty)
    """
    if precomputed is not None:
        return int(_clamp(to_number(precomputed), MIN_VELOCITY, MAX_VELOCITY))

    days14 = to_number(days14)
    if days14 <= 0:
        return 0

    days7 = max(0.0, to_number(days7))
    recent_avg = days7 / 7
    prior_avg = max(0.0, days14 - days7) / 7

    momentum = (recent_avg - prior_avg) / prior_avg if prior_avg > 0 else recent_avg - prior_avg
    return int(_clamp(round(momentum * VELOCITY_SCALE), MIN_VELOCITY, MAX_VELOCITY))


def calculate_market_share(entity_days7: float, total_days7: float) -> float:
    """Entity share of the category's 7-day volume, in percent (2 decimals)."""
    total_days7 = to_number(total_days7)
    if total_days7 <= 0:
        return 0.0
    return round(max(0.0, to_number(entity_days7)) / total_days7 * 100, 2)


def calculate_trend_bonus(trend_multiplier: float, consistency_score: int, velocity_score: int) -> int:
    """Blend the three trend sub-scores into bonus points (0-135)."""
    multiplier_points = math.floor((max(NEUTRAL_MULTIPLIER, to_number(trend_multiplier)) - 1) * MULTIPLIER_BONUS_PER_STEP)
    consistency_points = min(MAX_CONSISTENCY_BONUS, math.floor(max(0.0, to_number(consistency_score)) * 0.2))
    velocity_points = min(MAX_VELOCITY_BONUS, max(0, math.floor(to_number(velocity_score) * 0.15)))
    return multiplier_points + consistency_points + velocity_points


# =============================================================================
# ENGINE
# =============================================================================

def score_entity(data: TrendScoringInput) -> ScoreBreakdown:
    """Score one volume-based entity (manufacturer, strain, product, pharmacy)."""
    base_points, volume_points, order_points, revenue_points = calculate_base_points(
        data.entity_type, data.volume, data.order_count, data.revenue_cents
    )
    rank_bonus = calculate_rank_bonus(data.entity_type, data.current_rank)

    trend_multiplier = calculate_trend_multiplier(data.days1, data.days7, data.trend_multiplier)
    consistency_score = calculate_consistency_score(
        data.streak_days, data.daily_volumes, data.consistency_score
    )
    velocity_score = calculate_velocity_score(data.days7, data.days14, data.velocity_score)
    trend_bonus = calculate_trend_bonus(trend_multiplier, consistency_score, velocity_score)

    return ScoreBreakdown(
        base_points=base_points,
        volume_points=volume_points,
        order_points=order_points,
        revenue_points=revenue_points,
        rank_bonus=rank_bonus,
        trend_bonus=trend_bonus,
        trend_multiplier=trend_multiplier,
        consistency_score=consistency_score,
        velocity_score=velocity_score,
        market_share_percent=round(max(0.0, to_number(data.market_share_percent)), 2),
        streak_days=int(max(0.0, to_number(data.streak_days))),
        previous_rank=int(max(0.0, to_number(data.previous_rank))),
        total_points=base_points + rank_bonus + trend_bonus,
    )

"""
Brand scoring from user ratings.

Brands are scored from engagement, not sales:
- Rating count: 10 points per rating
- Rating quality: floor(bayesian_average x 20), i.e. 20 points per star.
  The Bayesian average keeps a handful of 5-star ratings from outscoring
  a well-rated brand with many reviews.
- Rank bonus: manufacturer tier table (1:50, 2:30, 3:20, 4-5:15, 6-10:10)

No volume, order or trend terms.
"""
import math
from dataclasses import dataclass
from typing import Optional

from dailychallenge.services.scoring.entity_types import EntityType
from dailychallenge.services.scoring.trend_scoring import (
    NEUTRAL_MULTIPLIER,
    ScoreBreakdown,
    to_number,
    calculate_rank_bonus,
)

POINTS_PER_RATING = 10
POINTS_PER_STAR = 20


@dataclass
class BrandScoringInput:
    total_ratings: int = 0
    average_rating: float = 0.0
    bayesian_average: float = 0.0
    current_rank: int = 0
    previous_rank: int = 0
    streak_days: int = 0


def calculate_bayesian_average(
    average_rating: float,
    total_ratings: int,
    prior_mean: float = 3.0,
    prior_weight: int = 10,
) -> float:
    """
    Shrink a raw average toward prior_mean by prior_weight pseudo-ratings.

    Used when the ratings feed omits a precomputed Bayesian average.

    Example:
        >>> calculate_bayesian_average(5.0, 2)
        3.33
    """
    count = max(0, int(to_number(total_ratings)))
    if count == 0:
        return 0.0
    return round((prior_mean * prior_weight + to_number(average_rating) * count) / (prior_weight + count), 2)


def score_brand(data: BrandScoringInput, bayesian_average: Optional[float] = None) -> ScoreBreakdown:
    """Score a brand for one date."""
    total_ratings = max(0, int(to_number(data.total_ratings)))
    bayesian = to_number(bayesian_average if bayesian_average is not None else data.bayesian_average)

    rating_points = total_ratings * POINTS_PER_RATING
    quality_points = math.floor(max(0.0, bayesian) * POINTS_PER_STAR)
    rank_bonus = calculate_rank_bonus(EntityType.BRAND, data.current_rank)
    base_points = rating_points + quality_points

    return ScoreBreakdown(
        base_points=base_points,
        volume_points=0,
        order_points=0,
        revenue_points=0,
        rank_bonus=rank_bonus,
        trend_bonus=0,
        trend_multiplier=NEUTRAL_MULTIPLIER,
        consistency_score=0,
        velocity_score=0,
        market_share_percent=0.0,
        streak_days=max(0, int(to_number(data.streak_days))),
        previous_rank=max(0, int(to_number(data.previous_rank))),
        total_points=base_points + rank_bonus,
    )

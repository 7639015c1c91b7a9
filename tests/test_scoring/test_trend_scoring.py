"""Unit tests for the trend-based scoring engine.

Test Strategy:
1. Test base points per entity type (multipliers, order weights, revenue)
2. Test rank bonus tiers and that they never increase as rank worsens
3. Test trend multiplier bounds (never below 1.0, never above 5.0)
4. Test consistency, velocity and trend bonus sub-scores
5. Test score_entity() end to end against known examples
6. Test robustness against missing / garbage inputs

Each test follows the pattern:
- Given: Entity counters and trend inputs
- When: A scoring function is called
- Then: Points match the documented formula
"""
import math

import pytest

from dailychallenge.services.scoring.entity_types import EntityType, get_entity_type_config
from dailychallenge.services.scoring.trend_scoring import (
    TrendScoringInput,
    calculate_base_points,
    calculate_consistency_score,
    calculate_market_share,
    calculate_rank_bonus,
    calculate_stability_points,
    calculate_trend_bonus,
    calculate_trend_multiplier,
    calculate_velocity_score,
    score_entity,
    to_number,
)


class TestBasePoints:
    """Base points from volume, orders and revenue."""

    def test_manufacturer_example(self):
        """437g, 12 orders, 52300 cents -> 43 + 60 + 52 = 155."""
        base, volume, orders, revenue = calculate_base_points(EntityType.MANUFACTURER, 437, 12, 52300)

        assert (volume, orders, revenue) == (43, 60, 52)
        assert base == 155

    def test_strain_doubles_volume_and_ignores_revenue(self):
        """Strain: floor(437/10) x 2 = 86, 12 x 10 = 120, no revenue term."""
        base, volume, orders, revenue = calculate_base_points(EntityType.STRAIN, 437, 12, 52300)

        assert (volume, orders, revenue) == (86, 120, 0)
        assert base == 206

    def test_product_triples_volume(self):
        base, volume, orders, _ = calculate_base_points(EntityType.PRODUCT, 100, 2, 0)

        assert volume == 30
        assert orders == 30
        assert base == 60

    def test_pharmacy_scores_revenue(self):
        base, _, _, revenue = calculate_base_points(EntityType.PHARMACY, 0, 0, 125000)

        assert revenue == 125
        assert base == 125

    def test_negative_and_missing_values_score_zero(self):
        base, _, _, _ = calculate_base_points(EntityType.MANUFACTURER, -50, None, "abc")
        assert base == 0


class TestRankBonus:
    """Tiered rank bonus."""

    @pytest.mark.parametrize("rank,expected", [(1, 50), (2, 30), (3, 20), (4, 15), (5, 15), (6, 10), (10, 10), (11, 0)])
    def test_major_tiers(self, rank, expected):
        assert calculate_rank_bonus(EntityType.MANUFACTURER, rank) == expected

    @pytest.mark.parametrize("rank,expected", [(1, 40), (2, 25), (3, 15), (5, 10), (10, 5), (11, 0)])
    def test_minor_tiers(self, rank, expected):
        assert calculate_rank_bonus(EntityType.STRAIN, rank) == expected

    def test_unranked_scores_zero(self):
        assert calculate_rank_bonus(EntityType.PRODUCT, 0) == 0
        assert calculate_rank_bonus(EntityType.PRODUCT, -3) == 0

    @pytest.mark.parametrize("entity_type", list(EntityType))
    def test_bonus_never_increases_as_rank_worsens(self, entity_type):
        bonuses = [calculate_rank_bonus(entity_type, rank) for rank in range(1, 30)]
        assert all(a >= b for a, b in zip(bonuses, bonuses[1:]))
        assert bonuses[-1] == 0


class TestTrendMultiplier:
    """days1 relative to the trailing 7-day daily average."""

    def test_double_the_daily_average(self):
        assert calculate_trend_multiplier(20, 70) == 2.0

    def test_below_average_clamps_to_neutral(self):
        assert calculate_trend_multiplier(3, 70) == 1.0

    def test_no_history_with_sales_is_new_release(self):
        assert calculate_trend_multiplier(5, 0) == 5.0

    def test_caps_at_five(self):
        assert calculate_trend_multiplier(500, 7) == 5.0

    def test_precomputed_value_is_clamped(self):
        assert calculate_trend_multiplier(0, 0, precomputed=0.4) == 1.0
        assert calculate_trend_multiplier(0, 0, precomputed=3.456) == 3.46
        assert calculate_trend_multiplier(0, 0, precomputed=12) == 5.0

    @pytest.mark.parametrize("days1,days7", [
        (0, 0), (None, None), (-5, -10), (float("nan"), 10), (0, 70), ("x", "y"), (float("inf"), 1),
    ])
    def test_never_zero_or_negative(self, days1, days7):
        """Multiplier is positive for every input combination, including all zeros."""
        multiplier = calculate_trend_multiplier(days1, days7)
        assert multiplier >= 1.0
        assert not math.isnan(multiplier)


class TestSubScores:
    """Consistency, velocity, market share and the trend bonus blend."""

    # Consistency
    # ─────────────────────────────────────────────────────────────

    def test_streak_points_cap_at_seventy(self):
        assert calculate_consistency_score(3) == 21
        assert calculate_consistency_score(10) == 70
        assert calculate_consistency_score(40) == 70

    def test_steady_volumes_earn_full_stability(self):
        assert calculate_stability_points([10, 10, 10, 10]) == 30

    def test_stability_needs_three_days(self):
        assert calculate_stability_points([10, 10]) == 0
        assert calculate_stability_points([]) == 0

    def test_volatile_volumes_earn_less_stability(self):
        assert calculate_stability_points([1, 20, 1, 20]) < calculate_stability_points([9, 11, 9, 11])

    def test_consistency_combines_streak_and_stability(self):
        assert calculate_consistency_score(2, [5, 5, 5]) == 14 + 30

    def test_precomputed_consistency_is_clamped(self):
        assert calculate_consistency_score(0, precomputed=150) == 100

    # Velocity
    # ─────────────────────────────────────────────────────────────

    def test_velocity_doubling_week(self):
        """This week 70 vs last week 35 -> momentum 1.0 -> 50."""
        assert calculate_velocity_score(70, 105) == 50

    def test_velocity_without_two_week_history_is_zero(self):
        assert calculate_velocity_score(70, None) == 0
        assert calculate_velocity_score(70, 0) == 0

    def test_velocity_is_bounded(self):
        assert calculate_velocity_score(0, 700) == -50
        assert calculate_velocity_score(70, 70) == 100

    # Market share
    # ─────────────────────────────────────────────────────────────

    def test_market_share_percent(self):
        assert calculate_market_share(25, 200) == 12.5
        assert calculate_market_share(25, 0) == 0.0

    # Trend bonus
    # ─────────────────────────────────────────────────────────────

    def test_trend_bonus_blend(self):
        """(2.0 - 1) x 25 + min(20, 50 x 0.2) + min(15, 40 x 0.15) = 25 + 10 + 6."""
        assert calculate_trend_bonus(2.0, 50, 40) == 41

    def test_neutral_trend_earns_nothing(self):
        assert calculate_trend_bonus(1.0, 0, 0) == 0

    def test_negative_velocity_never_subtracts(self):
        assert calculate_trend_bonus(1.0, 0, -50) == 0

    def test_trend_bonus_is_monotonic(self):
        """Better sub-scores never lower the bonus."""
        multipliers = [1.0, 1.5, 2.0, 3.0, 5.0]
        consistencies = [0, 20, 50, 100]
        velocities = [-50, 0, 40, 100]

        for m_low, m_high in zip(multipliers, multipliers[1:]):
            assert calculate_trend_bonus(m_low, 50, 40) <= calculate_trend_bonus(m_high, 50, 40)
        for c_low, c_high in zip(consistencies, consistencies[1:]):
            assert calculate_trend_bonus(2.0, c_low, 40) <= calculate_trend_bonus(2.0, c_high, 40)
        for v_low, v_high in zip(velocities, velocities[1:]):
            assert calculate_trend_bonus(2.0, 50, v_low) <= calculate_trend_bonus(2.0, 50, v_high)


class TestScoreEntity:
    """End-to-end scoring for volume-based entities."""

    def test_manufacturer_rank_one_example(self):
        """basePoints 155, rankBonus 50, totalPoints >= 205."""
        breakdown = score_entity(TrendScoringInput(
            entity_type=EntityType.MANUFACTURER,
            volume=437,
            order_count=12,
            revenue_cents=52300,
            current_rank=1,
        ))

        assert breakdown.base_points == 155
        assert breakdown.rank_bonus == 50
        assert breakdown.total_points >= 205
        assert breakdown.trend_multiplier == 1.0

    def test_strain_rank_eleven_example(self):
        breakdown = score_entity(TrendScoringInput(
            entity_type=EntityType.STRAIN,
            volume=437,
            order_count=12,
            revenue_cents=52300,
            current_rank=11,
        ))

        assert breakdown.base_points == 206
        assert breakdown.rank_bonus == 0

    def test_rank_one_never_scores_below_rank_eleven(self):
        """Identical entities: rank 1 total >= rank 11 total for every type."""
        for entity_type in EntityType:
            common = dict(entity_type=entity_type, volume=120, order_count=4, revenue_cents=9000,
                          days1=20, days7=70, days14=105, streak_days=2)
            top = score_entity(TrendScoringInput(current_rank=1, **common))
            eleventh = score_entity(TrendScoringInput(current_rank=11, **common))
            assert top.total_points >= eleventh.total_points

    def test_total_is_sum_of_parts(self):
        breakdown = score_entity(TrendScoringInput(
            entity_type=EntityType.PRODUCT,
            volume=90,
            order_count=3,
            current_rank=4,
            days1=20,
            days7=70,
            days14=105,
            streak_days=3,
            daily_volumes=[10, 10, 10, 10, 10, 10, 10],
        ))

        assert breakdown.total_points == breakdown.base_points + breakdown.rank_bonus + breakdown.trend_bonus
        assert breakdown.trend_multiplier == 2.0
        assert breakdown.consistency_score == 21 + 30
        assert breakdown.velocity_score == 50

    def test_better_trend_never_lowers_points(self):
        base = dict(entity_type=EntityType.STRAIN, volume=50, order_count=2, current_rank=3)
        flat = score_entity(TrendScoringInput(days1=10, days7=70, **base))
        hot = score_entity(TrendScoringInput(days1=30, days7=70, streak_days=5, **base))

        assert hot.total_points >= flat.total_points

    def test_all_missing_inputs_score_without_raising(self):
        breakdown = score_entity(TrendScoringInput(
            entity_type=EntityType.PHARMACY,
            volume=None,
            order_count=None,
            revenue_cents=None,
            current_rank=None,
            days1=None,
            days7=None,
            streak_days=None,
            market_share_percent=None,
            daily_volumes=None,
        ))

        assert breakdown.total_points == 0
        assert breakdown.trend_multiplier == 1.0

    def test_breakdown_serializes(self):
        breakdown = score_entity(TrendScoringInput(entity_type=EntityType.MANUFACTURER, volume=10, current_rank=1))
        data = breakdown.to_dict()

        assert data["total_points"] == breakdown.total_points
        assert set(data) >= {"base_points", "rank_bonus", "trend_bonus", "trend_multiplier"}


class TestToNumber:

    @pytest.mark.parametrize("value,expected", [(None, 0), ("12.5", 12.5), ("nope", 0), (float("nan"), 0), (3, 3.0)])
    def test_coercion(self, value, expected):
        assert to_number(value) == expected

    def test_custom_default(self):
        assert to_number(None, default=7) == 7


class TestEntityTypeConfig:

    def test_every_type_has_a_config(self):
        for entity_type in EntityType:
            assert get_entity_type_config(entity_type).entity_type is entity_type

    def test_lookup_by_string(self):
        assert get_entity_type_config("strain").volume_multiplier == 2

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            get_entity_type_config("dispensary")

"""Unit tests for ratings-based brand scoring.

Test Strategy:
1. Test the Bayesian average fallback
2. Test rating count, quality and rank bonus points
3. Test that brands carry no trend bonus
"""
import pytest

from dailychallenge.services.scoring.brand_scoring import (
    BrandScoringInput,
    calculate_bayesian_average,
    score_brand,
)


class TestBayesianAverage:

    def test_few_perfect_ratings_shrink_toward_prior(self):
        assert calculate_bayesian_average(5.0, 2) == 3.33

    def test_many_ratings_dominate_prior(self):
        assert calculate_bayesian_average(4.8, 1000) == pytest.approx(4.78, abs=0.01)

    def test_no_ratings_is_zero(self):
        assert calculate_bayesian_average(4.5, 0) == 0.0


class TestScoreBrand:

    def test_rating_and_quality_points(self):
        """12 ratings x 10 + floor(4.2 x 20) = 120 + 84, plus rank 1 bonus 50."""
        breakdown = score_brand(BrandScoringInput(total_ratings=12, bayesian_average=4.2, current_rank=1))

        assert breakdown.base_points == 204
        assert breakdown.rank_bonus == 50
        assert breakdown.total_points == 254

    def test_no_trend_terms(self):
        breakdown = score_brand(BrandScoringInput(total_ratings=3, bayesian_average=3.5, current_rank=2,
                                                  previous_rank=4, streak_days=2))

        assert breakdown.trend_bonus == 0
        assert breakdown.trend_multiplier == 1.0
        assert breakdown.previous_rank == 4
        assert breakdown.streak_days == 2

    def test_explicit_bayesian_average_overrides_input(self):
        breakdown = score_brand(BrandScoringInput(total_ratings=1, bayesian_average=1.0, current_rank=20),
                                bayesian_average=5.0)

        assert breakdown.base_points == 10 + 100
        assert breakdown.rank_bonus == 0

    def test_rank_eleven_gets_no_bonus(self):
        breakdown = score_brand(BrandScoringInput(total_ratings=5, bayesian_average=4.0, current_rank=11))
        assert breakdown.rank_bonus == 0

"""
Database models.

Usage:
    from dailychallenge.models import Entity, EntityDailyStat, Challenge
"""
from dailychallenge.models.models import (
    Base,
    Entity,
    EntityDailyStat,
    TrendMetric,
    Challenge,
    Team,
    DailyTeamScore,
    RosterAsset,
    LineupSlot,
    HalftimeSubstitution,
    AggregationJob,
)

__all__ = [
    "Base",
    "Entity",
    "EntityDailyStat",
    "TrendMetric",
    "Challenge",
    "Team",
    "DailyTeamScore",
    "RosterAsset",
    "LineupSlot",
    "HalftimeSubstitution",
    "AggregationJob",
]

"""
Repository module.

This module contains all repositories for data access.
"""

from dailychallenge.repositories.base import BaseRepository
from dailychallenge.repositories.entity_repository import EntityRepository
from dailychallenge.repositories.stat_repository import StatRepository
from dailychallenge.repositories.trend_repository import TrendRepository
from dailychallenge.repositories.challenge_repository import ChallengeRepository
from dailychallenge.repositories.lineup_repository import LineupRepository
from dailychallenge.repositories.job_repository import JobRepository

__all__ = [
    "BaseRepository",
    "EntityRepository",
    "StatRepository",
    "TrendRepository",
    "ChallengeRepository",
    "LineupRepository",
    "JobRepository",
]

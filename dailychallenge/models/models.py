"""
Database models for the daily challenge scoring service.

Architecture: unified entity tables
- One `entities` table for manufacturers, strains, products, pharmacies and brands
- One `entity_daily_stats` table keyed by (entity_type, entity_id, stat_date)
- Brand-only fields (ratings) are nullable columns
- Filter by entity_type for type-specific queries

All timestamps are naive UTC.
"""
from datetime import datetime
from sqlalchemy import (
    Column, String, Float, Integer, DateTime, Date, ForeignKey, Boolean, Text, Index,
    UniqueConstraint, JSON,
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


# =============================================================================
# ENTITIES & DAILY STATS
# =============================================================================

class Entity(Base):
    """
    Ranked marketplace participant.

    entity_type is one of: manufacturer, strain, product, pharmacy, brand.
    Display names from order records resolve against (entity_type, name).
    """
    __tablename__ = "entities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(20), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('entity_type', 'name', name='uq_entities_type_name'),
    )


class EntityDailyStat(Base):
    """
    One entity's counters, rank and score for a single calendar date.

    Re-aggregating a date overwrites the row in place.
    """
    __tablename__ = "entity_daily_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(20), nullable=False, index=True)
    entity_id = Column(Integer, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False, index=True)
    stat_date = Column(Date, nullable=False, index=True)

    # Counters
    volume = Column(Float, nullable=False, default=0)  # grams sold
    order_count = Column(Integer, nullable=False, default=0)
    revenue_cents = Column(Integer, nullable=False, default=0)

    # Brand-only rating counters
    total_ratings = Column(Integer, nullable=True)
    average_rating = Column(Float, nullable=True)
    bayesian_average = Column(Float, nullable=True)

    # Ranking & trend
    rank = Column(Integer, nullable=False)
    previous_rank = Column(Integer, nullable=False, default=0)  # 0 = unranked yesterday
    trend_multiplier = Column(Float, nullable=False, default=1.0)
    consistency_score = Column(Integer, nullable=False, default=0)
    velocity_score = Column(Integer, nullable=False, default=0)
    streak_days = Column(Integer, nullable=False, default=0)
    market_share_percent = Column(Float, nullable=False, default=0.0)

    # Points
    base_points = Column(Integer, nullable=False, default=0)
    rank_bonus_points = Column(Integer, nullable=False, default=0)
    trend_bonus_points = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    entity = relationship("Entity")

    __table_args__ = (
        UniqueConstraint('entity_type', 'entity_id', 'stat_date', name='uq_entity_daily_stats_key'),
        Index('ix_entity_daily_stats_history', 'entity_type', 'entity_id', 'stat_date'),
    )


class TrendMetric(Base):
    """
    Rolling-window volumes and ranks for an entity, loaded by the trend feed.

    days1..days90 are cumulative volumes over the trailing window.
    """
    __tablename__ = "trend_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(20), nullable=False, index=True)
    entity_name = Column(String(255), nullable=False)
    entity_id = Column(String(100), nullable=True)  # upstream identifier

    days1 = Column(Float, nullable=False, default=0)
    days7 = Column(Float, nullable=False, default=0)
    days14 = Column(Float, nullable=False, default=0)
    days30 = Column(Float, nullable=False, default=0)
    days60 = Column(Float, nullable=False, default=0)
    days90 = Column(Float, nullable=False, default=0)

    days1_rank = Column(Integer, nullable=False, default=0)
    days7_rank = Column(Integer, nullable=False, default=0)
    days14_rank = Column(Integer, nullable=False, default=0)
    days30_rank = Column(Integer, nullable=False, default=0)
    days60_rank = Column(Integer, nullable=False, default=0)
    days90_rank = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('entity_type', 'entity_name', name='uq_trend_metrics_type_name'),
    )


# =============================================================================
# DAILY CHALLENGES
# =============================================================================

class Challenge(Base):
    """
    Head-to-head daily challenge between two teams.

    Phase flags (is_halftime_passed, is_in_overtime) only ever move from
    False to True.
    """
    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default='draft', index=True)  # draft, locked, active, complete

    duration_hours = Column(Integer, nullable=False, default=24)
    challenge_start_time = Column(DateTime, nullable=True)
    challenge_end_time = Column(DateTime, nullable=True)
    halftime_at = Column(DateTime, nullable=True, index=True)

    halftime_score_team1 = Column(Integer, nullable=True)
    halftime_score_team2 = Column(Integer, nullable=True)
    is_halftime_passed = Column(Boolean, nullable=False, default=False)
    is_in_overtime = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    teams = relationship("Team", back_populates="challenge", order_by="Team.slot", cascade="all, delete-orphan")


class Team(Base):
    """One of the two participants in a challenge (slot 1 or 2)."""
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slot = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    challenge = relationship("Challenge", back_populates="teams")
    roster = relationship("RosterAsset", cascade="all, delete-orphan")
    lineup = relationship("LineupSlot", cascade="all, delete-orphan")


class DailyTeamScore(Base):
    """Accumulated points for a team on a challenge date."""
    __tablename__ = "daily_team_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True)
    stat_date = Column(Date, nullable=False)
    total_points = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('team_id', 'challenge_id', 'stat_date', name='uq_daily_team_scores_key'),
    )


class RosterAsset(Base):
    """An asset on a team's drafted pool. Substitutes must come from here."""
    __tablename__ = "roster_assets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    asset_type = Column(String(20), nullable=False)
    asset_id = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('team_id', 'asset_type', 'asset_id', name='uq_roster_assets_key'),
    )


class LineupSlot(Base):
    """Live lineup assignment: one asset per (team, position)."""
    __tablename__ = "lineup_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(String(20), nullable=False)  # mfg1, cstr2, flex, ...
    asset_type = Column(String(20), nullable=True)
    asset_id = Column(Integer, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('team_id', 'position', name='uq_lineup_slots_team_position'),
    )


class HalftimeSubstitution(Base):
    """
    Halftime lineup change, one row per (challenge, team, position).

    Re-substituting a position overwrites the row and bumps change_count.
    """
    __tablename__ = "halftime_substitutions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(String(20), nullable=False)
    old_asset_type = Column(String(20), nullable=False)
    old_asset_id = Column(Integer, nullable=False)
    new_asset_type = Column(String(20), nullable=False)
    new_asset_id = Column(Integer, nullable=False)
    change_count = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('challenge_id', 'team_id', 'position', name='uq_halftime_substitutions_key'),
    )


# =============================================================================
# JOB TRACKING
# =============================================================================

class AggregationJob(Base):
    """
    Tracks a submitted aggregation run.

    Status flow: pending -> running -> success | failed
    """
    __tablename__ = "aggregation_jobs"

    id = Column(String(36), primary_key=True)
    stat_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default='pending', index=True)
    summary = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    submitted_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)

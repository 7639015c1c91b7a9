"""
Challenge Repository for daily challenges, teams and team scores.

Phase flag writes are conditional UPDATEs so concurrent callers cannot
apply the same transition twice.

Usage:
    repo = ChallengeRepository(db)
    challenge = repo.find_by_id(7)
    if repo.mark_halftime_passed(7, 120, 95):
        repo.save()
"""
from datetime import date, datetime
from typing import List

from sqlalchemy import update

from dailychallenge.models import Challenge, DailyTeamScore, Team
from dailychallenge.repositories.base import BaseRepository
from dailychallenge.utils.timezone import utcnow

SNAPSHOT_ELIGIBLE_STATUSES = ("locked", "active")


class ChallengeRepository(BaseRepository[Challenge]):
    """Repository for Challenge, Team and DailyTeamScore."""

    def __init__(self, db):
        super().__init__(Challenge, db)

    # ========================================================================
    # Teams & Scores
    # ========================================================================

    def find_teams(self, challenge_id: int) -> List[Team]:
        """Teams in slot order (team 1 first)."""
        return (
            self.db.query(Team)
            .filter(Team.challenge_id == challenge_id)
            .order_by(Team.slot, Team.id)
            .all()
        )

    def get_team_score(self, team_id: int, challenge_id: int, stat_date: date) -> int:
        """Accumulated points for a team on a date (0 if not yet scored)."""
        score = (
            self.db.query(DailyTeamScore.total_points)
            .filter(
                DailyTeamScore.team_id == team_id,
                DailyTeamScore.challenge_id == challenge_id,
                DailyTeamScore.stat_date == stat_date,
            )
            .scalar()
        )
        return int(score or 0)

    def upsert_team_score(self, team_id: int, challenge_id: int, stat_date: date, total_points: int) -> None:
        stmt = self._dialect_insert(DailyTeamScore).values(
            team_id=team_id,
            challenge_id=challenge_id,
            stat_date=stat_date,
            total_points=total_points,
            updated_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["team_id", "challenge_id", "stat_date"],
            set_={"total_points": stmt.excluded.total_points, "updated_at": stmt.excluded.updated_at},
        )
        self.db.execute(stmt)

    # ========================================================================
    # Timings & Phase Transitions
    # ========================================================================

    def update_timings(
        self,
        challenge_id: int,
        start_time: datetime,
        end_time: datetime,
        halftime_at: datetime,
        duration_hours: int,
    ) -> bool:
        """Store derived timings and reset both phase flags."""
        result = self.db.execute(
            update(Challenge)
            .where(Challenge.id == challenge_id)
            .values(
                challenge_start_time=start_time,
                challenge_end_time=end_time,
                halftime_at=halftime_at,
                duration_hours=duration_hours,
                is_halftime_passed=False,
                is_in_overtime=False,
                halftime_score_team1=None,
                halftime_score_team2=None,
                updated_at=utcnow(),
            )
        )
        return result.rowcount > 0

    def mark_halftime_passed(self, challenge_id: int, score_team1: int, score_team2: int) -> bool:
        """
        Freeze halftime scores unless another caller already did.

        Returns:
            True if this call performed the transition
        """
        result = self.db.execute(
            update(Challenge)
            .where(Challenge.id == challenge_id, Challenge.is_halftime_passed.is_(False))
            .values(
                halftime_score_team1=score_team1,
                halftime_score_team2=score_team2,
                is_halftime_passed=True,
                updated_at=utcnow(),
            )
        )
        return result.rowcount == 1

    def mark_overtime(self, challenge_id: int) -> bool:
        result = self.db.execute(
            update(Challenge)
            .where(
                Challenge.id == challenge_id,
                Challenge.is_in_overtime.is_(False),
                Challenge.status != "complete",
            )
            .values(is_in_overtime=True, updated_at=utcnow())
        )
        return result.rowcount == 1

    def mark_complete(self, challenge_id: int) -> bool:
        result = self.db.execute(
            update(Challenge)
            .where(Challenge.id == challenge_id, Challenge.status != "complete")
            .values(status="complete", updated_at=utcnow())
        )
        return result.rowcount == 1

    # ========================================================================
    # Scheduler Queries
    # ========================================================================

    def find_due_for_snapshot(self, now: datetime) -> List[Challenge]:
        """Locked/active challenges whose halftime has passed but not been snapshotted."""
        return (
            self.query()
            .filter(
                Challenge.status.in_(SNAPSHOT_ELIGIBLE_STATUSES),
                Challenge.halftime_at.isnot(None),
                Challenge.halftime_at <= now,
                Challenge.is_halftime_passed.is_(False),
            )
            .order_by(Challenge.halftime_at)
            .all()
        )

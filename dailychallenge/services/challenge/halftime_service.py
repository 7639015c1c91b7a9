"""
Halftime service for daily challenges.

Responsibilities:
- Derive and store challenge timings (start, halftime, end)
- Take the halftime snapshot exactly once per challenge
- Report phase, frozen scores and Power Hour status
- Forward-only overtime/complete transitions

Snapshot Rules:
- Only once wall-clock time has reached halftime_at
- Reads each team's accumulated score for the challenge start date
  (local), 0 when not yet scored
- Freezes the scores with a conditional UPDATE ... WHERE
  is_halftime_passed = false; a caller that loses the race gets None

Usage:
    service = HalftimeService(db)
    snapshot = await service.take_halftime_snapshot(challenge_id)
    if snapshot is None:
        ...  # missing, too early, or already taken
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from dailychallenge.core.config import settings
from dailychallenge.models import Challenge
from dailychallenge.repositories import ChallengeRepository
from dailychallenge.services.challenge.phases import (
    FULL_DAY_HOURS,
    ChallengePhase,
    calculate_end_time,
    calculate_halftime_timestamp,
    determine_phase,
    get_power_hour_multiplier,
    is_in_power_hour,
)
from dailychallenge.utils.timezone import local_date, to_utc_naive, utcnow

logger = logging.getLogger(__name__)


@dataclass
class HalftimeSnapshot:
    challenge_id: int
    team1_id: int
    team2_id: int
    team1_score: int
    team2_score: int
    stat_date: date
    taken_at: datetime


@dataclass
class HalftimeStatus:
    challenge_id: int
    phase: ChallengePhase
    halftime_at: Optional[datetime]
    end_time: Optional[datetime]
    is_halftime_passed: bool
    halftime_score_team1: Optional[int]
    halftime_score_team2: Optional[int]
    is_power_hour: bool
    power_hour_multiplier: float


@dataclass
class ChallengeTimings:
    challenge_id: int
    start_time: datetime
    halftime_at: datetime
    end_time: datetime
    duration_hours: int


class HalftimeService:
    """
    Halftime state machine over the challenges table.

    The clock is injectable so phase and snapshot behavior can be tested
    at fixed instants.
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        tz_name: Optional[str] = None,
    ):
        self.db = db
        self.clock = clock
        self.tz_name = tz_name
        self.challenges = ChallengeRepository(db)

    def _now(self) -> datetime:
        return to_utc_naive(self.clock())

    # ========================================================================
    # Timings
    # ========================================================================

    async def initialize_challenge_timings(
        self,
        challenge_id: int,
        start_time: datetime,
        duration_hours: int = FULL_DAY_HOURS,
    ) -> Optional[ChallengeTimings]:
        """
        Store start, halftime and end for a challenge and reset both phase flags.

        Returns:
            The stored timings, or None if the challenge does not exist
        """
        start_utc = to_utc_naive(start_time)
        timings = ChallengeTimings(
            challenge_id=challenge_id,
            start_time=start_utc,
            halftime_at=calculate_halftime_timestamp(start_utc, duration_hours, self.tz_name),
            end_time=calculate_end_time(start_utc, duration_hours),
            duration_hours=duration_hours,
        )

        updated = self.challenges.update_timings(
            challenge_id,
            start_time=timings.start_time,
            end_time=timings.end_time,
            halftime_at=timings.halftime_at,
            duration_hours=duration_hours,
        )
        if not updated:
            logger.warning(f"Cannot initialize timings: challenge {challenge_id} not found")
            return None

        self.challenges.save()
        logger.info(
            f"Challenge {challenge_id} timings: start={timings.start_time} "
            f"halftime={timings.halftime_at} end={timings.end_time} UTC"
        )
        return timings

    # ========================================================================
    # Snapshot
    # ========================================================================

    def _score_date(self, challenge: Challenge) -> date:
        reference = challenge.challenge_start_time or challenge.halftime_at
        return local_date(reference, self.tz_name)

    async def take_halftime_snapshot(self, challenge_id: int) -> Optional[HalftimeSnapshot]:
        """
        Freeze both teams' scores at halftime, at most once.

        Returns None when the challenge is missing, halftime has not been
        reached, the snapshot was already taken, or the challenge does not
        have two teams.
        """
        challenge = self.challenges.find_by_id(challenge_id)
        if challenge is None:
            logger.warning(f"Halftime snapshot: challenge {challenge_id} not found")
            return None
        if challenge.is_halftime_passed:
            logger.debug(f"Halftime snapshot already taken for challenge {challenge_id}")
            return None

        now = self._now()
        if challenge.halftime_at is None or now < challenge.halftime_at:
            return None

        teams = self.challenges.find_teams(challenge_id)
        if len(teams) < 2:
            logger.warning(f"Halftime snapshot: challenge {challenge_id} has {len(teams)} team(s)")
            return None
        team1, team2 = teams[0], teams[1]

        stat_date = self._score_date(challenge)
        team1_score = self.challenges.get_team_score(team1.id, challenge_id, stat_date)
        team2_score = self.challenges.get_team_score(team2.id, challenge_id, stat_date)

        if not self.challenges.mark_halftime_passed(challenge_id, team1_score, team2_score):
            self.challenges.rollback()
            logger.info(f"Halftime snapshot for challenge {challenge_id} taken by another caller")
            return None
        self.challenges.save()

        logger.info(
            f"⏱️ Halftime snapshot challenge {challenge_id}: "
            f"{team1.name} {team1_score} - {team2_score} {team2.name}"
        )
        return HalftimeSnapshot(
            challenge_id=challenge_id,
            team1_id=team1.id,
            team2_id=team2.id,
            team1_score=team1_score,
            team2_score=team2_score,
            stat_date=stat_date,
            taken_at=now,
        )

    async def find_challenges_due_for_snapshot(self) -> List[Challenge]:
        return self.challenges.find_due_for_snapshot(self._now())

    async def snapshot_due_challenges(self) -> List[HalftimeSnapshot]:
        """Snapshot every challenge whose halftime has passed (scheduler sweep)."""
        snapshots = []
        for challenge in await self.find_challenges_due_for_snapshot():
            snapshot = await self.take_halftime_snapshot(challenge.id)
            if snapshot is not None:
                snapshots.append(snapshot)
        return snapshots

    # ========================================================================
    # Status
    # ========================================================================

    async def has_passed_halftime(self, challenge_id: int) -> bool:
        challenge = self.challenges.find_by_id(challenge_id)
        return bool(challenge and challenge.is_halftime_passed)

    async def get_halftime_status(self, challenge_id: int) -> Optional[HalftimeStatus]:
        challenge = self.challenges.find_by_id(challenge_id)
        if challenge is None:
            return None

        now = self._now()
        duration = challenge.duration_hours or FULL_DAY_HOURS
        return HalftimeStatus(
            challenge_id=challenge.id,
            phase=determine_phase(
                now,
                challenge.halftime_at,
                challenge.status,
                challenge.is_halftime_passed,
                challenge.is_in_overtime,
                settings.HALFTIME_WINDOW_MINUTES,
            ),
            halftime_at=challenge.halftime_at,
            end_time=challenge.challenge_end_time,
            is_halftime_passed=challenge.is_halftime_passed,
            halftime_score_team1=challenge.halftime_score_team1,
            halftime_score_team2=challenge.halftime_score_team2,
            is_power_hour=is_in_power_hour(now, duration, self.tz_name),
            power_hour_multiplier=get_power_hour_multiplier(now, duration, self.tz_name),
        )

    # ========================================================================
    # External Transitions
    # ========================================================================

    async def mark_overtime(self, challenge_id: int) -> bool:
        """Enter overtime (no-op if already in overtime or complete)."""
        changed = self.challenges.mark_overtime(challenge_id)
        self.challenges.save()
        if changed:
            logger.info(f"Challenge {challenge_id} entered overtime")
        return changed

    async def mark_complete(self, challenge_id: int) -> bool:
        changed = self.challenges.mark_complete(challenge_id)
        self.challenges.save()
        if changed:
            logger.info(f"Challenge {challenge_id} complete")
        return changed

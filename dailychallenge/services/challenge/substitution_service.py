"""
Halftime substitution ledger.

After the halftime snapshot a team may swap lineup positions for assets
from its drafted roster, up to MAX_SUBSTITUTIONS_PER_TEAM per challenge.

Lineup positions:
    mfg1, mfg2   -> manufacturer
    cstr1, cstr2 -> strain
    prd1, prd2   -> product
    phm1, phm2   -> pharmacy
    brd1         -> brand
    flex         -> any type (the slot's current type is recorded as the old asset)

Budget counting:
- Default: one record per position, so re-substituting a position does not
  consume extra budget
- count_resubstitutions=True: every substitution counts (sum of change_count)

An accepted substitution always reports one fewer remaining unit than
before the request, even when the stored budget did not change.

Rejections are returned as SubstitutionResult(success=False, ...), never
raised.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy.orm import Session

from dailychallenge.core.config import settings
from dailychallenge.repositories import ChallengeRepository, LineupRepository
from dailychallenge.services.scoring.entity_types import EntityType

logger = logging.getLogger(__name__)

FLEX_POSITION = "flex"

LINEUP_POSITIONS: Dict[str, Optional[EntityType]] = {
    "mfg1": EntityType.MANUFACTURER,
    "mfg2": EntityType.MANUFACTURER,
    "cstr1": EntityType.STRAIN,
    "cstr2": EntityType.STRAIN,
    "prd1": EntityType.PRODUCT,
    "prd2": EntityType.PRODUCT,
    "phm1": EntityType.PHARMACY,
    "phm2": EntityType.PHARMACY,
    "brd1": EntityType.BRAND,
    FLEX_POSITION: None,
}


@dataclass
class SubstitutionRequest:
    challenge_id: int
    team_id: int
    position: str
    new_asset_type: str
    new_asset_id: int


@dataclass
class SubstitutionResult:
    success: bool
    message: str
    substitution: Optional[dict] = None
    remaining: Optional[int] = None


class SubstitutionLedger:
    """Validates and records halftime substitutions."""

    def __init__(
        self,
        db: Session,
        max_substitutions: Optional[int] = None,
        count_resubstitutions: Optional[bool] = None,
    ):
        self.db = db
        self.challenges = ChallengeRepository(db)
        self.lineups = LineupRepository(db)
        self.max_substitutions = (
            settings.MAX_SUBSTITUTIONS_PER_TEAM if max_substitutions is None else max_substitutions
        )
        self.count_resubstitutions = (
            settings.SUBSTITUTIONS_COUNT_REPEATS if count_resubstitutions is None else count_resubstitutions
        )

    def _used(self, challenge_id: int, team_id: int) -> int:
        if self.count_resubstitutions:
            return self.lineups.sum_change_counts(challenge_id, team_id)
        return self.lineups.count_substitutions(challenge_id, team_id)

    async def get_remaining_substitutions(self, challenge_id: int, team_id: int) -> int:
        return max(0, self.max_substitutions - self._used(challenge_id, team_id))

    async def make_substitution(self, request: SubstitutionRequest) -> SubstitutionResult:
        """
        Swap one lineup position for a roster asset.

        Returns:
            SubstitutionResult with the recorded substitution and the
            remaining budget on success, or the rejection reason
        """
        try:
            challenge = self.challenges.find_by_id(request.challenge_id)
            if challenge is None:
                return SubstitutionResult(False, "Challenge not found")
            if not challenge.is_halftime_passed:
                return SubstitutionResult(False, "Substitutions are only allowed after halftime")
            if challenge.status == "complete":
                return SubstitutionResult(False, "Challenge is complete")
            if challenge.is_in_overtime:
                return SubstitutionResult(False, "Substitutions are closed during overtime")

            remaining = await self.get_remaining_substitutions(request.challenge_id, request.team_id)
            if remaining <= 0:
                return SubstitutionResult(False, "No substitutions remaining", remaining=0)

            if request.position not in LINEUP_POSITIONS:
                return SubstitutionResult(False, f"Unknown lineup position '{request.position}'", remaining=remaining)

            try:
                new_type = EntityType(request.new_asset_type)
            except ValueError:
                return SubstitutionResult(False, f"Unknown asset type '{request.new_asset_type}'", remaining=remaining)

            expected_type = LINEUP_POSITIONS[request.position]
            if expected_type is not None and new_type is not expected_type:
                return SubstitutionResult(
                    False,
                    f"Position {request.position} requires a {expected_type.value}",
                    remaining=remaining,
                )

            slot = self.lineups.find_slot(request.team_id, request.position)
            if slot is None or slot.asset_id is None:
                return SubstitutionResult(False, f"Position {request.position} is empty", remaining=remaining)

            if not self.lineups.is_on_roster(request.team_id, new_type.value, request.new_asset_id):
                return SubstitutionResult(False, "Asset is not on the team's roster", remaining=remaining)

            substitution = {
                "challenge_id": request.challenge_id,
                "team_id": request.team_id,
                "position": request.position,
                "old_asset_type": slot.asset_type,
                "old_asset_id": slot.asset_id,
                "new_asset_type": new_type.value,
                "new_asset_id": request.new_asset_id,
            }
            self.lineups.upsert_substitution(**substitution)
            self.lineups.set_slot(request.team_id, request.position, new_type.value, request.new_asset_id)
            self.lineups.save()

        except Exception as e:
            self.lineups.rollback()
            logger.error(f"❌ Substitution failed for team {request.team_id} ({request.position}): {e}")
            return SubstitutionResult(False, "Failed to make substitution")

        logger.info(
            f"🔁 Team {request.team_id} substituted {request.position}: "
            f"{substitution['old_asset_type']}#{substitution['old_asset_id']} -> "
            f"{new_type.value}#{request.new_asset_id}"
        )
        return SubstitutionResult(
            True,
            "Substitution recorded",
            substitution=substitution,
            remaining=remaining - 1,
        )

"""
Lineup Repository for rosters, lineup slots and halftime substitutions.

Usage:
    repo = LineupRepository(db)
    slot = repo.find_slot(team_id, "mfg1")
    used = repo.count_substitutions(challenge_id, team_id)
"""
from typing import Optional

from sqlalchemy import func

from dailychallenge.models import HalftimeSubstitution, LineupSlot, RosterAsset
from dailychallenge.repositories.base import BaseRepository
from dailychallenge.utils.timezone import utcnow

SUBSTITUTION_KEY = ("challenge_id", "team_id", "position")


class LineupRepository(BaseRepository[HalftimeSubstitution]):
    """Repository for HalftimeSubstitution plus the team's lineup and roster."""

    def __init__(self, db):
        super().__init__(HalftimeSubstitution, db)

    # ========================================================================
    # Roster & Lineup
    # ========================================================================

    def is_on_roster(self, team_id: int, asset_type: str, asset_id: int) -> bool:
        return self.db.query(
            self.db.query(RosterAsset)
            .filter(
                RosterAsset.team_id == team_id,
                RosterAsset.asset_type == asset_type,
                RosterAsset.asset_id == asset_id,
            )
            .exists()
        ).scalar()

    def find_slot(self, team_id: int, position: str) -> Optional[LineupSlot]:
        return (
            self.db.query(LineupSlot)
            .filter(LineupSlot.team_id == team_id, LineupSlot.position == position)
            .first()
        )

    def set_slot(self, team_id: int, position: str, asset_type: str, asset_id: int) -> None:
        stmt = self._dialect_insert(LineupSlot).values(
            team_id=team_id,
            position=position,
            asset_type=asset_type,
            asset_id=asset_id,
            updated_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["team_id", "position"],
            set_={
                "asset_type": stmt.excluded.asset_type,
                "asset_id": stmt.excluded.asset_id,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.db.execute(stmt)

    # ========================================================================
    # Substitutions
    # ========================================================================

    def find_substitution(self, challenge_id: int, team_id: int, position: str) -> Optional[HalftimeSubstitution]:
        return self.where_first(
            HalftimeSubstitution.challenge_id == challenge_id,
            HalftimeSubstitution.team_id == team_id,
            HalftimeSubstitution.position == position,
        )

    def count_substitutions(self, challenge_id: int, team_id: int) -> int:
        """Distinct positions substituted (one row per position)."""
        return self.count(
            HalftimeSubstitution.challenge_id == challenge_id,
            HalftimeSubstitution.team_id == team_id,
        )

    def sum_change_counts(self, challenge_id: int, team_id: int) -> int:
        """Total substitutions including repeats on the same position."""
        total = (
            self.db.query(func.coalesce(func.sum(HalftimeSubstitution.change_count), 0))
            .filter(
                HalftimeSubstitution.challenge_id == challenge_id,
                HalftimeSubstitution.team_id == team_id,
            )
            .scalar()
        )
        return int(total or 0)

    def upsert_substitution(
        self,
        challenge_id: int,
        team_id: int,
        position: str,
        old_asset_type: str,
        old_asset_id: int,
        new_asset_type: str,
        new_asset_id: int,
    ) -> None:
        """
        Record a substitution; re-substituting a position overwrites the row.

        The original old asset is kept on conflict so the row always shows
        what the position held at halftime.
        """
        self.upsert(
            {
                "challenge_id": challenge_id,
                "team_id": team_id,
                "position": position,
                "old_asset_type": old_asset_type,
                "old_asset_id": old_asset_id,
                "new_asset_type": new_asset_type,
                "new_asset_id": new_asset_id,
                "change_count": 1,
                "created_at": utcnow(),
            },
            conflict_columns=SUBSTITUTION_KEY,
            update_columns=("new_asset_type", "new_asset_id", "created_at"),
            extra_updates={"change_count": HalftimeSubstitution.change_count + 1},
        )

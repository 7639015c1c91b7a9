"""
Entity Repository for ranked marketplace entities.

Usage:
    repo = EntityRepository(db)
    entity = repo.find_by_name("manufacturer", "Aurora")
    same = repo.find_by_normalized_name("manufacturer", "AURORA ")
"""
from typing import Dict, List, Optional

from dailychallenge.models import Entity
from dailychallenge.repositories.base import BaseRepository
from dailychallenge.utils.name_normalizer import normalize_entity_name


class EntityRepository(BaseRepository[Entity]):
    """Repository for entity lookups by type and display name."""

    def __init__(self, db):
        super().__init__(Entity, db)
        self._normalized_index: Dict[str, Dict[str, int]] = {}

    # ========================================================================
    # Name Lookups
    # ========================================================================

    def find_by_name(self, entity_type: str, name: str) -> Optional[Entity]:
        """Exact (entity_type, name) match."""
        return self.where_first(Entity.entity_type == entity_type, Entity.name == name)

    def find_by_normalized_name(self, entity_type: str, name: str) -> Optional[Entity]:
        """
        Match on the normalized name (case, accents, punctuation, spacing).

        The per-type index is built once per repository instance.
        """
        index = self._normalized_index.get(entity_type)
        if index is None:
            index = {}
            for entity in self.find_by_type(entity_type):
                index.setdefault(normalize_entity_name(entity.name), entity.id)
            self._normalized_index[entity_type] = index

        entity_id = index.get(normalize_entity_name(name))
        return self.find_by_id(entity_id) if entity_id is not None else None

    def find_by_type(self, entity_type: str, active_only: bool = True) -> List[Entity]:
        query = self.query().filter(Entity.entity_type == entity_type)
        if active_only:
            query = query.filter(Entity.active.is_(True))
        return query.order_by(Entity.id).all()

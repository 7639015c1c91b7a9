"""
Entity resolution: order record display name -> stored entity id.

Matching:
1. Exact (entity_type, name)
2. Normalized name (case, accents, punctuation, whitespace)

No fuzzy matching: a near miss is reported as unresolved and the entity is
skipped for the day rather than credited to the wrong row.
"""
import logging
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from dailychallenge.repositories import EntityRepository
from dailychallenge.services.scoring.entity_types import EntityType

logger = logging.getLogger(__name__)


class EntityResolver(Protocol):
    async def resolve(self, entity_type: EntityType, name: str) -> Optional[int]: ...


class SqlEntityResolver:
    """EntityResolver backed by the entities table."""

    def __init__(self, db: Session):
        self.entities = EntityRepository(db)

    async def resolve(self, entity_type: EntityType, name: str) -> Optional[int]:
        entity_type = EntityType(entity_type)

        entity = self.entities.find_by_name(entity_type.value, name)
        if entity is None:
            entity = self.entities.find_by_normalized_name(entity_type.value, name)
            if entity is not None:
                logger.debug(f"Resolved {entity_type.value} '{name}' -> '{entity.name}' by normalized name")

        return entity.id if entity is not None else None

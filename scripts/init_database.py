#!/usr/bin/env python3
"""
Initialize database tables from SQLAlchemy models.

Creates every table in dailychallenge.models (existing tables are left
untouched).
"""
import logging
import sys
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dailychallenge.core.config import settings
from dailychallenge.core.logging import configure_logging

logger = logging.getLogger(__name__)


def main():
    """Create all database tables from models."""
    from dailychallenge.core.database import init_db
    from dailychallenge.models import Base

    configure_logging(level=settings.LOG_LEVEL, json_output=False)
    logger.info(f"Creating {len(Base.metadata.tables)} tables for {settings.ENVIRONMENT}...")

    init_db()

    logger.info("✓ All database tables created successfully!")


if __name__ == "__main__":
    main()

"""
Database configuration and session management.
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from dailychallenge.core.config import settings

DATABASE_URL = settings.DATABASE_URL


def build_engine(database_url: str = DATABASE_URL) -> Engine:
    """Create an engine with pooling suited to the backend."""
    echo = os.getenv("SQL_ECHO", "false").lower() == "true"

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )

    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,
    )


engine = build_engine()

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None):
    """Initialize database tables."""
    from dailychallenge.models import Base
    # checkfirst=True will only create tables that don't exist
    Base.metadata.create_all(bind=bind or engine, checkfirst=True)

"""Shared pytest fixtures for daily challenge scoring tests."""
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Generator, Iterable, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

TEST_TZ = "Europe/Berlin"


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    from dailychallenge.models import Base

    # StaticPool keeps one connection so every query sees the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_session: Session):
    """Session factory bound to the test engine (for the job runner)."""
    return sessionmaker(bind=db_session.get_bind())


# =============================================================================
# FAKES & FACTORIES
# =============================================================================

class FakeRecordSource:
    """In-memory RecordSource. Set *_error to make a query raise."""

    def __init__(self, records=None, all_records=None, ratings=None):
        self.records = list(records or [])
        self.all_records = list(all_records if all_records is not None else self.records)
        self.ratings = list(ratings or [])
        self.date_error: Optional[Exception] = None
        self.all_error: Optional[Exception] = None
        self.ratings_error: Optional[Exception] = None
        self.calls: List[str] = []

    async def fetch_records_for_date(self, stat_date: date):
        self.calls.append("date")
        if self.date_error:
            raise self.date_error
        return list(self.records)

    async def fetch_all_records(self):
        self.calls.append("all")
        if self.all_error:
            raise self.all_error
        return list(self.all_records)

    async def fetch_brand_ratings(self):
        self.calls.append("ratings")
        if self.ratings_error:
            raise self.ratings_error
        return list(self.ratings)


def make_order(**overrides):
    """Build an OrderRecord with sensible defaults."""
    from dailychallenge.services.aggregation.record_source import OrderRecord

    values = {
        "order_id": "1",
        "status": "completed",
        "order_date": datetime(2026, 1, 15, 12, 0),
        "quantity": 10.0,
        "total_price": 100.0,
        "manufacturer": "Acme Cannabis",
        "strain": "Blue Dream",
        "product": "Blue Dream 18/1",
        "pharmacy": "Stadt Apotheke",
        "brand": "Acme",
    }
    values.update(overrides)
    return OrderRecord(**values)


def seed_entities(db: Session, entity_type: str, names: Iterable[str]) -> Dict[str, int]:
    """Insert entities and return {name: id}."""
    from dailychallenge.models import Entity

    ids = {}
    for name in names:
        entity = Entity(entity_type=entity_type, name=name)
        db.add(entity)
        db.flush()
        ids[name] = entity.id
    db.commit()
    return ids


def create_challenge(
    db: Session,
    status: str = "active",
    halftime_at: Optional[datetime] = None,
    start_time: Optional[datetime] = None,
    is_halftime_passed: bool = False,
    is_in_overtime: bool = False,
    team_names=("Team Alpha", "Team Beta"),
):
    """Create a challenge with teams. Returns (challenge, [teams])."""
    from dailychallenge.models import Challenge, Team

    challenge = Challenge(
        name="Daily Challenge",
        status=status,
        challenge_start_time=start_time,
        halftime_at=halftime_at,
        duration_hours=24,
        is_halftime_passed=is_halftime_passed,
        is_in_overtime=is_in_overtime,
    )
    db.add(challenge)
    db.flush()

    teams = []
    for slot, name in enumerate(team_names, start=1):
        team = Team(challenge_id=challenge.id, name=name, slot=slot)
        db.add(team)
        teams.append(team)
    db.flush()
    db.commit()
    return challenge, teams


def fixed_clock(value: datetime):
    """Clock returning a constant naive-UTC instant."""
    return lambda: value

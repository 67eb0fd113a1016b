"""
Pytest configuration and shared fixtures for MoneyWise tests.

This file is automatically loaded by pytest and provides:
    - In-memory database sessions
    - User and reminder factories
    - Controllable clocks and a fake mail transport

Author: MoneyWise Team
"""

import pytest
import sys
from pathlib import Path
from datetime import datetime, timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import Base  # noqa: E402
from models import User, Reminder  # noqa: E402
from services.email_service import Sent, Failed  # noqa: E402


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory SQLite database shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Clock Fixtures
# =============================================================================

class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateTimeClock:
    """Manually advanced clock returning naive local datetimes."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def today():
    return datetime(2026, 3, 10, 9, 30)


@pytest.fixture
def datetime_clock(today):
    return FakeDateTimeClock(today)


# =============================================================================
# Mail Fixtures
# =============================================================================

class FakeEmailService:
    """Records every message and returns a configurable result."""

    def __init__(self, result=None, raises: Exception = None):
        self.result = result if result is not None else Sent()
        self.raises = raises
        self.sent = []

    def send_mail(self, to: str, subject: str, html: str):
        if self.raises:
            raise self.raises
        self.sent.append({"to": to, "subject": subject, "html": html})
        return self.result


@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def failing_email_service():
    return FakeEmailService(result=Failed("connection refused"))


# =============================================================================
# Model Factories
# =============================================================================

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name: str = None, email: str = None) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"User {counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            password_hash="not-a-real-hash",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_reminder(db):
    def _make(user: User, due_date: datetime, status: str = "PENDING",
              last_sent_at: datetime = None, title: str = "Electricity bill") -> Reminder:
        reminder = Reminder(
            user_id=user.id,
            title=title,
            amount=120.5,
            due_date=due_date,
            category="UTILITIES",
            status=status,
            last_sent_at=last_sent_at,
        )
        db.add(reminder)
        db.commit()
        db.refresh(reminder)
        return reminder

    return _make

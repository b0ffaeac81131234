"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta
from typing import Dict, Optional

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TMDB_API_KEY"] = "test-key"
os.environ["LOG_LEVEL"] = "WARNING"

from apps.core.exceptions import MetadataUnavailableError  # noqa: E402
from apps.tracker.schemas import ShowMetadata, NextEpisodeInfo, WatchEvent  # noqa: E402

NOW = datetime(2024, 6, 15, 12, 0, 0)


class FakeMetadata:
    """In-memory stand-in for the TMDB metadata provider."""

    def __init__(self, shows: Optional[Dict[int, ShowMetadata]] = None, failing=()):
        self.shows = shows or {}
        self.failing = set(failing)
        self.calls = []

    async def get_show_metadata(self, show_id: int) -> ShowMetadata:
        self.calls.append(show_id)
        if show_id in self.failing:
            raise MetadataUnavailableError(show_id)
        return self.shows.get(show_id, ShowMetadata(show_id=show_id))

    async def get_episode_details(self, show_id: int, season_number: int, episode_number: int):
        if show_id in self.failing:
            raise MetadataUnavailableError(show_id)
        return NextEpisodeInfo(
            season_number=season_number,
            episode_number=episode_number,
            name=f"Episode {episode_number}",
        )


def make_metadata(show_id: int, *counts: int, name: str = None) -> ShowMetadata:
    """Metadata for a show whose seasons have the given episode counts."""
    return ShowMetadata(
        show_id=show_id,
        name=name or f"Show {show_id}",
        total_seasons=len(counts),
        episodes_per_season={i + 1: c for i, c in enumerate(counts)},
    )


def event(season: int, episode: int, watched_at: datetime, show_id: int = 1, user_id: int = 1) -> WatchEvent:
    return WatchEvent(user_id=user_id, show_id=show_id, season_number=season,
                      episode_number=episode, watched_at=watched_at)


def days_ago(days: float, hours: float = 0) -> datetime:
    return NOW - timedelta(days=days, hours=hours)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def engine():
    import apps.users.models  # noqa: F401
    import apps.tracker.models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def metadata() -> FakeMetadata:
    return FakeMetadata({
        1: make_metadata(1, 10, 8, name="Slow Horses"),
        2: make_metadata(2, 6, name="Short Show"),
        3: make_metadata(3, 12, 12, 12, name="Long Show"),
    })


@pytest.fixture
def client(engine, metadata):
    from fastapi.testclient import TestClient

    from apps.tracker.router import get_metadata
    from database import get_session
    from main import app

    def _session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_metadata] = lambda: metadata
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()

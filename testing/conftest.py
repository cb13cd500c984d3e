"""Shared fixtures: an in-memory database seeded with two accounts and a fake image cache."""

import asyncio
import io
import json
import zipfile
from datetime import datetime
from typing import Dict, List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import backlogus.db.database  # noqa: F401  (registers the foreign_keys pragma listener)
from backlogus.db.database import Base
from backlogus.models import Game, Movie, User, UserApiCredential, UserGame, UserMovie
from backlogus.services.image_cache import (
    CachedImage,
    ImageCache,
    ImageCacheError,
    ImageCacheService,
    ImageRestoreReport,
)


class FakeImageCache(ImageCache):
    """
    In-memory ImageCache that records when each fetch starts and ends.

    URLs in `failing` raise ImageCacheError; filenames in `unwritable` fail on restore.
    """

    def __init__(self, failing=(), unwritable=()):
        self.failing = set(failing)
        self.unwritable = set(unwritable)
        self.files: Dict[str, bytes] = {}
        self.events: List[tuple] = []
        self.active = 0
        self.max_active = 0

    async def materialize(self, url: str) -> bytes:
        self.events.append(("start", url))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            # Let every other fetch in the batch start before this one finishes
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            if url in self.failing:
                raise ImageCacheError(f"boom: {url}")
            data = f"image:{url}".encode()
            self.files[ImageCacheService.filename_for(url)] = data
            return data
        finally:
            self.active -= 1
            self.events.append(("end", url))

    async def list_all(self) -> List[CachedImage]:
        return [CachedImage(filename=name, data=data) for name, data in sorted(self.files.items())]

    async def restore(self, images: List[CachedImage]) -> ImageRestoreReport:
        report = ImageRestoreReport()
        for image in images:
            if image.filename in self.unwritable:
                report.failed.append(image.filename)
                continue
            self.files[image.filename] = image.data
            report.restored += 1
        return report

    async def stats(self) -> Dict[str, int]:
        return {"count": len(self.files), "totalSize": sum(len(d) for d in self.files.values())}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def image_cache():
    return FakeImageCache()


@pytest.fixture
def seeded(db):
    """
    Account "ada" with two games, one movie and a TMDB credential, plus
    account "bob" who also tracks the first game.
    """
    ada = User(
        email="ada@example.com",
        password_hash="hashed-secret",
        first_name="Ada",
        last_name="Lovelace",
        avatar_url="https://img.example.com/avatars/ada.png",
        timezone="Europe/London",
        theme_preference="dark",
    )
    bob = User(email="bob@example.com", password_hash="x", timezone="UTC")
    db.add_all([ada, bob])
    db.flush()

    hades = Game(
        igdb_id=113112,
        title="Hades",
        summary="Defy the god of the dead.",
        cover_url="https://img.example.com/games/hades-cover.jpg",
        banner_url="https://img.example.com/games/hades-banner.jpg",
        screenshots=[
            "https://img.example.com/games/hades-1.jpg",
            {"url": "https://img.example.com/games/hades-2.jpg"},
        ],
        genres=["Roguelike", "Action"],
        rating=93.5,
        release_date=datetime(2020, 9, 17),
    )
    celeste = Game(
        igdb_id=26226,
        title="Celeste",
        cover_url="https://img.example.com/games/celeste-cover.png",
        artworks=["/local/not-a-url.png"],
    )
    arrival = Movie(
        tmdb_id=329865,
        title="Arrival",
        overview="A linguist works with the military to communicate with alien lifeforms.",
        cover_url="https://img.example.com/movies/arrival-poster.jpg",
        backdrop_url="https://img.example.com/movies/arrival-backdrop.jpg",
        runtime=116,
        director="Denis Villeneuve",
    )
    db.add_all([hades, celeste, arrival])
    db.flush()

    db.add_all([
        UserGame(
            user_id=ada.id,
            game_id=hades.id,
            status="completed",
            platform="Switch",
            rating=9.5,
            notes="Escaped on the 14th run",
            hours_played=61.5,
            started_at=datetime(2021, 1, 2, 18, 30),
            completed_at=datetime(2021, 2, 20, 22, 0),
        ),
        UserGame(user_id=ada.id, game_id=celeste.id, status="backlog"),
        UserMovie(
            user_id=ada.id,
            movie_id=arrival.id,
            status="watched",
            rating=10.0,
            watched_at=datetime(2022, 11, 5, 21, 15),
        ),
        UserApiCredential(user_id=ada.id, api_provider="tmdb", api_key="tmdb-key-123"),
        UserGame(user_id=bob.id, game_id=hades.id, status="playing"),
    ])
    db.commit()

    return {
        "ada": ada.id,
        "bob": bob.id,
        "hades": hades.id,
        "celeste": celeste.id,
        "arrival": arrival.id,
    }


def build_archive(document=None, images=None, extra_entries=None) -> bytes:
    """Write a backup-shaped ZIP by hand."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zipf:
        if document is not None:
            raw = document if isinstance(document, (str, bytes)) else json.dumps(document)
            zipf.writestr("backup.json", raw)
        for name, data in (images or {}).items():
            zipf.writestr(f"images/{name}", data)
        for name, data in (extra_entries or {}).items():
            zipf.writestr(name, data)
    return buffer.getvalue()


def minimal_document(**overrides):
    document = {
        "metadata": {"version": "1.0", "created": "2026-01-01T00:00:00+00:00"},
        "user": {"email": "ada@example.com", "timezone": "UTC"},
        "games": [],
        "movies": [],
        "userGames": [],
        "userMovies": [],
        "apiCredentials": [],
    }
    document.update(overrides)
    return document

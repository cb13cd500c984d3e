"""Tests for restoring account backups."""

import asyncio
from datetime import datetime

import pytest

from backlogus.models import Game, Movie, User, UserApiCredential, UserGame, UserMovie
from backlogus.services.backup_archive import CorruptArchiveError, InvalidArchiveError
from backlogus.services.backup_graph import UserNotFoundError
from backlogus.services.backup_service import BackupService
from backlogus.services.restore_service import RestoreError, RestoreService
from conftest import FakeImageCache, build_archive, minimal_document


def _backup(db, user_id, cache=None) -> bytes:
    return asyncio.run(BackupService(db, cache or FakeImageCache()).create_backup(user_id))


def _restore(db, user_id, content, cache=None, scoped=False):
    service = RestoreService(db, image_cache=cache or FakeImageCache(), scoped_media_cleanup=scoped)
    return asyncio.run(service.import_backup(user_id, content))


class TestRoundTrip:

    def test_restores_library_and_credentials(self, db, seeded):
        content = _backup(db, seeded["ada"])

        result = _restore(db, seeded["ada"], content)

        assert (result.games, result.movies) == (2, 1)
        assert (result.user_games, result.user_movies) == (2, 1)
        assert result.api_credentials == 1
        assert result.skipped_entries == 0

        entries = db.query(UserGame).filter(UserGame.user_id == seeded["ada"]).all()
        by_title = {e.game.title: e for e in entries}
        assert set(by_title) == {"Hades", "Celeste"}
        hades = by_title["Hades"]
        assert hades.status == "completed"
        assert hades.notes == "Escaped on the 14th run"
        assert hades.hours_played == 61.5
        assert hades.completed_at == datetime(2021, 2, 20, 22, 0)
        assert hades.game.screenshots[1] == {"url": "https://img.example.com/games/hades-2.jpg"}
        assert hades.game.release_date == datetime(2020, 9, 17)

        movie_entry = db.query(UserMovie).filter(UserMovie.user_id == seeded["ada"]).one()
        assert movie_entry.movie.title == "Arrival"
        assert movie_entry.watched_at == datetime(2022, 11, 5, 21, 15)

        credential = db.query(UserApiCredential).filter(UserApiCredential.user_id == seeded["ada"]).one()
        assert credential.api_provider == "tmdb"
        assert credential.api_key == "tmdb-key-123"

    def test_entries_point_at_new_media_rows(self, db, seeded):
        content = _backup(db, seeded["ada"])

        _restore(db, seeded["ada"], content)

        game_ids = {g.id for g in db.query(Game).all()}
        assert len(game_ids) == 2
        for entry in db.query(UserGame).filter(UserGame.user_id == seeded["ada"]):
            assert entry.game_id in game_ids

    def test_profile_restored_but_password_untouched(self, db, seeded):
        content = _backup(db, seeded["ada"])
        user = db.get(User, seeded["ada"])
        user.first_name = "Changed"
        user.theme_preference = "light"
        db.commit()

        _restore(db, seeded["ada"], content)

        user = db.get(User, seeded["ada"])
        assert user.first_name == "Ada"
        assert user.theme_preference == "dark"
        assert user.password_hash == "hashed-secret"

    def test_restore_replaces_current_library(self, db, seeded):
        content = _backup(db, seeded["ada"])
        db.add(UserApiCredential(user_id=seeded["ada"], api_provider="igdb", client_id="c", access_token="t"))
        db.commit()

        _restore(db, seeded["ada"], content)

        providers = [c.api_provider for c in db.query(UserApiCredential).filter_by(user_id=seeded["ada"])]
        assert providers == ["tmdb"]

    def test_images_written_back_to_cache(self, db, seeded):
        content = _backup(db, seeded["ada"])
        target = FakeImageCache()

        result = _restore(db, seeded["ada"], content, cache=target)

        assert result.images == 8
        assert len(target.files) == 8
        assert result.image_errors == []

    def test_result_payload(self, db, seeded):
        payload = _restore(db, seeded["ada"], _backup(db, seeded["ada"])).to_dict()

        assert payload["message"] == "Backup imported successfully"
        assert payload["restored"]["userGames"] == 2
        assert payload["mediaItems"] == 3
        assert payload["libraryEntries"] == 3


class TestCatalogCleanup:

    def test_default_clears_whole_catalog(self, db, seeded):
        content = _backup(db, seeded["ada"])

        _restore(db, seeded["ada"], content)

        # Bob's entry went with the old Hades row
        assert db.query(UserGame).filter(UserGame.user_id == seeded["bob"]).count() == 0
        assert db.query(Game).count() == 2

    def test_scoped_cleanup_keeps_media_other_accounts_use(self, db, seeded):
        content = _backup(db, seeded["ada"])

        _restore(db, seeded["ada"], content, scoped=True)

        bob_entry = db.query(UserGame).filter(UserGame.user_id == seeded["bob"]).one()
        assert bob_entry.game_id == seeded["hades"]
        assert db.query(Game).filter(Game.igdb_id == 113112).count() == 1

        ada_titles = {
            e.game.title: e.game_id
            for e in db.query(UserGame).filter(UserGame.user_id == seeded["ada"])
        }
        assert ada_titles["Hades"] == seeded["hades"]
        assert db.query(Game).filter(Game.title == "Celeste").count() == 1
        assert db.query(Game).count() == 2
        assert db.query(Movie).count() == 1


class TestReferentialIntegrity:

    def test_entries_without_media_are_dropped(self, db, seeded):
        document = minimal_document(
            games=[{"id": 1, "title": "Outer Wilds", "igdbId": 11737}],
            userGames=[
                {"id": 10, "gameId": 1, "status": "playing"},
                {"id": 11, "gameId": 999, "status": "backlog"},
            ],
            userMovies=[{"id": 12, "movieId": 5, "status": "watchlist"}],
        )

        result = _restore(db, seeded["ada"], build_archive(document))

        assert result.user_games == 1
        assert result.user_movies == 0
        assert result.skipped_entries == 2
        entry = db.query(UserGame).filter(UserGame.user_id == seeded["ada"]).one()
        assert entry.game.title == "Outer Wilds"

    def test_missing_sections_mean_empty(self, db, seeded):
        document = minimal_document()
        for key in ("games", "movies", "userGames", "userMovies"):
            del document[key]

        result = _restore(db, seeded["ada"], build_archive(document))

        assert result.library_entries == 0
        assert db.query(UserGame).filter(UserGame.user_id == seeded["ada"]).count() == 0

    def test_null_required_profile_fields_are_kept(self, db, seeded):
        document = minimal_document(user={"email": None, "timezone": None, "firstName": None})

        _restore(db, seeded["ada"], build_archive(document))

        user = db.get(User, seeded["ada"])
        assert user.email == "ada@example.com"
        assert user.timezone == "Europe/London"
        assert user.first_name is None


class TestAtomicity:

    def test_failure_rolls_back_everything(self, db, seeded):
        # Second game has no title, so the insert fails after the deletes ran
        document = minimal_document(
            user={"email": "ada@example.com", "timezone": "UTC", "firstName": "Rewritten"},
            games=[{"id": 1, "title": "Outer Wilds"}, {"id": 2, "title": None}],
            userGames=[{"id": 10, "gameId": 1}],
        )

        with pytest.raises(RestoreError):
            _restore(db, seeded["ada"], build_archive(document))

        assert db.query(Game).filter(Game.title == "Outer Wilds").count() == 0
        assert db.query(UserGame).filter(UserGame.user_id == seeded["ada"]).count() == 2
        assert db.query(UserGame).filter(UserGame.user_id == seeded["bob"]).count() == 1
        assert db.query(UserApiCredential).filter(UserApiCredential.user_id == seeded["ada"]).count() == 1
        assert db.get(User, seeded["ada"]).first_name == "Ada"

    def test_duplicate_library_entry_rolls_back(self, db, seeded):
        document = minimal_document(
            games=[{"id": 1, "title": "Outer Wilds"}],
            userGames=[{"id": 10, "gameId": 1}, {"id": 11, "gameId": 1}],
        )

        with pytest.raises(RestoreError):
            _restore(db, seeded["ada"], build_archive(document))

        assert db.query(Game).count() == 2


class TestValidationGate:

    def _row_counts(self, db):
        return [db.query(m).count() for m in (User, Game, Movie, UserGame, UserMovie, UserApiCredential)]

    def test_corrupt_upload_writes_nothing(self, db, seeded):
        before = self._row_counts(db)

        with pytest.raises(CorruptArchiveError):
            _restore(db, seeded["ada"], b"garbage bytes")

        assert self._row_counts(db) == before

    def test_incomplete_document_writes_nothing(self, db, seeded):
        document = minimal_document()
        del document["metadata"]
        before = self._row_counts(db)

        with pytest.raises(InvalidArchiveError):
            _restore(db, seeded["ada"], build_archive(document))

        assert self._row_counts(db) == before

    def test_malformed_sections_write_nothing(self, db, seeded):
        before = self._row_counts(db)

        for document in (
            minimal_document(games={"a": 1}),
            minimal_document(userGames=["not an entry"]),
            minimal_document(metadata="1.0"),
        ):
            with pytest.raises(InvalidArchiveError):
                _restore(db, seeded["ada"], build_archive(document))

        assert self._row_counts(db) == before
        assert db.query(UserGame).filter(UserGame.user_id == seeded["ada"]).count() == 2

    def test_unknown_account(self, db, seeded):
        with pytest.raises(UserNotFoundError):
            _restore(db, 9999, build_archive(minimal_document()))


class TestImageRestoreFailures:

    def test_partial_image_failure_is_reported_not_raised(self, db, seeded):
        content = build_archive(minimal_document(), images={"ok.jpg": b"1", "bad.jpg": b"2"})
        cache = FakeImageCache(unwritable={"bad.jpg"})

        result = _restore(db, seeded["ada"], content, cache=cache)

        assert result.images == 1
        assert len(result.image_errors) == 1
        assert "bad.jpg" in result.image_errors[0]
        assert db.query(UserGame).filter(UserGame.user_id == seeded["ada"]).count() == 0

    def test_cache_exception_is_reported(self, db, seeded):
        content = build_archive(minimal_document(), images={"ok.jpg": b"1"})
        cache = FakeImageCache()

        async def broken_restore(images):
            raise OSError("read-only filesystem")

        cache.restore = broken_restore

        result = _restore(db, seeded["ada"], content, cache=cache)

        assert result.images == 0
        assert "read-only filesystem" in result.image_errors[0]

"""Account restore service for applying an uploaded backup to an account."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from backlogus.models import Game, Movie, User, UserApiCredential, UserGame, UserMovie
from backlogus.services.backup_archive import ParsedBackup, parse_backup_archive
from backlogus.services.backup_graph import UserNotFoundError, deserialize_row
from backlogus.services.image_cache import ImageCache

logger = logging.getLogger(__name__)

# Profile document key -> User attribute
PROFILE_FIELDS = {
    "email": "email",
    "firstName": "first_name",
    "lastName": "last_name",
    "avatarUrl": "avatar_url",
    "timezone": "timezone",
    "themePreference": "theme_preference",
}
REQUIRED_PROFILE_FIELDS = {"email", "timezone"}


class RestoreError(Exception):
    """Exception raised when the relational restore fails (already rolled back)."""
    pass


@dataclass
class RestoreResult:
    """Counts of what a restore actually wrote."""
    games: int = 0
    movies: int = 0
    user_games: int = 0
    user_movies: int = 0
    api_credentials: int = 0
    images: int = 0
    skipped_entries: int = 0
    image_errors: List[str] = field(default_factory=list)

    @property
    def media_items(self) -> int:
        return self.games + self.movies

    @property
    def library_entries(self) -> int:
        return self.user_games + self.user_movies

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": "Backup imported successfully",
            "restored": {
                "games": self.games,
                "movies": self.movies,
                "userGames": self.user_games,
                "userMovies": self.user_movies,
                "apiCredentials": self.api_credentials,
                "images": self.images,
            },
            "mediaItems": self.media_items,
            "libraryEntries": self.library_entries,
            "skippedEntries": self.skipped_entries,
            "imageErrors": self.image_errors,
        }


class RestoreService:
    """
    Service for restoring account backups.

    All relational writes happen in one transaction. Cached images are
    written afterwards; their failures are reported, never rolled back.
    """

    def __init__(
        self,
        db: Session,
        image_cache: Optional[ImageCache] = None,
        scoped_media_cleanup: bool = False
    ):
        """
        Initialize restore service.

        Args:
            db: Database session
            image_cache: Cache that receives the archived images
            scoped_media_cleanup: Only remove catalog items this account used and
                nobody else tracks (default clears the whole catalog)
        """
        self.db = db
        self.image_cache = image_cache
        self.scoped_media_cleanup = scoped_media_cleanup

    async def import_backup(self, user_id: int, content: bytes) -> RestoreResult:
        """
        Parse an uploaded archive and restore it.

        Archive errors are raised before anything is written.
        """
        backup = parse_backup_archive(content)
        return await self.restore_backup(user_id, backup)

    async def restore_backup(self, user_id: int, backup: ParsedBackup) -> RestoreResult:
        """
        Replace the account's library and credentials with the backup's.

        Raises:
            UserNotFoundError: Target account does not exist
            RestoreError: Relational restore failed and was rolled back
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")

        logger.info(f"Starting restore for user {user_id} from backup created {backup.metadata.get('created')}")
        result = RestoreResult()

        try:
            self._restore_relational(user, backup, result)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Restore failed for user {user_id}, rolled back: {e}", exc_info=True)
            raise RestoreError(f"Failed to restore backup: {e}") from e

        logger.info(
            f"Restored SQL data for user {user_id}: {result.games} games, {result.movies} movies, "
            f"{result.library_entries} library entries ({result.skipped_entries} skipped), "
            f"{result.api_credentials} credentials"
        )

        await self._restore_images(backup, result)
        return result

    def _restore_relational(self, user: User, backup: ParsedBackup, result: RestoreResult):
        user_id = user.id
        data = backup.data

        # Remember what this account referenced before its entries go away
        old_game_ids = [row[0] for row in self.db.query(UserGame.game_id).filter(UserGame.user_id == user_id)]
        old_movie_ids = [row[0] for row in self.db.query(UserMovie.movie_id).filter(UserMovie.user_id == user_id)]

        # Step a: account-owned rows
        self.db.query(UserGame).filter(UserGame.user_id == user_id).delete(synchronize_session=False)
        self.db.query(UserMovie).filter(UserMovie.user_id == user_id).delete(synchronize_session=False)
        self.db.query(UserApiCredential).filter(
            UserApiCredential.user_id == user_id
        ).delete(synchronize_session=False)

        # Step b: catalog
        if self.scoped_media_cleanup:
            self._delete_orphaned_media(Game, UserGame.game_id, old_game_ids)
            self._delete_orphaned_media(Movie, UserMovie.movie_id, old_movie_ids)
        else:
            # Clears the catalog for every account; other accounts' library
            # entries go with it through ON DELETE CASCADE.
            self.db.query(Game).delete(synchronize_session=False)
            self.db.query(Movie).delete(synchronize_session=False)
        self.db.expire_all()

        # Step c: profile scalars
        for key, attr in PROFILE_FIELDS.items():
            if key not in backup.user:
                continue
            value = backup.user[key]
            if value is None and key in REQUIRED_PROFILE_FIELDS:
                continue
            setattr(user, attr, value)
        user.updated_at = datetime.utcnow()

        # Step d: media with old -> new ID maps
        game_ids = self._create_media(Game, "igdb_id", data.get("games") or [])
        movie_ids = self._create_media(Movie, "tmdb_id", data.get("movies") or [])
        result.games = len(game_ids)
        result.movies = len(movie_ids)

        # Step e: library entries, dropping any whose media did not come back
        result.user_games = self._create_entries(
            UserGame, "gameId", "game_id", game_ids, user_id, data.get("userGames") or [], result
        )
        result.user_movies = self._create_entries(
            UserMovie, "movieId", "movie_id", movie_ids, user_id, data.get("userMovies") or [], result
        )

        # Step f: credentials
        for cred_data in backup.api_credentials:
            values = deserialize_row(UserApiCredential, cred_data, exclude=("id", "user_id"))
            self.db.add(UserApiCredential(**values, user_id=user_id))
            result.api_credentials += 1

        # Surface constraint violations here, inside the transaction
        self.db.flush()

    def _delete_orphaned_media(self, model, reference_column, candidate_ids: List[int]):
        if not candidate_ids:
            return
        still_used = {
            row[0] for row in self.db.query(reference_column).filter(reference_column.in_(candidate_ids))
        }
        orphaned = set(candidate_ids) - still_used
        if orphaned:
            self.db.query(model).filter(model.id.in_(orphaned)).delete(synchronize_session=False)
            logger.debug(f"Removed {len(orphaned)} unreferenced {model.__tablename__}")

    def _create_media(self, model, external_id_attr: str, items: List[Dict[str, Any]]) -> Dict[str, int]:
        """Insert archived media as new rows and return {archived id: new id}."""
        id_map: Dict[str, int] = {}
        created = []

        for item in items:
            old_id = item.get("id")
            values = deserialize_row(model, item, exclude=("id",))

            # Shared catalog survives scoped cleanup; reuse matching rows
            existing = None
            external_id = values.get(external_id_attr)
            if self.scoped_media_cleanup and external_id is not None:
                existing = (
                    self.db.query(model)
                    .filter(getattr(model, external_id_attr) == external_id)
                    .first()
                )

            if existing is not None:
                if old_id is not None:
                    id_map[str(old_id)] = existing.id
                continue

            record = model(**values)
            self.db.add(record)
            created.append((old_id, record))

        self.db.flush()
        for old_id, record in created:
            if old_id is not None:
                id_map[str(old_id)] = record.id

        return id_map

    def _create_entries(
        self,
        model,
        reference_key: str,
        reference_attr: str,
        id_map: Dict[str, int],
        user_id: int,
        entries: List[Dict[str, Any]],
        result: RestoreResult
    ) -> int:
        count = 0
        for entry in entries:
            new_media_id = id_map.get(str(entry.get(reference_key)))
            if new_media_id is None:
                logger.debug(f"Skipping {model.__tablename__} entry {entry.get('id')}: media not in backup")
                result.skipped_entries += 1
                continue

            values = deserialize_row(model, entry, exclude=("id", "user_id", reference_attr))
            values[reference_attr] = new_media_id
            self.db.add(model(**values, user_id=user_id))
            count += 1
        return count

    async def _restore_images(self, backup: ParsedBackup, result: RestoreResult):
        if not backup.images:
            return

        if self.image_cache is None:
            result.image_errors.append("Image cache unavailable; images were not restored")
            return

        logger.info(f"Restoring {len(backup.images)} cached images...")
        try:
            report = await self.image_cache.restore(backup.images)
        except Exception as e:
            logger.warning(f"Image cache restore failed: {e}", exc_info=True)
            result.image_errors.append(f"Image restore failed: {e}")
            return

        result.images = report.restored
        result.image_errors.extend(f"Failed to restore image {name}" for name in report.failed)

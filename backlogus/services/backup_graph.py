"""Load one account's data graph for backup and find the images it references."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, date, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Set
from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Session, joinedload

from backlogus.models import User, UserApiCredential, UserGame, UserMovie

logger = logging.getLogger(__name__)

# Largest integer a JSON consumer using IEEE-754 doubles can hold exactly
MAX_SAFE_INTEGER = 2 ** 53 - 1

MEDIA_IMAGE_FIELDS = ("coverUrl", "bannerUrl", "backdropUrl")
MEDIA_IMAGE_LIST_FIELDS = ("screenshots", "artworks")


class UserNotFoundError(Exception):
    """Raised when the account being backed up does not exist."""
    pass


@dataclass
class UserGraph:
    """
    Everything one account owns, already converted to JSON-safe dicts.

    Library entries carry their media item nested under "game" / "movie".
    """
    user: Dict[str, Any]
    user_games: List[Dict[str, Any]] = field(default_factory=list)
    user_movies: List[Dict[str, Any]] = field(default_factory=list)
    api_credentials: List[Dict[str, Any]] = field(default_factory=list)


def camel_case(name: str) -> str:
    """snake_case column name -> camelCase document key."""
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_json_safe(value: Any) -> Any:
    """
    Convert a column value into something json.dumps accepts and JS can read.

    Integers beyond 2**53 - 1 become floats and lose precision; catalog IDs
    from IGDB/TMDB are far below that today.
    """
    if value is None or isinstance(value, (str, bool, float)):
        return value
    if isinstance(value, int):
        if abs(value) > MAX_SAFE_INTEGER:
            logger.warning(f"Integer {value} exceeds the JSON-safe range, precision will be lost")
            return float(value)
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    return str(value)


def serialize_row(row: Any, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Dump every mapped column of an ORM row under camelCase keys."""
    excluded = set(exclude)
    return {
        camel_case(column.key): to_json_safe(getattr(row, column.key))
        for column in row.__table__.columns
        if column.key not in excluded
    }


def _parse_datetime(value: str) -> datetime:
    # Stored naive in UTC; archives written elsewhere may carry "Z" or an offset
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def deserialize_row(model: Any, data: Dict[str, Any], exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Inverse of serialize_row: constructor kwargs for `model` from a document dict.

    Keys absent from the document, and nulls for NOT NULL columns, are left
    out so column defaults apply.
    """
    excluded = set(exclude)
    values = {}
    for column in model.__table__.columns:
        if column.key in excluded:
            continue
        key = camel_case(column.key)
        if key not in data:
            continue

        value = data[key]
        if value is None:
            if column.nullable:
                values[column.key] = None
            continue

        if isinstance(column.type, DateTime) and isinstance(value, str):
            value = _parse_datetime(value)
        elif isinstance(column.type, Integer) and isinstance(value, float):
            value = int(value)
        values[column.key] = value
    return values


def load_user_graph(db: Session, user_id: int) -> UserGraph:
    """
    Load the profile, library entries (with media) and API credentials of one account.

    Raises:
        UserNotFoundError: No account with this ID
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFoundError(f"User {user_id} not found")

    user_games = (
        db.query(UserGame)
        .options(joinedload(UserGame.game))
        .filter(UserGame.user_id == user_id)
        .order_by(UserGame.id)
        .all()
    )
    user_movies = (
        db.query(UserMovie)
        .options(joinedload(UserMovie.movie))
        .filter(UserMovie.user_id == user_id)
        .order_by(UserMovie.id)
        .all()
    )
    credentials = (
        db.query(UserApiCredential)
        .filter(UserApiCredential.user_id == user_id)
        .order_by(UserApiCredential.id)
        .all()
    )

    graph = UserGraph(
        user=serialize_row(user, exclude=("password_hash",)),
        user_games=[
            {**serialize_row(entry), "game": serialize_row(entry.game)}
            for entry in user_games
        ],
        user_movies=[
            {**serialize_row(entry), "movie": serialize_row(entry.movie)}
            for entry in user_movies
        ],
        api_credentials=[serialize_row(cred) for cred in credentials],
    )

    logger.debug(
        f"Loaded graph for user {user_id}: {len(graph.user_games)} games, "
        f"{len(graph.user_movies)} movies, {len(graph.api_credentials)} credentials"
    )
    return graph


def _is_external_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(("http://", "https://"))


def extract_image_urls(graph: UserGraph) -> Set[str]:
    """
    Collect every external image URL the graph references.

    Sources: the profile avatar, and for each media item its cover, banner
    and backdrop plus every screenshot/artwork entry. Missing fields are skipped.
    """
    urls: Set[str] = set()

    if _is_external_url(graph.user.get("avatarUrl")):
        urls.add(graph.user["avatarUrl"])

    media_items = [entry.get("game") for entry in graph.user_games]
    media_items += [entry.get("movie") for entry in graph.user_movies]

    for media in media_items:
        if not media:
            continue
        for key in MEDIA_IMAGE_FIELDS:
            if _is_external_url(media.get(key)):
                urls.add(media[key])
        for key in MEDIA_IMAGE_LIST_FIELDS:
            for item in media.get(key) or []:
                # Provider payloads sometimes store {"url": ...} objects
                if isinstance(item, dict):
                    item = item.get("url")
                if _is_external_url(item):
                    urls.add(item)

    return urls

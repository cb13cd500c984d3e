"""Database configuration and session management."""

import logging
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()

# Database configuration
DATABASE_DIR = Path(__file__).parent.parent.parent / "data"
DATABASE_PATH = DATABASE_DIR / "backlogus.db"
DATABASE_URL = f"sqlite:///{DATABASE_PATH}"
SQLITE_BUSY_TIMEOUT_SECONDS = 30


def create_db_engine(url: str) -> Engine:
    """Create an engine; SQLite connections get a busy timeout and thread sharing."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {
            "check_same_thread": False,  # Needed for SQLite
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
        }
    return create_engine(url, connect_args=connect_args, echo=False)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """Library entries rely on ON DELETE CASCADE, which SQLite only honours with this pragma."""
    module = type(dbapi_connection).__module__
    if not module.startswith("sqlite3"):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = create_db_engine(DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def configure_database(url: str) -> Engine:
    """
    Point the session factory at a different database.

    Called once at startup with the URL from system config.
    """
    global engine, DATABASE_URL
    if url == DATABASE_URL:
        return engine

    engine = create_db_engine(url)
    DATABASE_URL = url
    SessionLocal.configure(bind=engine)
    logger.info(f"Database configured: {url}")
    return engine


def get_db() -> Session:
    """
    Get a database session.

    Usage in FastAPI endpoints:
        @router.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            # Use db here
            pass

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Initialize the database.

    Brings the schema up to date through Alembic (fresh databases are
    created and stamped). Should be called on application startup.
    """
    from backlogus.db.migrations import ensure_database_ready

    if DATABASE_URL.startswith("sqlite:///"):
        Path(DATABASE_URL[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    # Import all models so they're registered with Base
    from backlogus.models import user, media  # noqa: F401

    ensure_database_ready(DATABASE_URL)
    logger.info(f"Database ready: {DATABASE_URL}")

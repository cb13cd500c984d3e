"""Tests for database startup: fresh creation and upgrades through Alembic."""

from sqlalchemy import create_engine, inspect, text

from backlogus.db.migrations import MigrationManager, ensure_database_ready

TABLES = {"users", "user_api_credentials", "games", "movies", "user_games", "user_movies"}


def test_fresh_database_is_created_and_stamped(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'fresh.db'}"

    ensure_database_ready(db_url)

    manager = MigrationManager(db_url)
    assert TABLES <= set(inspect(manager.engine).get_table_names())
    assert manager.get_current_revision() == manager.get_head_revision()
    assert not manager.has_pending_migrations()


def test_second_startup_is_a_no_op(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'twice.db'}"

    ensure_database_ready(db_url)
    ensure_database_ready(db_url)

    manager = MigrationManager(db_url)
    assert manager.get_current_revision() == manager.get_head_revision()


def test_existing_untracked_database_is_upgraded(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'legacy.db'}"
    engine = create_engine(db_url)
    with engine.begin() as connection:
        connection.execute(text("CREATE TABLE legacy_settings (key TEXT PRIMARY KEY, value TEXT)"))
    engine.dispose()

    manager = MigrationManager(db_url)
    assert not manager.is_fresh_database()
    assert manager.get_current_revision() is None

    manager.ensure_database_ready()

    tables = set(inspect(manager.engine).get_table_names())
    assert TABLES <= tables
    assert "legacy_settings" in tables
    assert manager.get_current_revision() == manager.get_head_revision()

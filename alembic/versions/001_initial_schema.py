"""Initial schema: accounts, credentials, media catalog and library entries

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-09-14 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the initial tables."""

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('theme_preference', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'user_api_credentials',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('api_provider', sa.String(length=20), nullable=False),
        sa.Column('api_key', sa.Text(), nullable=True),
        sa.Column('client_id', sa.Text(), nullable=True),
        sa.Column('client_secret', sa.Text(), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'api_provider', name='uq_user_api_provider')
    )
    op.create_index('ix_user_api_credentials_user_id', 'user_api_credentials', ['user_id'])

    op.create_table(
        'games',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('igdb_id', sa.BigInteger(), nullable=True),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('cover_url', sa.Text(), nullable=True),
        sa.Column('banner_url', sa.Text(), nullable=True),
        sa.Column('screenshots', sa.JSON(), nullable=True),
        sa.Column('artworks', sa.JSON(), nullable=True),
        sa.Column('release_date', sa.DateTime(), nullable=True),
        sa.Column('genres', sa.JSON(), nullable=True),
        sa.Column('platforms', sa.JSON(), nullable=True),
        sa.Column('developer', sa.String(length=200), nullable=True),
        sa.Column('publisher', sa.String(length=200), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_games_igdb_id', 'games', ['igdb_id'])

    op.create_table(
        'movies',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tmdb_id', sa.BigInteger(), nullable=True),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('overview', sa.Text(), nullable=True),
        sa.Column('cover_url', sa.Text(), nullable=True),
        sa.Column('backdrop_url', sa.Text(), nullable=True),
        sa.Column('release_date', sa.DateTime(), nullable=True),
        sa.Column('runtime', sa.Integer(), nullable=True),
        sa.Column('genres', sa.JSON(), nullable=True),
        sa.Column('director', sa.String(length=200), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_movies_tmdb_id', 'movies', ['tmdb_id'])

    op.create_table(
        'user_games',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('platform', sa.String(length=100), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('hours_played', sa.Float(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['game_id'], ['games.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'game_id', name='uq_user_game')
    )
    op.create_index('ix_user_games_user_id', 'user_games', ['user_id'])
    op.create_index('ix_user_games_game_id', 'user_games', ['game_id'])

    op.create_table(
        'user_movies',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('movie_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('platform', sa.String(length=100), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('watched_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['movie_id'], ['movies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'movie_id', name='uq_user_movie')
    )
    op.create_index('ix_user_movies_user_id', 'user_movies', ['user_id'])
    op.create_index('ix_user_movies_movie_id', 'user_movies', ['movie_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('ix_user_movies_movie_id', table_name='user_movies')
    op.drop_index('ix_user_movies_user_id', table_name='user_movies')
    op.drop_table('user_movies')
    op.drop_index('ix_user_games_game_id', table_name='user_games')
    op.drop_index('ix_user_games_user_id', table_name='user_games')
    op.drop_table('user_games')
    op.drop_index('ix_movies_tmdb_id', table_name='movies')
    op.drop_table('movies')
    op.drop_index('ix_games_igdb_id', table_name='games')
    op.drop_table('games')
    op.drop_index('ix_user_api_credentials_user_id', table_name='user_api_credentials')
    op.drop_table('user_api_credentials')
    op.drop_table('users')

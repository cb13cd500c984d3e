"""Database package for Backlogus."""

from .database import Base, get_db, init_db, configure_database

__all__ = ["Base", "get_db", "init_db", "configure_database"]

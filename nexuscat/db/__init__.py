"""Database package."""

from nexuscat.db.init import create_engine, create_session_factory, drop_db, init_db

__all__ = ["create_engine", "create_session_factory", "init_db", "drop_db"]

"""
Database Module
"""
from .connection import (
    init_database,
    close_database,
    get_db,
    get_session_factory,
    build_session_factory,
    session_scope,
)
from .models import Base, TABLES, DATE_COLUMNS

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_session_factory",
    "build_session_factory",
    "session_scope",
    "Base",
    "TABLES",
    "DATE_COLUMNS",
]

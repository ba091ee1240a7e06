"""
Database Package

This package contains database connection and session management.
"""

from crestcat.db.base import Base
from crestcat.db.session import (
    AsyncSessionLocal,
    check_db_connection,
    create_tables,
    engine,
    get_db,
    get_db_context,
)

__all__ = [
    "AsyncSessionLocal",
    "Base",
    "check_db_connection",
    "create_tables",
    "engine",
    "get_db",
    "get_db_context",
]

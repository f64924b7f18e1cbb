"""Storage layer for PerfKit backend"""

from .database import (
    DatabaseInterface,
    InMemoryDatabase,
    ProfileRecord,
    SessionRecord,
)
from .sqlite_database import SQLiteDatabase

__all__ = [
    "DatabaseInterface",
    "InMemoryDatabase",
    "ProfileRecord",
    "SessionRecord",
    "SQLiteDatabase",
]

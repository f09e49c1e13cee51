"""Persistence sink SPI and implementations."""

from .base import PersistenceSink, UpsertResult
from .file_sink import FileSink
from .sqlite_sink import NearbyTournament, SQLiteSink

__all__ = ["FileSink", "NearbyTournament", "PersistenceSink", "SQLiteSink", "UpsertResult"]

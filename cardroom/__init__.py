"""Table host package: wraps the poker engine with networking and storage."""

from .server import TableServer
from .store import MemoryPlayerStore, PlayerRecord, SqlitePlayerStore

__all__ = ["TableServer", "MemoryPlayerStore", "PlayerRecord", "SqlitePlayerStore"]

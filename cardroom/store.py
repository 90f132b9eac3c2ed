from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Dict

LOGGER = logging.getLogger("cardroom.store")


@dataclass
class PlayerRecord:
    player_id: str
    stack: int
    hands_won: int = 0


class MemoryPlayerStore:
    """Dict-backed store; records last as long as the process."""

    def __init__(self, starting_stack: int = 1_000) -> None:
        self.starting_stack = starting_stack
        self.records: Dict[str, PlayerRecord] = {}

    def load_or_create(self, player_id: str) -> PlayerRecord:
        record = self.records.get(player_id)
        if record is None:
            record = PlayerRecord(player_id=player_id, stack=self.starting_stack)
            self.records[player_id] = record
        return PlayerRecord(record.player_id, record.stack, record.hands_won)

    def save(self, record: PlayerRecord) -> None:
        self.records[record.player_id] = PlayerRecord(record.player_id, record.stack, record.hands_won)

    def close(self) -> None:
        pass


class SqlitePlayerStore:
    """Persistent ``(stack, hands_won)`` per player identity."""

    def __init__(self, path: str, starting_stack: int = 1_000) -> None:
        self.starting_stack = starting_stack
        # Calls arrive from worker threads, one at a time under the table lock.
        self.conn = sqlite3.connect(path, check_same_thread=False)
        with self.conn:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS players (
                    player_id TEXT PRIMARY KEY,
                    stack INTEGER NOT NULL,
                    hands_won INTEGER NOT NULL DEFAULT 0
                )
                """
            )

    def load_or_create(self, player_id: str) -> PlayerRecord:
        row = self.conn.execute(
            "SELECT stack, hands_won FROM players WHERE player_id = ?", (player_id,)
        ).fetchone()
        if row is not None:
            return PlayerRecord(player_id=player_id, stack=row[0], hands_won=row[1])
        record = PlayerRecord(player_id=player_id, stack=self.starting_stack)
        self.save(record)
        LOGGER.info("Created player %s with stack %s", player_id, record.stack)
        return record

    def save(self, record: PlayerRecord) -> None:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO players (player_id, stack, hands_won) VALUES (?, ?, ?)
                ON CONFLICT(player_id) DO UPDATE SET stack = excluded.stack, hands_won = excluded.hands_won
                """,
                (record.player_id, record.stack, record.hands_won),
            )

    def close(self) -> None:
        self.conn.close()

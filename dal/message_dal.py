"""Async Data Access Layer for the `messages` table.

Provides MessageDAL, the SQLite-backed transcript store. Turns are written
once and read back in append order; there is no update or delete-by-id.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

import aiosqlite

from models.errors import InvalidTurnError, StorageError
from models.turn import ROLES, Turn
from utils.database_init import AsyncDatabaseInitializer

logger = logging.getLogger(__name__)


def validate_turn(role: object, content: object) -> None:
    """Raise InvalidTurnError unless `role` is user/model and `content` is non-empty text."""
    if role not in ROLES:
        raise InvalidTurnError(f"Invalid role {role!r}; expected one of {', '.join(ROLES)}")
    if not isinstance(content, str) or not content:
        raise InvalidTurnError("Message content must be non-empty text")


class MessageDAL:
    """Data access layer for chat turns.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def list_turns(self) -> List[Turn]:
        """Return every turn, oldest first."""
        try:
            async with self._db.connection() as conn:
                # id breaks ties between rows written within the same second.
                cur = await conn.execute(
                    "SELECT role, content FROM messages ORDER BY timestamp ASC, id ASC"
                )
                rows = await cur.fetchall()
        except (aiosqlite.Error, OSError) as exc:
            logger.error("Failed to read transcript: %s", exc)
            raise StorageError("Failed to fetch messages") from exc
        return [self._row_to_turn(r) for r in rows]

    async def append_turn(self, role: str, content: str) -> None:
        """Insert a new turn at the end of the transcript."""
        validate_turn(role, content)
        try:
            async with self._db.connection() as conn:
                await conn.execute(
                    "INSERT INTO messages (role, content) VALUES (?, ?)",
                    (role, content),
                )
                await conn.commit()
        except (aiosqlite.Error, OSError) as exc:
            logger.error("Failed to append %s turn: %s", role, exc)
            raise StorageError("Failed to save message") from exc

    async def clear_all(self) -> None:
        """Delete every turn."""
        try:
            async with self._db.connection() as conn:
                await conn.execute("DELETE FROM messages")
                await conn.commit()
        except (aiosqlite.Error, OSError) as exc:
            logger.error("Failed to clear transcript: %s", exc)
            raise StorageError("Failed to clear messages") from exc

    @staticmethod
    def _row_to_turn(row: Sequence[object]) -> Turn:
        """Convert a DB row tuple into a Turn."""
        return Turn(role=str(row[0]), content=str(row[1]))

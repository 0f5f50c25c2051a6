import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

from utils.settings import load_settings


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite database that holds the chat transcript.

    - The database file lives at <DATABASE_DIR>/<DATABASE_FILE>
      (defaults: ./database/nexus.db) unless an explicit path is given.
    - The first call to `ensure_database()` creates the directory and the
      `messages` table when missing. An existing transcript is kept.
    - Subsequent calls on the same instance are no-ops, so it is safe for
      `connection()` to call it.
    """

    def __init__(self, db_path: Optional[Path | str] = None) -> None:
        if db_path is None:
            db_path = load_settings().database_path
        db_path = Path(db_path).expanduser()
        db_dir = db_path.parent

        # If the path exists but is not a directory, that's a configuration error.
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"Database directory {db_dir} points to a file, not a directory. "
                f"Please set DATABASE_DIR to a directory path."
            )

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {db_dir}"
            ) from exc

        self.db_dir = db_dir
        self.db_path = db_path

        self._initialized = False

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database and the `messages` table exist.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        max_attempts = 3
        for attempt in range(1, max_attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS messages (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            role TEXT NOT NULL,
                            content TEXT NOT NULL,
                            timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
                        )
                        """
                    )
                    await db.commit()
                break
            except FileNotFoundError:
                # On some platforms a transient missing file error may occur; retry a few times.
                if attempt >= max_attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()

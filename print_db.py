"""Print the chat transcript stored in the project's SQLite database.

Turns are printed in the order they were appended, one per line with
their id, timestamp and role. It reuses the same `DATABASE_DIR` /
`DATABASE_FILE` behavior as the application via
`utils.database_init.AsyncDatabaseInitializer`.

Run: set `DATABASE_DIR` (or rely on the default `./database`) and run
      `python print_db.py`.
"""
import asyncio

import aiosqlite
from dotenv import load_dotenv

from utils.database_init import AsyncDatabaseInitializer


def _format_row(row: aiosqlite.Row) -> str:
    """Return a single printable line for a `messages` row.

    Args:
        row: Tuple of (id, timestamp, role, content).

    Returns:
        The row rendered with newlines in the content escaped.
    """
    msg_id, timestamp, role, content = row
    text = str(content or "").replace("\n", "\\n")
    return f"[{msg_id}] {timestamp} {role}: {text}"


async def main() -> None:
    """Ensure DB exists and print every turn in append order."""
    load_dotenv()
    initializer = AsyncDatabaseInitializer()
    async with initializer.connection() as conn:
        cur = await conn.execute(
            "SELECT id, timestamp, role, content FROM messages ORDER BY timestamp ASC, id ASC"
        )
        rows = await cur.fetchall()

    if not rows:
        print(f"No messages in {initializer.db_path}")
        return

    print(f"Messages in {initializer.db_path}:")
    for row in rows:
        print("  " + _format_row(row))


if __name__ == "__main__":
    asyncio.run(main())

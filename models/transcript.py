"""Transcript store contract."""

from __future__ import annotations

from typing import List, Protocol

from models.turn import Turn


class TranscriptStore(Protocol):
	"""Append-only ordered log of turns: read all, append one, wipe all.

	Every method raises `StorageError` on failure.
	"""

	async def list_turns(self) -> List[Turn]:
		...

	async def append_turn(self, role: str, content: str) -> None:
		...

	async def clear_all(self) -> None:
		...

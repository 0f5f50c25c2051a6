"""Transcript store that talks to the `/api/messages` HTTP surface."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from models.errors import StorageError
from models.turn import Turn

logger = logging.getLogger(__name__)


class HttpTranscriptStore:
	"""Read, append and wipe turns through a running chat server."""

	def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None) -> None:
		self.base_url = base_url.rstrip("/")
		self._client = client or httpx.AsyncClient(base_url=self.base_url)

	async def list_turns(self) -> List[Turn]:
		data = await self._request("GET", "Failed to fetch messages")
		if not isinstance(data, list):
			raise StorageError("Failed to fetch messages")
		turns = []
		for item in data:
			if not isinstance(item, dict):
				raise StorageError("Failed to fetch messages")
			turns.append(Turn(role=str(item.get("role", "")), content=str(item.get("content", ""))))
		return turns

	async def append_turn(self, role: str, content: str) -> None:
		await self._request("POST", "Failed to save message", json={"role": role, "content": content})

	async def clear_all(self) -> None:
		await self._request("DELETE", "Failed to clear messages")

	async def aclose(self) -> None:
		await self._client.aclose()

	async def _request(self, method: str, fallback: str, **kwargs: Any) -> Any:
		"""Send one request to `/api/messages` and return the decoded JSON body."""
		try:
			response = await self._client.request(method, f"{self.base_url}/api/messages", **kwargs)
		except httpx.HTTPError as exc:
			logger.warning("%s /api/messages failed: %s", method, exc)
			raise StorageError(f"{fallback}: {exc}") from exc

		try:
			body = response.json()
		except ValueError:
			body = None

		if response.is_error:
			detail = body.get("error") if isinstance(body, dict) else None
			logger.warning("%s /api/messages returned %s", method, response.status_code)
			raise StorageError(detail or fallback)
		return body

"""Dispatch chat websocket events to a per-connection SessionController."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket
from pydantic import BaseModel, Field, ValidationError

from controllers.session_controller import SessionController

logger = logging.getLogger(__name__)


class ConfigUpdate(BaseModel):
	"""Agent settings a client may change; omitted fields stay as they are."""

	name: Optional[str] = None
	system_instruction: Optional[str] = None
	model: Optional[str] = None
	temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class ChatSocketHandler:
	"""Route websocket messages for a single browser tab.

	A submitted turn runs as a background task so the socket keeps reading;
	frames that would start or clear a turn while one is in flight are
	answered with `chat.ignored`.
	"""

	def __init__(self, websocket: WebSocket, store, session_factory) -> None:
		self.websocket = websocket
		self.controller = SessionController(store, session_factory, on_change=self._push_snapshot)
		self._turn: Optional[asyncio.Task] = None
		# request_id carried by snapshots pushed from the controller
		self._snapshot_request_id: Any = None

	@property
	def turn_active(self) -> bool:
		return self.controller.busy or (self._turn is not None and not self._turn.done())

	async def handle(self, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		message_type = payload.get("type")
		try:
			if message_type == "conversation.load":
				if self.turn_active:
					await self._send({"type": "chat.ignored", "busy": True}, request_id)
					return
				self._snapshot_request_id = request_id
				await self.controller.load()
				if self.controller.load_error:
					await self._send_error(self.controller.load_error, request_id)
			elif message_type == "chat.send":
				text = payload.get("text") or ""
				if self.turn_active or not text.strip():
					await self._send({"type": "chat.ignored", "busy": self.turn_active}, request_id)
					return
				self._snapshot_request_id = request_id
				self._turn = asyncio.create_task(self._run_turn(text, request_id))
			elif message_type == "chat.clear":
				if self.turn_active:
					await self._send({"type": "chat.ignored", "busy": True}, request_id)
					return
				self._snapshot_request_id = request_id
				await self.controller.clear_all()
			elif message_type == "config.get":
				await self._send({"type": "config", "config": self.controller.config.to_dict()}, request_id)
			elif message_type == "config.update":
				update = ConfigUpdate(**(payload.get("config") or {}))
				config = self.controller.update_config(**update.model_dump())
				await self._send({"type": "config", "config": config.to_dict()}, request_id)
			else:
				raise ValueError("Unsupported message type.")
		except ValidationError as exc:
			await self._send_error(f"Invalid config: {exc.errors()[0].get('msg', 'validation failed')}", request_id)
		except Exception as exc:
			await self._send_error(str(exc), request_id)

	async def close(self) -> None:
		"""Let an in-flight turn finish so its reply is still persisted."""
		if self._turn is None:
			return
		try:
			await self._turn
		except Exception as exc:
			logger.warning("Chat turn ended with an error after disconnect: %s", exc)

	async def _run_turn(self, text: str, request_id: Any) -> None:
		result = await self.controller.submit(text)
		if result is None:
			await self._send({"type": "chat.ignored", "busy": self.controller.busy}, request_id)
			return
		try:
			await self._send({
				"type": "chat.done",
				"phase": result.phase.value,
				"fragments": result.fragments,
				"persisted": result.persisted,
				"error": result.error,
			}, request_id)
		except Exception as exc:
			logger.warning("Could not deliver chat.done: %s", exc)

	async def _push_snapshot(self, controller: SessionController) -> None:
		await self._send({"type": "conversation.snapshot", **controller.snapshot()}, self._snapshot_request_id)

	async def _send_error(self, detail: str, request_id: Any) -> None:
		await self._send({"type": "error", "detail": detail}, request_id)

	async def _send(self, payload: Dict[str, Any], request_id: Any) -> None:
		payload["request_id"] = request_id
		await self.websocket.send_text(json.dumps(payload))

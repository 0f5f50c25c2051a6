"""WebSocket endpoint for live chat turns."""

from __future__ import annotations

import json

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from dal.message_dal import MessageDAL
from services.realtime.ws_session import ChatSocketHandler

router = APIRouter()


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket):
	"""Run one chat controller for the lifetime of the connection."""
	await websocket.accept()
	store = MessageDAL(websocket.app.state.db_initializer)
	handler = ChatSocketHandler(websocket, store, websocket.app.state.session_factory)
	while True:
		try:
			raw = await websocket.receive_text()
		except WebSocketDisconnect:
			break
		try:
			payload = json.loads(raw)
		except ValueError:
			await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be JSON"}))
			continue
		if not isinstance(payload, dict):
			await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be a JSON object"}))
			continue
		await handler.handle(payload)
	await handler.close()

"""FastAPI routes for the persisted transcript."""

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from controllers.messages_controller import append_message, clear_messages, list_messages
from models.errors import InvalidTurnError

router = APIRouter(prefix="/api/messages", tags=["messages"])
logger = logging.getLogger(__name__)


class MessagePayload(BaseModel):
    role: Any = None
    content: Any = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get("")
async def get_messages(request: Request):
    """Return every turn ordered by insertion time."""
    try:
        return await list_messages(request)
    except Exception as exc:
        logger.error("GET /api/messages failed: %s", exc)
        return _error(500, "Failed to fetch messages")


@router.post("", status_code=201)
async def post_message(request: Request):
    """Append one `{role, content}` turn."""
    try:
        payload = MessagePayload.model_validate(await request.json())
    except (ValueError, ValidationError):
        return _error(400, "Request body must be a JSON object with role and content")
    try:
        return await append_message(request, payload.role, payload.content)
    except InvalidTurnError as exc:
        return _error(400, exc.message)
    except Exception as exc:
        logger.error("POST /api/messages failed: %s", exc)
        return _error(500, "Failed to save message")


@router.delete("")
async def delete_messages(request: Request):
    """Wipe the transcript."""
    try:
        return await clear_messages(request)
    except Exception as exc:
        logger.error("DELETE /api/messages failed: %s", exc)
        return _error(500, "Failed to clear messages")

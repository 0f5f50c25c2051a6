from fastapi import Request
from typing import Any, Dict, List

from dal.message_dal import MessageDAL


def _message_dal(request: Request) -> MessageDAL:
    return MessageDAL(request.app.state.db_initializer)


async def list_messages(request: Request) -> List[Dict[str, Any]]:
    """Return the full transcript as `{role, content}` dicts, oldest first."""
    turns = await _message_dal(request).list_turns()
    return [turn.to_dict() for turn in turns]


async def append_message(request: Request, role: str, content: str) -> Dict[str, Any]:
    """Append one turn to the transcript.

    Raises:
        InvalidTurnError: If the role is not user/model or the content is empty.
        StorageError: If the row could not be written.
    """
    await _message_dal(request).append_turn(role, content)
    return {"success": True}


async def clear_messages(request: Request) -> Dict[str, Any]:
    """Delete every turn."""
    await _message_dal(request).clear_all()
    return {"success": True}

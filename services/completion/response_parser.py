"""Helpers to pull text and error details out of streamed chat completions."""

from __future__ import annotations

from typing import Any


def extract_delta_text(chunk: Any) -> str:
	"""Return the incremental text carried by one streamed chunk, or ''."""
	choices = getattr(chunk, "choices", None) or []
	if not choices:
		return ""
	delta = getattr(choices[0], "delta", None)
	content = getattr(delta, "content", None) if delta is not None else None
	return content or ""


def extract_error_message(exc: BaseException) -> str:
	"""Return the provider's own message for an exception when it has one."""
	body = getattr(exc, "body", None)
	if isinstance(body, dict):
		error = body.get("error", body)
		if isinstance(error, dict) and error.get("message"):
			return str(error["message"])
	message = getattr(exc, "message", None) or str(exc)
	return message or "Failed to connect to Gemini API"

"""Conversation domain models for the chat client."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict

USER_ROLE = "user"
MODEL_ROLE = "model"
ROLES = (USER_ROLE, MODEL_ROLE)

DEFAULT_AGENT_NAME = "Nexus"
DEFAULT_SYSTEM_INSTRUCTION = (
	"You are a helpful, intelligent AI assistant named Nexus. "
	"You provide clear, concise, and accurate information."
)
DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_TEMPERATURE = 0.7


@dataclass(frozen=True)
class Turn:
	"""One chat message. Ephemeral turns are shown but never persisted."""

	role: str
	content: str
	ephemeral: bool = False

	def to_dict(self) -> Dict[str, Any]:
		payload: Dict[str, Any] = {"role": self.role, "content": self.content}
		if self.ephemeral:
			payload["ephemeral"] = True
		return payload


@dataclass
class AgentConfig:
	"""User-adjustable parameters for generating a reply."""

	name: str = DEFAULT_AGENT_NAME
	system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
	model: str = DEFAULT_MODEL
	temperature: float = DEFAULT_TEMPERATURE

	def updated(self, **changes: Any) -> "AgentConfig":
		"""Return a copy with the non-None changes applied."""
		return replace(self, **{k: v for k, v in changes.items() if v is not None})

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)


class TurnPhase(str, Enum):
	"""Lifecycle of one submitted turn."""

	IDLE = "idle"
	USER_SUBMITTED = "user_submitted"
	AWAITING_STREAM = "awaiting_stream"
	STREAMING = "streaming"
	COMPLETED = "completed"
	FAILED = "failed"


@dataclass
class TurnResult:
	"""Outcome of `SessionController.submit`."""

	reply: str = ""
	fragments: int = 0
	persisted: bool = False
	error: str | None = None
	phase: TurnPhase = field(default=TurnPhase.COMPLETED)

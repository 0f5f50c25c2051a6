"""One streamed completion against the model provider.

A `CompletionSession` takes the prior transcript, the new user message and
the active `AgentConfig`, opens a chat context on the provider seeded with
that history, and exposes the reply as an async iterator of text fragments.
The provider is reached through the OpenAI SDK pointed at an
OpenAI-compatible Gemini endpoint.
"""

from __future__ import annotations

import inspect
import logging
import time
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

from openai import AsyncOpenAI

from models.errors import MissingCredentialError, ProviderError, SessionConsumedError
from models.turn import DEFAULT_MODEL, MODEL_ROLE, AgentConfig, Turn
from services.completion.response_parser import extract_delta_text, extract_error_message
from utils.settings import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], Any]

# Transcript roles mapped onto the chat-completions wire roles.
_WIRE_ROLES = {"user": "user", MODEL_ROLE: "assistant"}


def default_client_factory(base_url: str = DEFAULT_BASE_URL) -> ClientFactory:
	"""Return a factory building an `AsyncOpenAI` client for a given key.

	SDK retries are disabled and no timeout override is applied.
	"""

	def factory(api_key: str) -> AsyncOpenAI:
		return AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

	return factory


def build_messages(history: Sequence[Turn], user_message: str, config: AgentConfig) -> List[Dict[str, str]]:
	"""Map the system instruction, history and new message onto provider messages.

	History order is kept exactly; each Turn becomes one message.
	"""
	messages: List[Dict[str, str]] = []
	if config.system_instruction:
		messages.append({"role": "system", "content": config.system_instruction})
	for turn in history:
		messages.append({"role": _WIRE_ROLES.get(turn.role, turn.role), "content": turn.content})
	messages.append({"role": "user", "content": user_message})
	return messages


class CompletionSession:
	"""Stream a single model reply. Not restartable."""

	def __init__(
		self,
		history: Sequence[Turn],
		user_message: str,
		config: AgentConfig,
		*,
		api_key: Optional[str],
		client_factory: Optional[ClientFactory] = None,
	) -> None:
		if not api_key:
			raise MissingCredentialError(
				"API Key is missing. Please add GEMINI_API_KEY to your environment and restart the server."
			)
		self.history = list(history)
		self.user_message = user_message
		self.config = config
		self._api_key = api_key
		self._client_factory = client_factory or default_client_factory()
		self._consumed = False

	def stream(self) -> AsyncIterator[str]:
		"""Return the async iterator of reply fragments.

		Raises:
			SessionConsumedError: If the session has already been streamed.
		"""
		if self._consumed:
			raise SessionConsumedError()
		self._consumed = True
		return self._fragments()

	def __aiter__(self) -> AsyncIterator[str]:
		return self.stream()

	async def _fragments(self) -> AsyncIterator[str]:
		start = time.time()
		client = self._client_factory(self._api_key)
		model = self.config.model or DEFAULT_MODEL
		produced = 0
		try:
			try:
				stream = await client.chat.completions.create(
					model=model,
					messages=build_messages(self.history, self.user_message, self.config),
					temperature=self.config.temperature,
					stream=True,
				)
				async for chunk in stream:
					text = extract_delta_text(chunk)
					if not text:
						continue
					produced += 1
					yield text
			except Exception as exc:
				message = extract_error_message(exc)
				logger.error(f"Gemini API error after {produced} fragments: {message}")
				raise ProviderError(message) from exc
		finally:
			await _close_client(client)

		logger.info(f"Completion for model {model} streamed {produced} fragments in {time.time() - start:.3f}s")


async def _close_client(client: Any) -> None:
	"""Close the provider client if it exposes a close/aclose method."""
	aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
	if aclose is None:
		return
	try:
		result = aclose()
		if inspect.isawaitable(result):
			await result
	except Exception as exc:
		logger.debug("Ignoring error while closing provider client: %s", exc)


SessionFactory = Callable[[Sequence[Turn], str, AgentConfig], CompletionSession]


def make_session_factory(
	credential_reader: Callable[[], Optional[str]],
	client_factory: Optional[ClientFactory] = None,
) -> SessionFactory:
	"""Return a callable opening a new `CompletionSession` per user turn.

	The credential is read once for each session, at creation time.
	"""

	def open_session(history: Sequence[Turn], user_message: str, config: AgentConfig) -> CompletionSession:
		return CompletionSession(
			history,
			user_message,
			config,
			api_key=credential_reader(),
			client_factory=client_factory,
		)

	return open_session

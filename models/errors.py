"""Error taxonomy shared by the store, completion and controller layers."""


class ChatError(Exception):
	"""Base class for chat client failures."""

	def __init__(self, message: str) -> None:
		self.message = message
		super().__init__(message)


class MissingCredentialError(ChatError):
	"""No provider credential is configured."""

	def __init__(self, message: str = "API Key is missing. Please add GEMINI_API_KEY to your environment.") -> None:
		super().__init__(message)


class ProviderError(ChatError):
	"""The model provider failed before or during streaming."""


class StorageError(ChatError):
	"""The transcript store could not be read or written."""


class InvalidTurnError(StorageError, ValueError):
	"""A turn was rejected by the store (unknown role or empty content)."""


class SessionConsumedError(ChatError, RuntimeError):
	"""A completion session was consumed more than once."""

	def __init__(self, message: str = "Completion session has already been consumed.") -> None:
		super().__init__(message)

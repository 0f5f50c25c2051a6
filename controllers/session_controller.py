"""Turn lifecycle for one chat client.

The controller keeps the live conversation in memory and treats the
transcript store as best-effort durability: turns are shown first and
persisted second, and a storage failure never rolls back what is on
screen. The store is reconciled with memory only when `load()` runs.
Separate controllers (one per browser tab) are not coordinated; a
`clear_all` from one may race an append from another and the last write
wins.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from models.errors import MissingCredentialError, StorageError
from models.transcript import TranscriptStore
from models.turn import MODEL_ROLE, USER_ROLE, AgentConfig, Turn, TurnPhase, TurnResult
from services.completion.session import SessionFactory

logger = logging.getLogger(__name__)

ChangeListener = Callable[["SessionController"], Awaitable[None]]

CREDENTIAL_HINT = "Add GEMINI_API_KEY to your environment (or .env file) and restart the server."
PROVIDER_HINT = "Please ensure your API key is correct and try sending your message again."


def format_error_message(exc: BaseException) -> str:
    """Render a failure as the text of an ephemeral assistant bubble."""
    message = getattr(exc, "message", None) or str(exc) or "An unexpected error occurred."
    hint = CREDENTIAL_HINT if isinstance(exc, MissingCredentialError) else PROVIDER_HINT
    return f"**Error:** {message}\n\n{hint}"


class SessionController:
    """Drive one user turn at a time against a completion provider and a store.

    Args:
        store: Transcript store used for loading, appending and clearing.
        session_factory: Callable opening a `CompletionSession` from
            (history, message, config).
        config: Initial agent configuration; defaults to `AgentConfig()`.
        on_change: Optional async listener called after every visible change
            to the conversation (each streamed fragment included).
    """

    def __init__(
        self,
        store: TranscriptStore,
        session_factory: SessionFactory,
        config: Optional[AgentConfig] = None,
        on_change: Optional[ChangeListener] = None,
    ) -> None:
        self.store = store
        self._open_session = session_factory
        self.config = config or AgentConfig()
        self._on_change = on_change
        self._conversation: List[Turn] = []
        self.phase = TurnPhase.IDLE
        self.load_error: Optional[str] = None

    @property
    def conversation(self) -> List[Turn]:
        return list(self._conversation)

    @property
    def busy(self) -> bool:
        return self.phase is not TurnPhase.IDLE

    def snapshot(self) -> Dict[str, Any]:
        return {
            "messages": [turn.to_dict() for turn in self._conversation],
            "phase": self.phase.value,
            "busy": self.busy,
        }

    def update_config(self, **changes: Any) -> AgentConfig:
        """Apply non-None changes to the agent configuration.

        Takes effect from the next submitted turn.
        """
        self.config = self.config.updated(**changes)
        return self.config

    async def load(self) -> List[Turn]:
        """Seed the conversation from the store.

        A storage failure leaves an empty conversation and records the
        message in `load_error`.
        """
        if self.busy:
            return self.conversation
        try:
            turns = await self.store.list_turns()
            self.load_error = None
        except StorageError as exc:
            logger.warning("Failed to fetch messages: %s", exc.message)
            self.load_error = exc.message
            turns = []
        self._conversation = list(turns)
        await self._notify()
        return self.conversation

    async def submit(self, text: str) -> Optional[TurnResult]:
        """Run one full turn for `text`.

        Returns None without touching any state when `text` is blank or a
        turn is already in flight.
        """
        if self.busy or not text or not text.strip():
            return None
        self.phase = TurnPhase.USER_SUBMITTED
        try:
            return await self._run_turn(text)
        finally:
            self.phase = TurnPhase.IDLE

    async def clear_all(self) -> bool:
        """Wipe the store and the in-memory conversation.

        Memory is cleared even when the store fails. Returns False (and
        does nothing) while a turn is in flight.
        """
        if self.busy:
            return False
        try:
            await self.store.clear_all()
        except StorageError as exc:
            logger.warning("Failed to clear messages: %s", exc.message)
        self._conversation = []
        await self._notify()
        return True

    async def _run_turn(self, text: str) -> TurnResult:
        start = time.time()
        # Ephemeral error bubbles and empty placeholders never reach the provider.
        history = [t for t in self._conversation if not t.ephemeral and t.content]

        self._conversation.append(Turn(role=USER_ROLE, content=text))
        await self._notify()
        await self._persist(USER_ROLE, text)

        self._conversation.append(Turn(role=MODEL_ROLE, content=""))
        placeholder = len(self._conversation) - 1
        self.phase = TurnPhase.AWAITING_STREAM
        await self._notify()

        accumulated = ""
        fragments = 0
        try:
            session = self._open_session(history, text, self.config)
            async for fragment in session.stream():
                self.phase = TurnPhase.STREAMING
                accumulated += fragment
                fragments += 1
                self._conversation[placeholder] = Turn(role=MODEL_ROLE, content=accumulated)
                await self._notify()
        except Exception as exc:
            self.phase = TurnPhase.FAILED
            logger.error("Turn failed after %d fragments: %s", fragments, exc)
            self._show_error(placeholder, fragments, exc)
            await self._notify()
            return TurnResult(
                reply=accumulated,
                fragments=fragments,
                error=getattr(exc, "message", None) or str(exc),
                phase=TurnPhase.FAILED,
            )

        self.phase = TurnPhase.COMPLETED
        persisted = False
        if accumulated:
            persisted = await self._persist(MODEL_ROLE, accumulated)
        else:
            logger.warning("Provider returned an empty reply; nothing persisted")
        await self._notify()
        logger.info(f"Turn completed: {fragments} fragments, {len(accumulated)} chars in {time.time() - start:.3f}s")
        return TurnResult(reply=accumulated, fragments=fragments, persisted=persisted)

    def _show_error(self, placeholder: int, fragments: int, exc: BaseException) -> None:
        """Show the failure without discarding any partial reply."""
        error_turn = Turn(role=MODEL_ROLE, content=format_error_message(exc), ephemeral=True)
        if fragments:
            self._conversation.append(error_turn)
        else:
            self._conversation[placeholder] = error_turn

    async def _persist(self, role: str, content: str) -> bool:
        try:
            await self.store.append_turn(role, content)
        except StorageError as exc:
            logger.warning("Failed to save %s message: %s", role, exc.message)
            return False
        return True

    async def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            await self._on_change(self)
        except Exception as exc:
            logger.warning("Change listener failed: %s", exc)

"""Chat with the model from a terminal, persisting through a running server.

The transcript is read from and written to the server's `/api/messages`
endpoints (TRANSCRIPT_API_URL, default http://localhost:3000); the model is
called directly with GEMINI_API_KEY from the environment.

Run: `python chat_cli.py`. Type `/clear` to wipe the transcript and
`/quit` to exit.
"""
import asyncio
import logging
import sys

from dotenv import load_dotenv

from controllers.session_controller import SessionController
from services.completion.session import default_client_factory, make_session_factory
from services.transcript_client import HttpTranscriptStore
from utils.settings import load_settings, read_provider_credential


class _ConsoleRenderer:
    """Print only the newly streamed suffix of the latest turn."""

    def __init__(self) -> None:
        self._shown = 0

    def reset(self) -> None:
        self._shown = 0

    async def __call__(self, controller: SessionController) -> None:
        if not controller.busy:
            return
        turns = controller.conversation
        if not turns or turns[-1].role != "model" or turns[-1].ephemeral:
            return
        content = turns[-1].content
        sys.stdout.write(content[self._shown:])
        sys.stdout.flush()
        self._shown = len(content)


async def main() -> None:
    """Load the transcript, then read lines from stdin until /quit or EOF."""
    load_dotenv()
    settings = load_settings()
    logging.basicConfig(level=logging.WARNING)

    store = HttpTranscriptStore(settings.transcript_api_url)
    renderer = _ConsoleRenderer()
    controller = SessionController(
        store,
        make_session_factory(read_provider_credential, default_client_factory(settings.provider_base_url)),
        on_change=renderer,
    )

    try:
        turns = await controller.load()
        if controller.load_error:
            print(f"(could not load history: {controller.load_error})")
        for turn in turns:
            speaker = "You" if turn.role == "user" else controller.config.name
            print(f"{speaker}: {turn.content}")

        while True:
            try:
                line = await asyncio.to_thread(input, "You: ")
            except EOFError:
                break
            if line.strip() == "/quit":
                break
            if line.strip() == "/clear":
                await controller.clear_all()
                print("(history cleared)")
                continue

            renderer.reset()
            sys.stdout.write(f"{controller.config.name}: ")
            result = await controller.submit(line)
            if result is None:
                continue
            print()
            if result.error:
                print(controller.conversation[-1].content)
    finally:
        await store.aclose()


if __name__ == "__main__":
    asyncio.run(main())

import asyncio

from controllers.session_controller import CREDENTIAL_HINT, SessionController
from models.turn import AgentConfig, Turn, TurnPhase
from services.completion.session import make_session_factory
from tests.fakes import FakeProviderClient, FakeStore


class RecordingFactory:
    """Session factory that remembers what each turn was opened with."""

    def __init__(self, client, api_key="key"):
        self.opened = []
        self._inner = make_session_factory(lambda: api_key, lambda key: client)

    def __call__(self, history, message, config):
        self.opened.append((list(history), message, config))
        return self._inner(history, message, config)


def _controller(store, client, api_key="key"):
    factory = RecordingFactory(client, api_key)
    snapshots = []

    async def on_change(controller):
        snapshots.append((controller.phase, controller.conversation))

    controller = SessionController(store, factory, on_change=on_change)
    return controller, factory, snapshots


def test_hello_turn_streams_and_persists(fake_store):
    client = FakeProviderClient(["Hi", " there!"])
    controller, factory, snapshots = _controller(fake_store, client)

    result = asyncio.run(controller.submit("Hello"))

    assert factory.opened[0][0] == []
    assert factory.opened[0][1] == "Hello"
    placeholder_states = [conv[-1].content for phase, conv in snapshots if phase is TurnPhase.STREAMING]
    assert placeholder_states == ["Hi", "Hi there!"]
    assert controller.conversation == [Turn("user", "Hello"), Turn("model", "Hi there!")]
    assert fake_store.appended == [("user", "Hello"), ("model", "Hi there!")]
    assert result.reply == "Hi there!"
    assert result.persisted
    assert controller.phase is TurnPhase.IDLE


def test_turn_passes_pre_submission_history_and_config():
    store = FakeStore([Turn("user", "a"), Turn("model", "b")])
    client = FakeProviderClient(["c"])
    controller, factory, _ = _controller(store, client)
    controller.update_config(temperature=0.1, name="Echo")

    async def run():
        await controller.load()
        await controller.submit("next")

    asyncio.run(run())
    history, message, config = factory.opened[0]
    assert history == [Turn("user", "a"), Turn("model", "b")]
    assert message == "next"
    assert config == AgentConfig(name="Echo", temperature=0.1)


def test_blank_input_is_ignored(fake_store):
    client = FakeProviderClient(["x"])
    controller, factory, snapshots = _controller(fake_store, client)

    assert asyncio.run(controller.submit("   \n")) is None
    assert asyncio.run(controller.submit("")) is None
    assert controller.conversation == []
    assert factory.opened == []
    assert snapshots == []


def test_submit_while_busy_is_ignored(fake_store):
    client = FakeProviderClient(["one", "two"])
    controller, factory, _ = _controller(fake_store, client)
    nested = []

    async def on_change(ctrl):
        if ctrl.phase is TurnPhase.STREAMING and not nested:
            nested.append(await ctrl.submit("again"))
            nested.append(await ctrl.clear_all())

    controller._on_change = on_change
    asyncio.run(controller.submit("first"))

    assert nested == [None, False]
    assert len(factory.opened) == 1
    assert [t.content for t in controller.conversation] == ["first", "onetwo"]


def test_mid_stream_failure_keeps_partial_reply_and_skips_model_write(fake_store):
    client = FakeProviderClient(["par", "tial", "never"], fail_after=2, error=RuntimeError("stream dropped"))
    controller, _, _ = _controller(fake_store, client)

    result = asyncio.run(controller.submit("Hello"))

    conversation = controller.conversation
    assert conversation[1] == Turn("model", "partial")
    assert conversation[2].ephemeral
    assert "stream dropped" in conversation[2].content
    assert fake_store.appended == [("user", "Hello")]
    assert result.phase is TurnPhase.FAILED
    assert result.fragments == 2


def test_failure_before_any_fragment_replaces_placeholder(fake_store):
    client = FakeProviderClient(["x"], fail_after=0, error=RuntimeError("quota exceeded"))
    controller, _, _ = _controller(fake_store, client)

    asyncio.run(controller.submit("Hello"))

    conversation = controller.conversation
    assert len(conversation) == 2
    assert conversation[1].ephemeral
    assert conversation[1].content.startswith("**Error:** quota exceeded")
    assert fake_store.appended == [("user", "Hello")]


def test_missing_credential_shows_configuration_hint(fake_store):
    client = FakeProviderClient(["x"])
    controller, _, _ = _controller(fake_store, client, api_key=None)

    result = asyncio.run(controller.submit("Hello"))

    assert client.calls == []
    assert result.phase is TurnPhase.FAILED
    assert CREDENTIAL_HINT in controller.conversation[-1].content
    assert fake_store.appended == [("user", "Hello")]


def test_error_turns_are_not_sent_as_history(fake_store):
    failing = FakeProviderClient(["x"], fail_after=0)
    controller, factory, _ = _controller(fake_store, failing)
    asyncio.run(controller.submit("first"))

    controller._open_session = RecordingFactory(FakeProviderClient(["ok"]))
    asyncio.run(controller.submit("second"))

    assert controller._open_session.opened[0][0] == [Turn("user", "first")]


def test_store_failures_do_not_interrupt_turn(fake_store):
    fake_store.fail_append = True
    client = FakeProviderClient(["fine"])
    controller, _, _ = _controller(fake_store, client)

    result = asyncio.run(controller.submit("Hello"))

    assert controller.conversation == [Turn("user", "Hello"), Turn("model", "fine")]
    assert result.error is None
    assert not result.persisted


def test_empty_reply_is_not_persisted(fake_store):
    controller, _, _ = _controller(fake_store, FakeProviderClient([]))
    result = asyncio.run(controller.submit("Hello"))
    assert fake_store.appended == [("user", "Hello")]
    assert result.reply == ""


def test_clear_all_wipes_memory_even_when_store_fails():
    store = FakeStore([Turn("user", "1"), Turn("model", "2"), Turn("user", "3")])
    controller, _, _ = _controller(store, FakeProviderClient())

    async def run():
        await controller.load()
        assert len(controller.conversation) == 3
        store.fail_clear = True
        return await controller.clear_all()

    assert asyncio.run(run()) is True
    assert controller.conversation == []


def test_clear_all_then_list_is_empty():
    store = FakeStore([Turn("user", "1"), Turn("model", "2"), Turn("user", "3")])
    controller, _, _ = _controller(store, FakeProviderClient())
    asyncio.run(controller.clear_all())
    assert asyncio.run(store.list_turns()) == []


def test_load_failure_leaves_empty_conversation():
    store = FakeStore([Turn("user", "hidden")])
    store.fail_list = True
    controller, _, _ = _controller(store, FakeProviderClient())

    assert asyncio.run(controller.load()) == []
    assert controller.load_error == "Failed to fetch messages"


def test_listener_errors_do_not_break_turn(fake_store):
    async def broken(controller):
        raise ConnectionError("socket gone")

    controller = SessionController(
        fake_store,
        make_session_factory(lambda: "key", lambda key: FakeProviderClient(["ok"])),
        on_change=broken,
    )
    result = asyncio.run(controller.submit("Hello"))
    assert result.persisted
    assert fake_store.appended[-1] == ("model", "ok")

import asyncio
import json

import httpx
import pytest

from models.errors import StorageError
from models.turn import Turn
from services.transcript_client import HttpTranscriptStore


def _store(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTranscriptStore("http://chat.local/", client=client)


def test_round_trip_against_server_contract():
    rows = []
    seen = []

    def handler(request):
        seen.append((request.method, str(request.url)))
        if request.method == "GET":
            return httpx.Response(200, json=rows)
        if request.method == "POST":
            rows.append(json.loads(request.content))
            return httpx.Response(201, json={"success": True})
        rows.clear()
        return httpx.Response(200, json={"success": True})

    store = _store(handler)

    async def run():
        await store.append_turn("user", "Hello")
        await store.append_turn("model", "Hi")
        listed = await store.list_turns()
        await store.clear_all()
        return listed, await store.list_turns()

    listed, after_clear = asyncio.run(run())
    assert listed == [Turn("user", "Hello"), Turn("model", "Hi")]
    assert after_clear == []
    assert seen[0] == ("POST", "http://chat.local/api/messages")


def test_error_status_raises_storage_error_with_server_message():
    store = _store(lambda request: httpx.Response(500, json={"error": "Failed to save message"}))
    with pytest.raises(StorageError, match="Failed to save message"):
        asyncio.run(store.append_turn("user", "Hello"))


def test_transport_failure_raises_storage_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    store = _store(handler)
    with pytest.raises(StorageError, match="Failed to fetch messages"):
        asyncio.run(store.list_turns())


def test_malformed_rows_raise_storage_error():
    store = _store(lambda request: httpx.Response(200, json=["not-a-row", 3]))
    with pytest.raises(StorageError, match="Failed to fetch messages"):
        asyncio.run(store.list_turns())

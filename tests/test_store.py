"""Tests for the message store clients."""

import logging
from datetime import timezone

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from chatty_terminal.core import Message
from chatty_terminal.render import plain_text, render_message
from chatty_terminal.server import app
from chatty_terminal.store import HttpMessageStore, MemoryMessageStore, RetryPolicy, StoreError, url_safe

from conftest import RecordingStore


@pytest.fixture(autouse=True)
def reset_store():
    """Reset the backend's message store before each test."""
    import chatty_terminal.server as srv
    srv._store = None
    yield
    srv._store = None


def mock_store(handler) -> HttpMessageStore:
    client = AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return HttpMessageStore("http://test", client=client)


class TestUrlSafe:
    def test_replaces_non_alphanumerics(self):
        assert url_safe("hi there!") == "hi_there_"

    def test_keeps_case_and_digits(self):
        assert url_safe("Bob42") == "Bob42"

    def test_message_url(self):
        store = HttpMessageStore("http://test/")
        url = store.message_url(Message(alias="bob 1", content="hi there", at="~/team x"))
        assert url == "http://test/msg/bob_1/hi_there/__team_x"


class TestMessage:
    def test_from_dict_parses_zulu_time(self):
        msg = Message.from_dict({
            "time": "2025-01-15T10:00:00.000Z",
            "alias": "bob",
            "content": "hi",
            "at": "lobby",
        })
        assert msg.time.tzinfo == timezone.utc
        assert msg.time.hour == 10

    def test_from_dict_tolerates_missing_fields(self):
        msg = Message.from_dict({"alias": "bob", "content": "hi"})
        assert msg.at == ""
        assert msg.time is None


class TestHttpMessageStore:
    @pytest.mark.asyncio
    async def test_round_trip_through_backend(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            store = HttpMessageStore("http://test", client=client)
            assert await store.append(Message(alias="alice", content="first", at="lobby"))
            assert await store.append(Message(alias="bob_1", content="hi there", at="team_x"))

            logs = await store.fetch_recent()
            assert [m.alias for m in logs] == ["alice", "bob_1"]
            latest = logs[-1]
            assert latest.content == "hi_there"
            assert latest.at == "team_x"
            assert latest.time >= logs[0].time
            assert plain_text(render_message(latest)) == "bob_1@team_x:$ hi there"

    @pytest.mark.asyncio
    async def test_client_time_is_ignored(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            store = HttpMessageStore("http://test", client=client)
            sent = Message.from_dict({"alias": "a", "content": "b", "time": "1999-01-01T00:00:00+00:00"})
            await store.append(sent)
            (stored,) = await store.fetch_recent()
            assert stored.time.year > 1999

    @pytest.mark.asyncio
    async def test_fetch_accepts_index_keyed_object(self):
        def handler(request):
            assert request.url.params["depth"] == "500"
            return httpx.Response(200, json={
                "0": {"alias": "a", "content": "one", "at": "x"},
                "1": {"alias": "b", "content": "two", "at": "x"},
            })

        store = mock_store(handler)
        logs = await store.fetch_recent()
        assert [m.content for m in logs] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_server_error_raises_store_error(self):
        store = mock_store(lambda request: httpx.Response(500))
        with pytest.raises(StoreError):
            await store.append(Message(alias="a", content="b"))
        with pytest.raises(StoreError):
            await store.fetch_recent()

    @pytest.mark.asyncio
    async def test_connection_error_raises_store_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        store = mock_store(handler)
        with pytest.raises(StoreError):
            await store.fetch_recent()

    @pytest.mark.asyncio
    async def test_malformed_payload_raises_store_error(self):
        store = mock_store(lambda request: httpx.Response(200, content=b"not json"))
        with pytest.raises(StoreError):
            await store.fetch_recent()

        store = mock_store(lambda request: httpx.Response(200, json="nope"))
        with pytest.raises(StoreError):
            await store.fetch_recent()


class TestMemoryMessageStore:
    def test_times_strictly_increase(self):
        store = MemoryMessageStore()
        stored = [store.add("a", str(i)) for i in range(5)]
        times = [m.time for m in stored]
        assert all(earlier < later for earlier, later in zip(times, times[1:]))

    @pytest.mark.asyncio
    async def test_fetch_recent_returns_last_messages_oldest_first(self):
        store = MemoryMessageStore()
        for i in range(5):
            await store.append(Message(alias="a", content=str(i)))
        logs = await store.fetch_recent(2)
        assert [m.content for m in logs] == ["3", "4"]
        assert len(store) == 5


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_retries_until_success(self, caplog):
        store = RecordingStore(fail_times=2)
        with caplog.at_level(logging.WARNING, logger="chatty_terminal.store"):
            ok = await store.append_with_retry(Message(alias="a", content="b"), RetryPolicy(retries=2))
        assert ok is True
        assert store.attempts == 3
        assert caplog.text.count("attempt") == 2

    @pytest.mark.asyncio
    async def test_gives_up_without_raising(self):
        store = RecordingStore(fail_times=5)
        ok = await store.append_with_retry(Message(alias="a", content="b"), RetryPolicy(retries=1))
        assert ok is False
        assert store.attempts == 2

    def test_delay_grows_with_attempts(self):
        policy = RetryPolicy(retries=3, backoff=0.5)
        assert policy.attempts == 4
        assert policy.delay(2) == 1.0

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_dropped(self, caplog):
        class ClosedLoopStore(RecordingStore):
            async def append(self, message):
                self.attempts += 1
                raise RuntimeError("Event loop is closed")

        store = ClosedLoopStore()
        with caplog.at_level(logging.ERROR, logger="chatty_terminal.store"):
            ok = await store.append_with_retry(Message(alias="a", content="b"), RetryPolicy())
        assert ok is False
        assert "Event loop is closed" in caplog.text

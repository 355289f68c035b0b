"""Tests for the live message stream."""

import asyncio
import json

import pytest

from chatsync.errors import ReadFailedError
from chatsync.models import MessageFeed
from chatsync.sse import EventType, SSEEvent, message_stream
from chatsync.store import MemoryKeyPathStore
from chatsync.sync import SyncOrchestrator


class StubRequest:
    """Request double that disconnects after a number of checks."""

    def __init__(self, checks_before_disconnect: int = 100):
        self.remaining = checks_before_disconnect

    async def is_disconnected(self) -> bool:
        self.remaining -= 1
        return self.remaining < 0


async def _feeds(*feeds: MessageFeed):
    for feed in feeds:
        yield feed
    await asyncio.Event().wait()


async def _failing_feeds():
    yield MessageFeed(conversation_id="conversation_1")
    raise ReadFailedError("connection lost", path="conversation_1/messages")


def _parse(raw: str) -> tuple[str, dict]:
    lines = dict(line.split(": ", 1) for line in raw.strip().splitlines())
    return lines["event"], json.loads(lines["data"])


class TestSSEEvent:
    def test_encode(self):
        """Test SSE wire format."""
        encoded = SSEEvent(event="messages", data={"a": 1}, id="abc").encode()
        assert encoded == 'id: abc\nevent: messages\ndata: {"a": 1}\n\n'


class TestMessageStream:
    """Test message_stream event sequence."""

    @pytest.mark.asyncio
    async def test_connected_then_messages(self):
        """Test the stream opens with a connected event and then forwards feeds."""
        feed = MessageFeed(conversation_id="conversation_1", messages=[], skipped=2)
        stream = message_stream("conversation_1", _feeds(feed), StubRequest())

        event, data = _parse(await stream.__anext__())
        assert event == EventType.CONNECTED.value
        assert data["conversation_id"] == "conversation_1"

        event, data = _parse(await stream.__anext__())
        assert event == EventType.MESSAGES.value
        assert data["skipped"] == 2
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_heartbeat_when_idle(self):
        """Test a heartbeat is sent when no feed arrives in time."""
        stream = message_stream("conversation_1", _feeds(), StubRequest(), heartbeat_interval=0.01)
        await stream.__anext__()

        event, data = _parse(await stream.__anext__())
        assert event == EventType.HEARTBEAT.value
        assert "timestamp" in data
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_stops_on_disconnect(self):
        """Test the stream ends once the client goes away."""
        stream = message_stream("conversation_1", _feeds(), StubRequest(checks_before_disconnect=0))
        events = [chunk async for chunk in stream]
        assert len(events) == 1
        assert _parse(events[0])[0] == EventType.CONNECTED.value

    @pytest.mark.asyncio
    async def test_feed_failure_ends_stream_with_error(self):
        """Test a failing feed is reported at once instead of waiting for a heartbeat."""
        stream = message_stream("conversation_1", _failing_feeds(), StubRequest(), heartbeat_interval=30)

        async def collect():
            return [chunk async for chunk in stream]

        events = [_parse(chunk) for chunk in await asyncio.wait_for(collect(), timeout=1)]

        assert [event for event, _ in events] == ["connected", "messages", "error"]
        assert events[-1][1] == {"error": "read_failed", "detail": "connection lost"}

    @pytest.mark.asyncio
    async def test_invalid_conversation_id_reports_error(self):
        """Test a conversation ID the store rejects closes the stream with its code."""
        orchestrator = SyncOrchestrator(MemoryKeyPathStore())
        stream = message_stream(
            "bad.id", orchestrator.watch_messages("bad.id"), StubRequest(), heartbeat_interval=30
        )

        async def collect():
            return [chunk async for chunk in stream]

        events = [_parse(chunk) for chunk in await asyncio.wait_for(collect(), timeout=1)]

        assert events[-1][0] == EventType.ERROR.value
        assert events[-1][1]["error"] == "invalid_key"

"""Server-Sent Events support for live message history."""

import asyncio
import contextlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncGenerator, AsyncIterator

from fastapi import Request
from fastapi.responses import StreamingResponse

from chatsync.errors import SyncError
from chatsync.models import MessageFeed

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """SSE event types."""

    CONNECTED = "connected"
    MESSAGES = "messages"
    HEARTBEAT = "heartbeat"
    ERROR = "error"


@dataclass
class SSEEvent:
    """An SSE event to send to clients."""

    event: str
    data: dict[str, Any]
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    def encode(self) -> str:
        """Encode as SSE format."""
        lines = [
            f"id: {self.id}",
            f"event: {self.event}",
            f"data: {json.dumps(self.data)}",
            "",  # Empty line to end the event
        ]
        return "\n".join(lines) + "\n"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


_DONE = object()


async def _pump(feeds: AsyncIterator[MessageFeed], queue: asyncio.Queue):
    try:
        async for feed in feeds:
            await queue.put(feed)
    finally:
        queue.put_nowait(_DONE)


async def message_stream(
    conversation_id: str,
    feeds: AsyncIterator[MessageFeed],
    request: Request,
    heartbeat_interval: int = 30,
) -> AsyncGenerator[str, None]:
    """Generate SSE events carrying the full feed each time the log changes.

    Sends heartbeat pings every heartbeat_interval seconds to keep connection alive.
    If the feed fails, an error event is sent and the stream ends.
    """
    queue: asyncio.Queue = asyncio.Queue()
    pump = asyncio.create_task(_pump(feeds, queue))
    logger.info(f"Streaming messages of {conversation_id}")

    try:
        yield SSEEvent(
            event=EventType.CONNECTED.value,
            data={"conversation_id": conversation_id, "timestamp": _now()},
        ).encode()

        while True:
            if await request.is_disconnected():
                break

            try:
                feed = await asyncio.wait_for(queue.get(), timeout=heartbeat_interval)
            except asyncio.TimeoutError:
                yield SSEEvent(
                    event=EventType.HEARTBEAT.value,
                    data={"timestamp": _now()},
                ).encode()
                continue

            if feed is _DONE:
                await asyncio.wait([pump])
                error = pump.exception()
                if isinstance(error, SyncError):
                    logger.error(f"Message feed of {conversation_id} failed: {error}")
                    yield SSEEvent(
                        event=EventType.ERROR.value,
                        data={"error": error.code.value, "detail": str(error)},
                    ).encode()
                elif error is not None:
                    raise error
                break

            yield SSEEvent(
                event=EventType.MESSAGES.value,
                data=feed.model_dump(mode="json"),
            ).encode()
    finally:
        if not pump.done():
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump
        logger.info(f"Stopped streaming messages of {conversation_id}")


def create_sse_response(generator: AsyncGenerator[str, None]) -> StreamingResponse:
    """Create an SSE StreamingResponse."""
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )

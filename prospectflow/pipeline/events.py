"""
Search event channel — transport adapter between the orchestrator and SSE.

The orchestrator only calls ``send(event_type, data)``; the HTTP layer drains
the channel and frames each event as ``event: <type>\\ndata: <json>\\n\\n``.
Event order is preserved; ``None`` on the queue marks the end of the stream.
"""

import asyncio
import json
from typing import AsyncIterator

EVENT_TYPES = ("status", "geocode", "overpass", "scored", "enrich", "done", "error")
TERMINAL_EVENTS = ("done", "error")


class ChannelClosed(RuntimeError):
    """The consumer went away; further sends are rejected."""


def format_sse(event_type: str, data: dict) -> str:
    payload = json.dumps(data, ensure_ascii=False, default=str)
    return f"event: {event_type}\ndata: {payload}\n\n"


class EventChannel:
    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def send(self, event_type: str, data: dict) -> None:
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type!r}")
        if self.closed:
            raise ChannelClosed(f"Channel closed, dropping {event_type!r}")
        self._queue.put_nowait((event_type, data))

    def finish(self) -> None:
        """Producer side: no more events will follow."""
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass

    def close(self) -> None:
        """Consumer side: stop accepting events (client disconnected)."""
        self.closed = True

    async def stream(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is None:
                break
            event_type, data = item
            yield format_sse(event_type, data)
            if event_type in TERMINAL_EVENTS:
                break

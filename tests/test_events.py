"""
Tests for SSE framing and the search event channel.
"""

import json

import pytest

from prospectflow.pipeline.events import ChannelClosed, EventChannel, format_sse


class TestFormatSse:
    def test_frame_layout(self):
        frame = format_sse("status", {"step": "geocode", "message": "Locating city"})
        assert frame.startswith("event: status\ndata: ")
        assert frame.endswith("\n\n")
        payload = frame.split("data: ", 1)[1].strip()
        assert json.loads(payload) == {"step": "geocode", "message": "Locating city"}

    def test_non_ascii_kept(self):
        assert "Mèche" in format_sse("enrich", {"name": "Salon Belle Mèche"})


class TestEventChannel:
    async def test_stream_preserves_order_and_stops_at_terminal(self):
        channel = EventChannel()
        channel.send("status", {"step": "geocode"})
        channel.send("geocode", {"city": "Lyon"})
        channel.send("done", {"candidates": []})
        channel.send("status", {"step": "late"})

        frames = [f async for f in channel.stream()]
        assert [f.split("\n", 1)[0] for f in frames] == [
            "event: status", "event: geocode", "event: done",
        ]

    async def test_finish_ends_stream_without_terminal(self):
        channel = EventChannel()
        channel.send("status", {"step": "geocode"})
        channel.finish()

        frames = [f async for f in channel.stream()]
        assert len(frames) == 1

    def test_send_after_close_rejected(self):
        channel = EventChannel()
        channel.close()
        with pytest.raises(ChannelClosed):
            channel.send("status", {})

    def test_unknown_event_type_rejected(self):
        channel = EventChannel()
        with pytest.raises(ValueError, match="progress"):
            channel.send("progress", {})

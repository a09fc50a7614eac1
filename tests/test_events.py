"""Tests for the event hub."""
import asyncio
import gc

import pytest

from report_uploader.utils.events import EventEmitter


class TestEventEmitter:
    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self):
        events = EventEmitter()
        seen = []

        async def on_async(item):
            seen.append(("async", item))

        events.on("item_status", lambda item: seen.append(("sync", item)))
        events.on("item_status", on_async)

        await events.emit("item_status", "a")

        assert seen == [("sync", "a"), ("async", "a")]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        events = EventEmitter()
        seen = []
        unsubscribe = events.on("alert", lambda concern, text: seen.append(text))

        unsubscribe()
        await events.emit("alert", "upload", "hi")

        assert seen == []
        assert events.listener_count("alert") == 0

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self):
        events = EventEmitter()
        seen = []

        def broken(*args):
            raise RuntimeError("boom")

        events.on("submitted", broken)
        events.on("submitted", seen.append)

        await events.emit("submitted", "T-1")

        assert seen == ["T-1"]

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError, match="Unknown event"):
            EventEmitter().on("nope", print)

    def test_free_form_events(self):
        events = EventEmitter(known_events=None)
        events.on("anything", print)
        assert events.listener_count("anything") == 1

    @pytest.mark.asyncio
    async def test_emit_nowait(self):
        events = EventEmitter()
        seen = []
        events.on("uploaded", lambda base, urls: seen.append((base, urls)))

        events.emit_nowait("uploaded", "BS-1", ["u1"])
        assert seen == []
        assert len(events._scheduled) == 1
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert seen == [("BS-1", ["u1"])]
        assert events._scheduled == set()

    @pytest.mark.asyncio
    async def test_scheduled_emit_survives_garbage_collection(self):
        events = EventEmitter()
        seen = []
        events.on("submitted", seen.append)

        events.emit_nowait("submitted", "T-1")
        gc.collect()
        await asyncio.sleep(0)

        assert seen == ["T-1"]

    def test_emit_nowait_without_loop(self):
        events = EventEmitter()
        events.on("uploaded", print)
        events.emit_nowait("uploaded", "BS-1", [])

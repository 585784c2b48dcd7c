"""Unit tests for the event bus."""

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from plugin_ui_bridge.bus import EventBus, EventTarget, add_once_listener, create_event_bus


class TestEmit:
    """Delivery to registered listeners."""

    def test_listener_receives_data(self):
        bus = EventBus()
        listener = MagicMock()
        bus.add_listener("tick", listener)

        count = bus.emit("tick", {"n": 1})

        assert count == 1
        listener.assert_called_once_with({"n": 1})

    def test_no_listeners(self):
        assert EventBus().emit("nobody-home", 1) == 0

    def test_fan_out_in_registration_order(self):
        bus = EventBus()
        calls = []
        for i in range(3):
            bus.add_listener("tick", lambda data, i=i: calls.append((i, data)))

        bus.emit("tick", "x")

        assert calls == [(0, "x"), (1, "x"), (2, "x")]

    def test_events_are_isolated(self):
        bus = EventBus()
        a, b = MagicMock(), MagicMock()
        bus.add_listener("a", a)
        bus.add_listener("b", b)

        bus.emit("a", 1)

        a.assert_called_once_with(1)
        b.assert_not_called()

    def test_removed_listener_not_called(self):
        bus = EventBus()
        keep, drop = MagicMock(), MagicMock()
        bus.add_listener("tick", keep)
        bus.add_listener("tick", drop)

        bus.remove_listener("tick", drop)
        bus.emit("tick", 1)

        keep.assert_called_once_with(1)
        drop.assert_not_called()

    def test_remove_unknown_listener_is_noop(self):
        bus = EventBus()
        bus.remove_listener("tick", MagicMock())

        assert not bus.has_listeners("tick")

    def test_failing_listener_does_not_stop_others(self, caplog):
        bus = EventBus()
        after = MagicMock()
        bus.add_listener("tick", MagicMock(side_effect=RuntimeError("boom")))
        bus.add_listener("tick", after)

        with caplog.at_level(logging.ERROR, logger="plugin_ui_bridge.bus"):
            bus.emit("tick", 1)

        after.assert_called_once_with(1)
        assert "Error in listener" in caplog.text

    def test_registration_during_emit_applies_next_time(self):
        bus = EventBus()
        late = MagicMock()
        bus.add_listener("tick", lambda data: bus.add_listener("tick", late))

        bus.emit("tick", 1)
        late.assert_not_called()

        bus.emit("tick", 2)
        late.assert_called_once_with(2)


class TestOnce:
    def test_fires_once(self):
        bus = EventBus()
        listener = MagicMock()
        bus.once("ready", listener)

        bus.emit("ready", None)
        bus.emit("ready", None)

        listener.assert_called_once_with(None)
        assert not bus.has_listeners("ready")

    def test_remove_by_original_callable(self):
        bus = EventBus()
        listener = MagicMock()
        bus.once("ready", listener)

        bus.remove_listener("ready", listener)
        bus.emit("ready", None)

        listener.assert_not_called()

    def test_remove_by_returned_wrapper(self):
        bus = EventBus()
        listener = MagicMock()
        wrapper = bus.once("ready", listener)

        bus.remove_listener("ready", wrapper)

        assert bus.listener_count("ready") == 0

    def test_helper_works_with_native_target(self):
        class NativeTarget:
            def __init__(self):
                self.listeners = []

            def add_listener(self, event, listener):
                self.listeners.append(listener)

            def remove_listener(self, event, listener):
                self.listeners.remove(listener)

            def emit(self, event, data=None):
                for listener in list(self.listeners):
                    listener(data)
                return len(self.listeners)

        native = NativeTarget()
        listener = MagicMock()
        wrapper = add_once_listener(native, "ready", listener)

        native.emit("ready", 1)
        native.emit("ready", 2)

        listener.assert_called_once_with(1)
        assert native.listeners == []
        assert wrapper.__wrapped__ is listener


class TestAsyncListeners:
    @pytest.mark.asyncio
    async def test_coroutine_listener_is_scheduled(self):
        bus = EventBus()
        received = asyncio.Event()
        seen = []

        async def listener(data):
            seen.append(data)
            received.set()

        bus.add_listener("tick", listener)
        bus.emit("tick", 5)

        await asyncio.wait_for(received.wait(), timeout=1)
        assert seen == [5]

    @pytest.mark.asyncio
    async def test_failing_coroutine_listener_is_logged(self, caplog):
        bus = EventBus()

        async def listener(data):
            raise ValueError("async boom")

        bus.add_listener("tick", listener)
        with caplog.at_level(logging.ERROR, logger="plugin_ui_bridge.bus"):
            bus.emit("tick", 1)
            for _ in range(5):
                await asyncio.sleep(0)

        assert "async boom" in caplog.text

    @pytest.mark.asyncio
    async def test_clear_cancels_scheduled_listeners(self):
        bus = EventBus()
        started = asyncio.Event()

        async def listener(data):
            started.set()
            await asyncio.sleep(10)

        bus.add_listener("tick", listener)
        bus.emit("tick", 1)
        await started.wait()

        bus.clear()

        assert not bus.has_listeners("tick")


class TestCreateEventBus:
    def test_default_is_event_bus(self):
        assert isinstance(create_event_bus(), EventBus)

    def test_compatible_native_is_used(self):
        class NativeTarget:
            def add_listener(self, event, listener):
                pass

            def remove_listener(self, event, listener):
                pass

            def emit(self, event, data=None):
                return 0

        native = NativeTarget()

        assert create_event_bus(native) is native
        assert isinstance(native, EventTarget)

    def test_incompatible_native_rejected(self):
        class DomOnly:
            def addEventListener(self, event, listener):
                pass

        with pytest.raises(TypeError, match="not a usable event target"):
            create_event_bus(DomOnly())

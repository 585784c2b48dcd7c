"""Unit tests for form sessions."""

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from plugin_ui_bridge.bus import EventBus
from plugin_ui_bridge.forms import FormSession
from plugin_ui_bridge.protocol import FormEventMessage, FormEventType

SCHEMA = {"schema": {"type": "object", "properties": {"name": {"type": "string"}}}}


class Outbox:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def __call__(self, message: dict) -> None:
        self.sent.append(message)


def _event(form_id: str, kind: str, data=None) -> FormEventMessage:
    return FormEventMessage(form_id=form_id, form_event=FormEventType(kind), form_data=data)


class TestFormSession:
    """Sub-events for one form id reach the matching callback only."""

    @pytest.fixture
    def bus(self):
        return EventBus()

    @pytest.fixture
    def outbox(self):
        return Outbox()

    @pytest.fixture
    def form(self, bus, outbox):
        return FormSession("f1", bus, outbox, schema=SCHEMA, data={"name": "x"}, submit_label="Save")

    @pytest.mark.asyncio
    async def test_open_sends_form_create(self, form, outbox, bus):
        await form.open()

        assert form.is_open
        assert bus.has_listeners("f1")
        assert outbox.sent == [
            {
                "action": "form.create",
                "formId": "f1",
                "schema": SCHEMA,
                "data": {"name": "x"},
                "submitButton": "Save",
            }
        ]

    @pytest.mark.asyncio
    async def test_open_twice_sends_once(self, form, outbox):
        await form.open()
        await form.open()

        assert len(outbox.sent) == 1

    @pytest.mark.asyncio
    async def test_sub_events_routed_by_kind(self, form, bus):
        on_change, on_submit, on_cancel = MagicMock(), MagicMock(), MagicMock()
        await form.open()
        form.on_change(on_change)
        form.on_submit(on_submit)
        form.on_cancel(on_cancel)

        bus.emit("f1", _event("f1", "change", {"name": "y"}))
        bus.emit("f1", _event("f1", "submit", {"name": "z"}))

        on_change.assert_called_once_with({"name": "y"})
        on_submit.assert_called_once_with({"name": "z"})
        on_cancel.assert_not_called()

    @pytest.mark.asyncio
    async def test_bare_payload_is_change(self, form, bus):
        on_change = MagicMock()
        await form.open()
        form.on_change(on_change)

        bus.emit("f1", {"name": "from-stream"})

        on_change.assert_called_once_with({"name": "from-stream"})

    @pytest.mark.asyncio
    async def test_missing_callback_is_logged(self, form, bus, caplog):
        await form.open()

        with caplog.at_level(logging.INFO, logger="plugin_ui_bridge.forms"):
            bus.emit("f1", _event("f1", "cancel"))

        assert "Missing form cancel handler" in caplog.text

    @pytest.mark.asyncio
    async def test_last_callback_wins(self, form, bus):
        first, second = MagicMock(), MagicMock()
        await form.open()
        form.on_submit(first)
        form.on_submit(second)

        bus.emit("f1", _event("f1", "submit", 1))

        first.assert_not_called()
        second.assert_called_once_with(1)

    @pytest.mark.asyncio
    async def test_non_callable_is_rejected(self, form, bus, caplog):
        handler = MagicMock()
        await form.open()
        form.on_change(handler)

        with caplog.at_level(logging.ERROR, logger="plugin_ui_bridge.forms"):
            form.on_change("not callable")

        bus.emit("f1", _event("f1", "change", 2))

        handler.assert_called_once_with(2)
        assert "must be callable" in caplog.text

    @pytest.mark.asyncio
    async def test_async_callback_runs(self, form, bus):
        done = asyncio.Event()
        seen = []

        async def on_submit(data):
            seen.append(data)
            done.set()

        await form.open()
        form.on_submit(on_submit)
        bus.emit("f1", _event("f1", "submit", {"ok": True}))

        await asyncio.wait_for(done.wait(), timeout=1)
        assert seen == [{"ok": True}]

    @pytest.mark.asyncio
    async def test_end_is_idempotent(self, bus, outbox):
        on_end = MagicMock()
        form = FormSession("f1", bus, outbox, schema=SCHEMA, on_end=on_end)
        await form.open()

        await form.end()
        await form.end()

        assert not form.is_open
        assert not bus.has_listeners("f1")
        assert [m["action"] for m in outbox.sent] == ["form.create", "form.end"]
        assert outbox.sent[1]["formId"] == "f1"
        on_end.assert_called_once_with("f1")

    @pytest.mark.asyncio
    async def test_no_delivery_after_end(self, form, bus):
        on_change = MagicMock()
        await form.open()
        form.on_change(on_change)
        await form.end()

        assert bus.emit("f1", _event("f1", "change", 1)) == 0
        on_change.assert_not_called()

    @pytest.mark.asyncio
    async def test_end_before_open_sends_nothing(self, form, outbox):
        await form.end()

        assert outbox.sent == []

    @pytest.mark.asyncio
    async def test_context_manager(self, form, outbox):
        async with form as session:
            assert session.is_open

        assert [m["action"] for m in outbox.sent] == ["form.create", "form.end"]

    @pytest.mark.asyncio
    async def test_forms_are_scoped_by_id(self, bus, outbox):
        a = FormSession("a", bus, outbox)
        b = FormSession("b", bus, outbox)
        on_a, on_b = MagicMock(), MagicMock()
        await a.open()
        await b.open()
        a.on_submit(on_a)
        b.on_submit(on_b)

        bus.emit("b", _event("b", "submit", "for-b"))

        on_a.assert_not_called()
        on_b.assert_called_once_with("for-b")
